"""End-to-end tests for the SQL approval repository on SQLite.

These tests exercise persistence, the conditional pending -> decided update,
and the partial unique index that keeps one pending approval per call id.
A file-backed database is used so concurrent sessions see each other's
writes.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from toolgate.agent_core.approvals.ledger import ApprovalLedger
from toolgate.agent_core.errors import ApprovalAlreadyDecided, ApprovalNotFound, DuplicateCallId
from toolgate.agent_core.repos.sql import (
    SqlApprovalRepository,
    create_all,
    create_engine,
    create_sessionmaker,
)
from toolgate.agent_core.schemas.domain import Approval, ApprovalDecision, ToolOperationType


@pytest.fixture
async def db_engine(tmp_path: Path):
    """Create a SQLite database file for testing."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def repo(db_engine) -> SqlApprovalRepository:
    return SqlApprovalRepository(session_factory=create_sessionmaker(db_engine))


def _approval(call_id="c1", **kw) -> Approval:
    return Approval(
        agent_id=kw.pop("agent_id", "agent-1"),
        session_id=kw.pop("session_id", "session-1"),
        tool_name="shell.run",
        arguments={"cmd": "ls", "env": {"A": "1"}, "n": [1, 2]},
        user_id=kw.pop("user_id", "user-1"),
        is_sensitive=True,
        operation_type=ToolOperationType.execute,
        call_id=call_id,
        **kw,
    )


class TestSqlApprovalRepository:
    """Test suite for SqlApprovalRepository."""

    @pytest.mark.asyncio
    async def test_add_and_get_round_trip(self, repo: SqlApprovalRepository) -> None:
        a = _approval()
        await repo.add(a)

        got = await repo.get(a.approval_id)
        assert got == a
        assert got.created_at.tzinfo is not None
        assert await repo.get("missing") is None

    @pytest.mark.asyncio
    async def test_pending_call_id_is_unique(self, repo: SqlApprovalRepository) -> None:
        first = _approval()
        await repo.add(first)

        with pytest.raises(DuplicateCallId) as exc:
            await repo.add(_approval())
        assert exc.value.approval_id == first.approval_id
        assert (await repo.get_pending_by_call_id("c1")) == first

    @pytest.mark.asyncio
    async def test_call_id_reusable_after_decision(self, repo: SqlApprovalRepository) -> None:
        first = _approval()
        await repo.add(first)
        await repo.transition(
            first.approval_id,
            decision=ApprovalDecision.denied,
            decided_by="u1",
            note="no",
            decided_at=datetime.now(timezone.utc),
        )

        second = _approval()
        await repo.add(second)
        assert (await repo.get_pending_by_call_id("c1")).approval_id == second.approval_id
        assert len(await repo.list(call_id="c1")) == 2

    @pytest.mark.asyncio
    async def test_transition_is_single_shot(self, repo: SqlApprovalRepository) -> None:
        a = _approval()
        await repo.add(a)
        decided_at = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)

        updated = await repo.transition(
            a.approval_id, decision=ApprovalDecision.approved, decided_by="u1", note="ok", decided_at=decided_at
        )
        assert updated.decision == ApprovalDecision.approved
        assert updated.decided_by == "u1"
        assert updated.decided_at == decided_at

        with pytest.raises(ApprovalAlreadyDecided) as exc:
            await repo.transition(
                a.approval_id, decision=ApprovalDecision.denied, decided_by="u2", note=None, decided_at=decided_at
            )
        assert exc.value.decision == "approved"

    @pytest.mark.asyncio
    async def test_execution_claim_is_single_shot(self, repo: SqlApprovalRepository) -> None:
        a = _approval()
        await repo.add(a)
        now = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)

        assert await repo.claim_execution(a.approval_id, claimed_by="d1", claimed_at=now) is False
        await repo.transition(
            a.approval_id, decision=ApprovalDecision.approved, decided_by="u1", note=None, decided_at=now
        )

        claims = await asyncio.gather(
            *(repo.claim_execution(a.approval_id, claimed_by=f"d{i}", claimed_at=now) for i in range(4))
        )
        assert claims.count(True) == 1

        stored = await repo.get(a.approval_id)
        assert stored.executed_by == f"d{claims.index(True)}"
        assert stored.executed_at == now

        with pytest.raises(ApprovalNotFound):
            await repo.claim_execution("nope", claimed_by="d1", claimed_at=now)

    @pytest.mark.asyncio
    async def test_transition_unknown(self, repo: SqlApprovalRepository) -> None:
        with pytest.raises(ApprovalNotFound):
            await repo.transition(
                "nope",
                decision=ApprovalDecision.approved,
                decided_by="u",
                note=None,
                decided_at=datetime.now(timezone.utc),
            )

    @pytest.mark.asyncio
    async def test_list_filters_newest_first(self, repo: SqlApprovalRepository) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        await repo.add(_approval("c1", created_at=base, user_id="u1", session_id="s1"))
        await repo.add(_approval("c2", created_at=base + timedelta(minutes=1), user_id="u2", session_id="s1"))
        await repo.add(_approval("c3", created_at=base + timedelta(minutes=2), user_id="u1", agent_id="agent-2"))

        assert [a.call_id for a in await repo.list(agent_id="agent-1")] == ["c2", "c1"]
        assert [a.call_id for a in await repo.list(session_id="s1")] == ["c2", "c1"]
        assert [a.call_id for a in await repo.list(user_id="u1", pending_only=True)] == ["c3", "c1"]


class TestLedgerOverSql:
    @pytest.mark.asyncio
    async def test_concurrent_decides_have_one_winner(self, repo: SqlApprovalRepository) -> None:
        ledger = ApprovalLedger(repo)
        a = await ledger.create(agent_id="a", tool_name="fs_rm", arguments={}, user_id="u", call_id="c1")

        results = await asyncio.gather(
            *(ledger.decide(a.approval_id, "approved" if i % 2 else "denied", f"u{i}") for i in range(4)),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Approval)]
        assert len(winners) == 1
        assert all(isinstance(r, ApprovalAlreadyDecided) for r in results if not isinstance(r, Approval))
        assert (await ledger.get(a.approval_id)).decision == winners[0].decision

    @pytest.mark.asyncio
    async def test_polling_ledger_sees_decision_from_another_process(self, db_engine) -> None:
        waiting = ApprovalLedger(SqlApprovalRepository(create_sessionmaker(db_engine)), poll_interval=0.02)
        deciding = ApprovalLedger(SqlApprovalRepository(create_sessionmaker(db_engine)))
        a = await waiting.create(agent_id="a", tool_name="fs_rm", arguments={"path": "x"}, user_id="u", call_id="c1")

        waiter = asyncio.create_task(waiting.wait_for_decision(a.approval_id))
        await asyncio.sleep(0.05)
        await deciding.deny(a.approval_id, "remote", note="nope")

        out = await asyncio.wait_for(waiter, timeout=2)
        assert out.decision == ApprovalDecision.denied
        assert out.note == "nope"
