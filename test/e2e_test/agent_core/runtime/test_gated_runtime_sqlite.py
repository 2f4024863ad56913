"""End-to-end tests for the assembled runtime over a SQLite approval store."""

import asyncio
from pathlib import Path

import pytest
from pydantic import BaseModel, ConfigDict

from toolgate.agent_core.capabilities.base import ToolDescriptor
from toolgate.agent_core.factory import build_runtime
from toolgate.agent_core.runtime.models import InvocationStatus
from toolgate.agent_core.schemas.domain import ApprovalDecision, ToolOperationType
from toolgate.core.config import Settings


class _DeleteArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
async def runtime(tmp_path: Path, skills_dir: Path, calls: list):
    async def _delete(args: _DeleteArgs, ctx):
        calls.append(args.path)
        return {"deleted": args.path, "by": ctx.authorized_by}

    settings = Settings(
        skills_dir=str(skills_dir),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'runtime.db'}",
    )
    rt = build_runtime(
        settings,
        tools=[
            ToolDescriptor.build(
                "fs_delete",
                _DeleteArgs,
                handler=_delete,
                is_sensitive=True,
                operation_type=ToolOperationType.delete,
            )
        ],
    )
    await rt.start()
    yield rt
    await rt.close()


@pytest.mark.asyncio
async def test_approved_call_runs_once_and_is_persisted(runtime, calls, invocation_ctx) -> None:
    pending = await runtime.dispatcher.invoke("c1", "fs_delete", {"path": "/tmp/a"}, invocation_ctx)
    assert pending.status == InvocationStatus.pending_approval
    assert runtime.dispatcher.pending_calls() == ["c1"]

    # A retry of the same call while it waits attaches to the same approval.
    again = await runtime.dispatcher.invoke("c1", "fs_delete", {"path": "/tmp/a"}, invocation_ctx)
    assert again.approval.approval_id == pending.approval.approval_id

    await runtime.ledger.approve(pending.approval.approval_id, "admin", note="go")
    final = await asyncio.wait_for(runtime.dispatcher.wait("c1"), timeout=2)

    assert final.status == InvocationStatus.completed
    assert final.output == {"deleted": "/tmp/a", "by": "admin"}
    assert calls == ["/tmp/a"]

    stored = await runtime.ledger.find_by_call_id("c1")
    assert stored.decision == ApprovalDecision.approved
    assert stored.decided_by == "admin"

    settled = await runtime.dispatcher.invoke("c1", "fs_delete", {"path": "/tmp/a"}, invocation_ctx)
    assert settled.status == InvocationStatus.completed
    assert calls == ["/tmp/a"]


@pytest.mark.asyncio
async def test_denied_call_never_runs(runtime, calls, invocation_ctx) -> None:
    pending = await runtime.dispatcher.invoke("c2", "fs_delete", {"path": "/etc"}, invocation_ctx)

    await runtime.ledger.deny(pending.approval.approval_id, "admin", note="not that")
    final = await asyncio.wait_for(pending.wait(), timeout=2)

    assert final.status == InvocationStatus.denied
    assert final.note == "not that"
    assert calls == []
    assert await runtime.ledger.list_pending() == []


@pytest.mark.asyncio
async def test_skill_tools_run_without_approval(runtime, calls, invocation_ctx) -> None:
    result = await runtime.dispatcher.invoke("c3", "skill_activate", {"name": "memory"}, invocation_ctx)

    assert result.status == InvocationStatus.completed
    assert result.output["ok"] is True
    assert await runtime.ledger.list_by_agent(invocation_ctx.agent_id) == []


@pytest.mark.asyncio
async def test_two_runtimes_sharing_a_database_execute_once(tmp_path: Path, skills_dir: Path, invocation_ctx) -> None:
    calls = []

    async def _delete(args: _DeleteArgs, ctx):
        calls.append(args.path)
        return {"deleted": args.path}

    settings = Settings(
        skills_dir=str(skills_dir),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'shared.db'}",
        approval_poll_interval=0.02,
    )
    runtimes = [
        build_runtime(
            settings,
            tools=[
                ToolDescriptor.build(
                    "fs_delete", _DeleteArgs, handler=_delete, is_sensitive=True, operation_type=ToolOperationType.delete
                )
            ],
        )
        for _ in range(2)
    ]
    for rt in runtimes:
        await rt.start()
    try:
        first = await runtimes[0].dispatcher.invoke("c1", "fs_delete", {"path": "/tmp/a"}, invocation_ctx)
        second = await runtimes[1].dispatcher.invoke("c1", "fs_delete", {"path": "/tmp/a"}, invocation_ctx)
        assert first.approval.approval_id == second.approval.approval_id

        await runtimes[0].ledger.approve(first.approval.approval_id, "admin")
        finals = await asyncio.wait_for(asyncio.gather(first.wait(), second.wait()), timeout=5)

        assert calls == ["/tmp/a"]
        assert sorted(f.status.value for f in finals) == ["completed", "executed_elsewhere"]
        stored = await runtimes[1].ledger.get(first.approval.approval_id)
        assert stored.executed_by in {rt.dispatcher.dispatcher_id for rt in runtimes}
    finally:
        for rt in runtimes:
            await rt.close()
