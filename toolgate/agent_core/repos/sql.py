from __future__ import annotations

"""SQLAlchemy async repository implementation.

This module provides a SQL-backed implementation of
``toolgate.agent_core.repos.interfaces.ApprovalRepository`` so that approvals
outlive the process and can be decided from another process.

Usage
-----

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (for tests/dev).
- Create a session factory with ``create_sessionmaker``.
- Build the repository with ``SqlApprovalRepository(session_factory=...)``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. ``transition`` issues a single conditional ``UPDATE ... WHERE
decision = 'pending'``; the database serializes racing updates so exactly one
of them matches the row.
``claim_execution`` works the same way on ``executed_by IS NULL``.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..errors import ApprovalAlreadyDecided, ApprovalNotFound, DuplicateCallId
from ..schemas.domain import Approval, ApprovalDecision, ToolOperationType
from .interfaces import ApprovalRepository
from .models import ApprovalRow, Base


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata.

    This is mainly intended for tests and local development.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; all stored timestamps are UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_domain(row: ApprovalRow) -> Approval:
    return Approval(
        approval_id=row.approval_id,
        agent_id=row.agent_id,
        session_id=row.session_id,
        tool_name=row.tool_name,
        arguments=row.arguments,
        user_id=row.user_id,
        created_at=_as_utc(row.created_at),
        decision=ApprovalDecision(row.decision),
        decided_at=_as_utc(row.decided_at),
        decided_by=row.decided_by,
        note=row.note,
        is_sensitive=row.is_sensitive,
        operation_type=ToolOperationType(row.operation_type),
        call_id=row.call_id,
        executed_at=_as_utc(row.executed_at),
        executed_by=row.executed_by,
    )


@dataclass(frozen=True)
class SqlApprovalRepository(ApprovalRepository):
    """SQL implementation of ``ApprovalRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def add(self, approval: Approval) -> None:
        """
        Insert a new approval record.

        Args:
            approval: The approval domain object.

        Raises:
            DuplicateCallId: If the pending-call-id index rejects the insert.
        """
        async with self.session_factory() as s:
            s.add(
                ApprovalRow(
                    approval_id=approval.approval_id,
                    agent_id=approval.agent_id,
                    session_id=approval.session_id,
                    tool_name=approval.tool_name,
                    arguments=approval.arguments,
                    user_id=approval.user_id,
                    created_at=approval.created_at,
                    decision=approval.decision.value,
                    decided_at=approval.decided_at,
                    decided_by=approval.decided_by,
                    note=approval.note,
                    is_sensitive=approval.is_sensitive,
                    operation_type=approval.operation_type.value,
                    call_id=approval.call_id,
                    executed_at=approval.executed_at,
                    executed_by=approval.executed_by,
                )
            )
            try:
                await s.commit()
            except IntegrityError:
                await s.rollback()
                if approval.call_id is not None:
                    existing = await self.get_pending_by_call_id(approval.call_id)
                    if existing is not None:
                        raise DuplicateCallId(approval.call_id, existing.approval_id) from None
                raise

    async def get(self, approval_id: str) -> Optional[Approval]:
        """
        Retrieve an approval by ID.

        Returns:
            The Approval domain object or None.
        """
        async with self.session_factory() as s:
            row = await s.get(ApprovalRow, approval_id)
            return _to_domain(row) if row is not None else None

    async def get_pending_by_call_id(self, call_id: str) -> Optional[Approval]:
        async with self.session_factory() as s:
            stmt = select(ApprovalRow).where(
                ApprovalRow.call_id == call_id,
                ApprovalRow.decision == ApprovalDecision.pending.value,
            )
            row = (await s.execute(stmt)).scalars().first()
            return _to_domain(row) if row is not None else None

    async def transition(
        self,
        approval_id: str,
        *,
        decision: ApprovalDecision,
        decided_by: str,
        note: Optional[str],
        decided_at: datetime,
    ) -> Approval:
        """
        Conditionally move a pending approval to ``decision``.

        Raises:
            ApprovalNotFound: If the id is unknown.
            ApprovalAlreadyDecided: If another decision already matched the row.
        """
        async with self.session_factory() as s:
            stmt = (
                update(ApprovalRow)
                .where(
                    ApprovalRow.approval_id == approval_id,
                    ApprovalRow.decision == ApprovalDecision.pending.value,
                )
                .values(decision=decision.value, decided_by=decided_by, note=note, decided_at=decided_at)
                .execution_options(synchronize_session=False)
            )
            result = await s.execute(stmt)
            if result.rowcount == 0:
                await s.rollback()
                row = await s.get(ApprovalRow, approval_id)
                if row is None:
                    raise ApprovalNotFound(approval_id)
                raise ApprovalAlreadyDecided(approval_id, row.decision)
            await s.commit()

            row = await s.get(ApprovalRow, approval_id, populate_existing=True)
            if row is None:
                raise ApprovalNotFound(approval_id)
            return _to_domain(row)

    async def list(
        self,
        *,
        agent_id: Optional[str] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        call_id: Optional[str] = None,
        pending_only: bool = False,
    ) -> list[Approval]:
        """
        List approvals matching the given filters, newest first.

        Returns:
            A list of Approval objects.
        """
        async with self.session_factory() as s:
            stmt = select(ApprovalRow)
            if agent_id is not None:
                stmt = stmt.where(ApprovalRow.agent_id == agent_id)
            if session_id is not None:
                stmt = stmt.where(ApprovalRow.session_id == session_id)
            if user_id is not None:
                stmt = stmt.where(ApprovalRow.user_id == user_id)
            if call_id is not None:
                stmt = stmt.where(ApprovalRow.call_id == call_id)
            if pending_only:
                stmt = stmt.where(ApprovalRow.decision == ApprovalDecision.pending.value)
            stmt = stmt.order_by(ApprovalRow.created_at.desc())

            rows = (await s.execute(stmt)).scalars().all()
            return [_to_domain(r) for r in rows]

    async def claim_execution(self, approval_id: str, *, claimed_by: str, claimed_at: datetime) -> bool:
        """
        Conditionally mark an approved row as claimed for execution.

        Returns:
            True if this call set the claim, False if the row is not approved
            or another dispatcher claimed it first.

        Raises:
            ApprovalNotFound: If the id is unknown.
        """
        async with self.session_factory() as s:
            stmt = (
                update(ApprovalRow)
                .where(
                    ApprovalRow.approval_id == approval_id,
                    ApprovalRow.decision == ApprovalDecision.approved.value,
                    ApprovalRow.executed_by.is_(None),
                )
                .values(executed_by=claimed_by, executed_at=claimed_at)
                .execution_options(synchronize_session=False)
            )
            result = await s.execute(stmt)
            if result.rowcount == 1:
                await s.commit()
                return True
            await s.rollback()
            if await s.get(ApprovalRow, approval_id) is None:
                raise ApprovalNotFound(approval_id)
            return False
