from __future__ import annotations

"""SQLAlchemy ORM models for approval persistence.

These ORM models define the SQL schema used by the SQL repository
implementation in ``toolgate.agent_core.repos.sql``.

Design
------

- One row per approval; the decision is updated exactly once (pending ->
  decided) and an approved row is claimed for execution at most once. Rows
  are never deleted, forming the audit trail.
- A partial unique index over ``call_id`` restricted to pending rows keeps
  a retried invocation from opening a second approval, even across processes.

Table names are prefixed with ``tg_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ApprovalRow(Base):
    """Row model for ``tg_approvals``.

    Key fields:

    - ``decision``: ``pending`` until decided, then ``approved``/``denied``.
    - ``call_id``: correlation key of the gated invocation.
    - ``arguments``: the tool arguments as submitted, for auditing.
    - ``executed_by``: set once, by the dispatcher that runs the approved action.
    """

    __tablename__ = "tg_approvals"

    approval_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_id: Mapped[str] = mapped_column(String(128), index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    tool_name: Mapped[str] = mapped_column(String(128))
    arguments: Mapped[Any] = mapped_column(JsonType, nullable=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    decision: Mapped[str] = mapped_column(String(16), index=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_sensitive: Mapped[bool] = mapped_column(Boolean, default=False)
    operation_type: Mapped[str] = mapped_column(String(16))
    call_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    executed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index(
            "uq_tg_approvals_pending_call_id",
            "call_id",
            unique=True,
            sqlite_where=text("decision = 'pending'"),
            postgresql_where=text("decision = 'pending'"),
        ),
    )
