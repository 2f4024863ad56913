from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import ConfigDict, Field, model_validator

from .base import BaseSchema, WireSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_approval_id() -> str:
    return uuid4().hex


class ApprovalDecision(str, Enum):
    """Lifecycle state of an approval. ``approved`` and ``denied`` are terminal."""

    pending = "pending"
    approved = "approved"
    denied = "denied"


class ToolOperationType(str, Enum):
    """Coarse classification of what a tool does to the workspace."""

    read = "read"
    write = "write"
    delete = "delete"
    execute = "execute"
    other = "other"


class WorkspaceRef(WireSchema):
    """Workspace the agent operates on. Passed through to executors untouched."""

    workspace_id: str
    owner_id: str
    name: str
    work_dir: Optional[str] = None


class InvocationContext(BaseSchema):
    """Caller-supplied context of a tool invocation."""

    agent_id: str
    user_id: str
    session_id: Optional[str] = None
    workspace: Optional[WorkspaceRef] = None


class Approval(WireSchema):
    """
    Audit and state record for one gated invocation.

    ``decision == pending`` holds exactly when ``decided_at`` and ``decided_by``
    are both unset. ``executed_by``/``executed_at`` are set together, once, on an
    approved record by the dispatcher that claims the execution. Records are
    frozen; the ledger replaces them on transition.
    """

    model_config = ConfigDict(frozen=True)

    approval_id: str = Field(default_factory=new_approval_id)
    agent_id: str
    session_id: Optional[str] = None
    tool_name: str
    arguments: Any = None
    user_id: str
    created_at: datetime = Field(default_factory=_utc_now)

    decision: ApprovalDecision = ApprovalDecision.pending
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    note: Optional[str] = None

    is_sensitive: bool = False
    operation_type: ToolOperationType = ToolOperationType.other
    call_id: Optional[str] = None

    executed_at: Optional[datetime] = None
    executed_by: Optional[str] = None

    @model_validator(mode="after")
    def _check_decision_fields(self) -> "Approval":
        if self.decision == ApprovalDecision.pending:
            if self.decided_at is not None or self.decided_by is not None:
                raise ValueError("pending approval must not carry decided_at/decided_by")
        elif self.decided_at is None or self.decided_by is None:
            raise ValueError("decided approval requires decided_at and decided_by")
        if (self.executed_at is None) != (self.executed_by is None):
            raise ValueError("executed_at and executed_by must be set together")
        if self.executed_at is not None and self.decision != ApprovalDecision.approved:
            raise ValueError("only an approved approval can be claimed for execution")
        return self

    @property
    def is_pending(self) -> bool:
        return self.decision == ApprovalDecision.pending


class ApprovalDecisionRequest(WireSchema):
    """Decision submission coming from a human or an external policy process."""

    approval_id: str
    decision: ApprovalDecision
    decided_by: str
    note: Optional[str] = None
