from __future__ import annotations

"""In-memory ``ApprovalRepository``.

The default store for a single process. Check-and-set sections hold a
``threading.Lock`` and contain no ``await``, so they are atomic with respect
to other coroutines and other threads.
"""

import threading
from datetime import datetime
from typing import Dict, Optional

from ..errors import ApprovalAlreadyDecided, ApprovalNotFound, DuplicateCallId
from ..schemas.domain import Approval, ApprovalDecision
from .interfaces import ApprovalRepository


class InMemoryApprovalRepository(ApprovalRepository):
    """Dict-backed approval index that lives for the process lifetime."""

    def __init__(self) -> None:
        self._by_id: Dict[str, Approval] = {}
        self._pending_by_call_id: Dict[str, str] = {}
        self._lock = threading.Lock()

    async def add(self, approval: Approval) -> None:
        with self._lock:
            if approval.approval_id in self._by_id:
                raise ValueError(f"approval id already exists: {approval.approval_id}")
            if approval.call_id is not None and approval.is_pending:
                existing = self._pending_by_call_id.get(approval.call_id)
                if existing is not None:
                    raise DuplicateCallId(approval.call_id, existing)
                self._pending_by_call_id[approval.call_id] = approval.approval_id
            self._by_id[approval.approval_id] = approval

    async def get(self, approval_id: str) -> Optional[Approval]:
        return self._by_id.get(approval_id)

    async def get_pending_by_call_id(self, call_id: str) -> Optional[Approval]:
        approval_id = self._pending_by_call_id.get(call_id)
        return self._by_id.get(approval_id) if approval_id is not None else None

    async def transition(
        self,
        approval_id: str,
        *,
        decision: ApprovalDecision,
        decided_by: str,
        note: Optional[str],
        decided_at: datetime,
    ) -> Approval:
        with self._lock:
            current = self._by_id.get(approval_id)
            if current is None:
                raise ApprovalNotFound(approval_id)
            if not current.is_pending:
                raise ApprovalAlreadyDecided(approval_id, current.decision.value)

            data = current.model_dump()
            data.update(decision=decision, decided_by=decided_by, note=note, decided_at=decided_at)
            updated = Approval.model_validate(data)

            self._by_id[approval_id] = updated
            if current.call_id is not None and self._pending_by_call_id.get(current.call_id) == approval_id:
                del self._pending_by_call_id[current.call_id]
            return updated

    async def claim_execution(self, approval_id: str, *, claimed_by: str, claimed_at: datetime) -> bool:
        with self._lock:
            current = self._by_id.get(approval_id)
            if current is None:
                raise ApprovalNotFound(approval_id)
            if current.decision != ApprovalDecision.approved or current.executed_by is not None:
                return False
            self._by_id[approval_id] = current.model_copy(update={"executed_by": claimed_by, "executed_at": claimed_at})
            return True

    async def list(
        self,
        *,
        agent_id: Optional[str] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        call_id: Optional[str] = None,
        pending_only: bool = False,
    ) -> list[Approval]:
        items = [
            a
            for a in list(self._by_id.values())
            if (agent_id is None or a.agent_id == agent_id)
            and (session_id is None or a.session_id == session_id)
            and (user_id is None or a.user_id == user_id)
            and (call_id is None or a.call_id == call_id)
            and (not pending_only or a.is_pending)
        ]
        items.sort(key=lambda a: a.created_at, reverse=True)
        return items
