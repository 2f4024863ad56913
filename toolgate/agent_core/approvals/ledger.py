from __future__ import annotations

"""Approval ledger.

``ApprovalLedger`` owns the lifecycle of approval records:

    pending --decide(approved)--> approved
    pending --decide(denied)----> denied

Both decided states are terminal. The ledger is the only component that
changes decision state; it delegates the atomic compare-and-set to its
``ApprovalRepository`` and wakes in-process waiters once a decision wins.

Waiting
-------

``wait_for_decision`` suspends on an ``asyncio.Future`` and does not hold a
thread. When a ``poll_interval`` is configured the waiter also re-reads the
repository periodically, so decisions written by another process through a
shared SQL store are observed as well.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..errors import ApprovalAlreadyDecided, ApprovalNotFound
from ..repos.interfaces import ApprovalRepository
from ..repos.memory import InMemoryApprovalRepository
from ..schemas.domain import (
    Approval,
    ApprovalDecision,
    ApprovalDecisionRequest,
    ToolOperationType,
)

logger = logging.getLogger(__name__)


class ApprovalLedger:
    """Create, decide and query approval records."""

    def __init__(
        self,
        repository: Optional[ApprovalRepository] = None,
        *,
        poll_interval: Optional[float] = None,
    ) -> None:
        """
        Initialize the ledger.

        Args:
            repository: Backing store. Defaults to a fresh in-memory repository.
            poll_interval: Seconds between repository re-reads while waiting for
                a decision. ``None`` relies on in-process notification only.
        """
        if poll_interval is not None and poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self._repo: ApprovalRepository = repository if repository is not None else InMemoryApprovalRepository()
        self._poll_interval = poll_interval
        self._waiters: Dict[str, List[asyncio.Future[Approval]]] = {}

    @property
    def repository(self) -> ApprovalRepository:
        return self._repo

    async def create(
        self,
        *,
        agent_id: str,
        tool_name: str,
        arguments: Any,
        user_id: str,
        session_id: Optional[str] = None,
        is_sensitive: bool = True,
        operation_type: ToolOperationType = ToolOperationType.other,
        call_id: Optional[str] = None,
    ) -> Approval:
        """
        Open a new pending approval.

        Returns:
            The stored approval with a fresh id and ``created_at`` set to now.

        Raises:
            DuplicateCallId: If a pending approval already exists for ``call_id``.
        """
        approval = Approval(
            agent_id=agent_id,
            session_id=session_id,
            tool_name=tool_name,
            arguments=arguments,
            user_id=user_id,
            is_sensitive=is_sensitive,
            operation_type=operation_type,
            call_id=call_id,
        )
        await self._repo.add(approval)
        logger.info(
            f"Approval requested: id={approval.approval_id} tool={tool_name} agent={agent_id} call_id={call_id}"
        )
        return approval

    async def decide(
        self,
        approval_id: str,
        decision: ApprovalDecision | str,
        decided_by: str,
        note: Optional[str] = None,
    ) -> Approval:
        """
        Record the decision for a pending approval.

        Exactly one of several concurrent calls for the same id succeeds; the
        others raise ``ApprovalAlreadyDecided`` and the first decision stands.

        Raises:
            ValueError: If ``decision`` is not ``approved`` or ``denied``.
            ApprovalNotFound: If the id is unknown.
            ApprovalAlreadyDecided: If the approval is no longer pending.
        """
        decision = ApprovalDecision(decision)
        if decision == ApprovalDecision.pending:
            raise ValueError("decision must be 'approved' or 'denied'")

        updated = await self._repo.transition(
            approval_id,
            decision=decision,
            decided_by=decided_by,
            note=note,
            decided_at=datetime.now(timezone.utc),
        )
        logger.info(f"Approval {approval_id} {decision.value} by {decided_by}")
        self._notify(updated)
        return updated

    async def approve(self, approval_id: str, decided_by: str, note: Optional[str] = None) -> Approval:
        return await self.decide(approval_id, ApprovalDecision.approved, decided_by, note)

    async def deny(self, approval_id: str, decided_by: str, note: Optional[str] = None) -> Approval:
        return await self.decide(approval_id, ApprovalDecision.denied, decided_by, note)

    async def submit(self, request: ApprovalDecisionRequest) -> Approval:
        """Apply a decision submission received from outside the process."""
        return await self.decide(request.approval_id, request.decision, request.decided_by, request.note)

    async def claim_execution(self, approval_id: str, claimed_by: str) -> bool:
        """
        Claim the right to run an approved action.

        Several dispatchers may wait on the same approval when they share a
        store; only the one that gets True here may execute it.

        Raises:
            ApprovalNotFound: If the id is unknown.
        """
        claimed = await self._repo.claim_execution(
            approval_id, claimed_by=claimed_by, claimed_at=datetime.now(timezone.utc)
        )
        if claimed:
            logger.debug(f"Approval {approval_id} claimed for execution by {claimed_by}")
        else:
            logger.info(f"Approval {approval_id} not claimable by {claimed_by}; already claimed or not approved")
        return claimed

    async def get(self, approval_id: str) -> Approval:
        approval = await self._repo.get(approval_id)
        if approval is None:
            raise ApprovalNotFound(approval_id)
        return approval

    async def find_by_call_id(self, call_id: str) -> Optional[Approval]:
        """Return the pending approval for ``call_id``, else its newest record."""
        pending = await self._repo.get_pending_by_call_id(call_id)
        if pending is not None:
            return pending
        items = await self._repo.list(call_id=call_id)
        return items[0] if items else None

    async def list_by_agent(self, agent_id: str) -> list[Approval]:
        return await self._repo.list(agent_id=agent_id)

    async def list_by_session(self, session_id: str) -> list[Approval]:
        return await self._repo.list(session_id=session_id)

    async def list_pending(self, user_id: Optional[str] = None) -> list[Approval]:
        return await self._repo.list(user_id=user_id, pending_only=True)

    async def wait_for_decision(self, approval_id: str) -> Approval:
        """
        Suspend until the approval leaves ``pending`` and return the decided record.

        Raises:
            ApprovalNotFound: If the id is unknown.
        """
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[Approval] = loop.create_future()
        # Registered before the read so a decision landing in between is not missed.
        self._waiters.setdefault(approval_id, []).append(fut)
        try:
            current = await self.get(approval_id)
            if not current.is_pending:
                return current
            while True:
                if self._poll_interval is None:
                    return await fut
                try:
                    return await asyncio.wait_for(asyncio.shield(fut), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    current = await self.get(approval_id)
                    if not current.is_pending:
                        return current
        finally:
            self._discard_waiter(approval_id, fut)

    async def deny_stale(
        self,
        max_age: timedelta,
        *,
        decided_by: str = "system",
        note: Optional[str] = "timeout",
        now: Optional[datetime] = None,
    ) -> list[Approval]:
        """
        Deny every pending approval older than ``max_age``.

        No expiry is applied by the ledger itself; this hook is meant for an
        external scheduler. Approvals decided concurrently are skipped.

        Returns:
            The approvals denied by this call.
        """
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        denied: list[Approval] = []
        for approval in await self._repo.list(pending_only=True):
            if approval.created_at > cutoff:
                continue
            try:
                denied.append(await self.deny(approval.approval_id, decided_by, note))
            except ApprovalAlreadyDecided:
                logger.debug(f"Approval {approval.approval_id} was decided before it could expire")
        if denied:
            logger.info(f"Denied {len(denied)} stale approval(s) older than {max_age}")
        return denied

    def _notify(self, approval: Approval) -> None:
        for fut in self._waiters.pop(approval.approval_id, []):
            if not fut.done():
                fut.set_result(approval)

    def _discard_waiter(self, approval_id: str, fut: asyncio.Future[Approval]) -> None:
        waiters = self._waiters.get(approval_id)
        if not waiters:
            return
        if fut in waiters:
            waiters.remove(fut)
        if not waiters:
            self._waiters.pop(approval_id, None)
