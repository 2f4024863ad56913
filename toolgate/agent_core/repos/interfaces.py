from __future__ import annotations

"""Repository interface contracts.

The approval ledger depends on this Protocol instead of a concrete
persistence implementation.

Contract guidelines
-------------------

- All methods are async.
- ``add`` enforces at most one *pending* approval per call id.
- ``transition`` is an atomic compare-and-set out of ``pending``: among
  concurrent transitions of the same id exactly one succeeds.
- ``claim_execution`` is an atomic compare-and-set on an approved record:
  among concurrent claims of the same id exactly one returns True.
- Records are never deleted; decided approvals form the audit trail.
"""

from datetime import datetime
from typing import Optional, Protocol

from ..schemas.domain import Approval, ApprovalDecision


class ApprovalRepository(Protocol):
    """Store approvals and their resolution outcomes."""

    async def add(self, approval: Approval) -> None:
        """
        Persist a new approval.

        Args:
            approval: The approval to insert.

        Raises:
            DuplicateCallId: If a pending approval with the same call id exists.
        """
        ...

    async def get(self, approval_id: str) -> Optional[Approval]:
        """
        Retrieve an approval by its ID.

        Returns:
            The Approval if found, else None.
        """
        ...

    async def get_pending_by_call_id(self, call_id: str) -> Optional[Approval]:
        """Return the pending approval correlated with ``call_id``, if any."""
        ...

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
        Move a pending approval to a terminal decision.

        Returns:
            The updated approval.

        Raises:
            ApprovalNotFound: If the id is unknown.
            ApprovalAlreadyDecided: If the approval is no longer pending.
        """
        ...

    async def claim_execution(self, approval_id: str, *, claimed_by: str, claimed_at: datetime) -> bool:
        """
        Record that ``claimed_by`` is about to run the approved action.

        Returns:
            True for the single caller that set the claim; False when the
            approval is not approved or was already claimed.

        Raises:
            ApprovalNotFound: If the id is unknown.
        """
        ...

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
        List approvals matching all given filters, newest first.

        Args:
            agent_id: Only approvals raised by this agent.
            session_id: Only approvals raised in this session.
            user_id: Only approvals owned by this user.
            call_id: Only approvals correlated with this call id.
            pending_only: If True, return only undecided approvals.
        """
        ...
