from __future__ import annotations

"""Invocation result types returned by the dispatcher.

``InvocationResult`` is what ``InvocationDispatcher.invoke`` hands back to the
caller. For a sensitive tool the first result has status
``pending_approval`` and carries an ``outcome`` future that resolves to the
final result once the approval is decided.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..schemas.domain import Approval


class InvocationStatus(str, Enum):
    """Status of one tool invocation."""

    completed = "completed"
    pending_approval = "pending_approval"
    denied = "denied"
    executed_elsewhere = "executed_elsewhere"


@dataclass(frozen=True)
class InvocationResult:
    """Result of ``invoke`` for one ``call_id``.

    Attributes
    ----------
    status:
        ``completed`` when the executor ran, ``denied`` when the approval was
        denied, ``pending_approval`` while a decision is outstanding, and
        ``executed_elsewhere`` when the call was approved but another
        dispatcher sharing the approval store claimed and ran it.
    output:
        The executor's return value for completed invocations.
    approval:
        The approval record of a gated invocation (pending or decided).
    note:
        The decision note, set for denied invocations.
    outcome:
        For ``pending_approval`` results, a future resolving to the final
        ``InvocationResult`` or raising ``ExecutionFailed``.
    """

    call_id: str
    tool_name: str
    status: InvocationStatus
    output: Any = None
    approval: Optional[Approval] = None
    note: Optional[str] = None
    outcome: Optional[asyncio.Future[InvocationResult]] = field(default=None, repr=False, compare=False)

    @property
    def is_pending(self) -> bool:
        return self.status == InvocationStatus.pending_approval

    async def wait(self) -> InvocationResult:
        """Return the final result, suspending until the approval is decided if needed."""
        if self.outcome is None:
            return self
        return await asyncio.shield(self.outcome)
