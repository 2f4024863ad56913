"""Approval lifecycle for sensitive tool invocations.

The ``ApprovalLedger`` is the single source of truth for decision state. The
dispatcher waits on it; humans or external policy processes decide through it.
"""

from .ledger import ApprovalLedger

__all__ = ["ApprovalLedger"]
