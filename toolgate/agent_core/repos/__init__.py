"""Approval persistence for the approval ledger.

The repository layer is the persistence boundary of the ledger.

Responsibilities
----------------

- Provide a small async repository interface (Protocol) that the ledger can
  depend on.
- Persist durable, auditable approval records, including the atomic
  pending-to-decided transition.

Two implementations are provided:

- ``InMemoryApprovalRepository`` for a single process (the default),
- ``SqlApprovalRepository`` (async SQLAlchemy, in ``repos.sql``) when approvals
  must survive restarts or be decided from another process.
"""

from .interfaces import ApprovalRepository
from .memory import InMemoryApprovalRepository

__all__ = [
    "ApprovalRepository",
    "InMemoryApprovalRepository",
]
