"""Schemas and DTOs for the agent core."""

from .domain import (
    Approval,
    ApprovalDecision,
    ApprovalDecisionRequest,
    InvocationContext,
    ToolOperationType,
    WorkspaceRef,
)

__all__ = [
    "Approval",
    "ApprovalDecision",
    "ApprovalDecisionRequest",
    "InvocationContext",
    "ToolOperationType",
    "WorkspaceRef",
]
