"""Sensitivity policy for approval gating.

The policy layer decides which tools are gated behind human approval. It is
kept apart from the dispatcher so that deployments can tune classification
through configuration rather than code.

- ``SensitivityPolicy``: name sets per operation type, explicit overrides and
  the argument size limit.
- ``classify_tool``: map a tool name to ``(is_sensitive, operation_type)``.
- ``confirmation_message``: approver-facing prompt text.
"""

from .models import SensitivityPolicy, ToolClassification
from .sensitivity import (
    DEFAULT_POLICY,
    approval_override,
    check_args_size,
    classify_tool,
    confirmation_message,
    describe_operation,
    normalize_tool_name,
)

__all__ = [
    "DEFAULT_POLICY",
    "SensitivityPolicy",
    "ToolClassification",
    "approval_override",
    "check_args_size",
    "classify_tool",
    "confirmation_message",
    "describe_operation",
    "normalize_tool_name",
]
