from __future__ import annotations

"""Name-based sensitivity classification.

Capability descriptors may declare their sensitivity explicitly. When they do
not, the registry falls back to ``classify_tool`` which maps well-known tool
names onto an operation type:

- delete and execute tools are sensitive,
- write tools are classified but not gated,
- names that look like reads (``read``, ``fs_``, ``file_``) are reads,
- everything else is ``other``.

Explicit overrides in ``SensitivityPolicy`` win over the name sets.
"""

import json
import re
from typing import Any, Dict, Optional

from ..schemas.domain import ToolOperationType
from .models import SensitivityPolicy, ToolClassification

_SEPARATORS = re.compile(r"[.\-\s/]+")

DEFAULT_POLICY = SensitivityPolicy()


def normalize_tool_name(name: str) -> str:
    """Lower-case, trim, and fold ``.``/``-`` separators into ``_``."""
    return _SEPARATORS.sub("_", name.strip().lower())


def _normalized_set(names: set[str]) -> set[str]:
    return {normalize_tool_name(n) for n in names}


def classify_tool(name: str, policy: Optional[SensitivityPolicy] = None) -> ToolClassification:
    """
    Classify a tool by its name.

    Args:
        name: The registered tool name.
        policy: Classification policy; the module default when omitted.

    Returns:
        The sensitivity flag and operation type for the tool.
    """
    policy = policy or DEFAULT_POLICY
    if not name or not name.strip():
        return ToolClassification(is_sensitive=False, operation_type=ToolOperationType.other)

    normalized = normalize_tool_name(name)

    if normalized in _normalized_set(policy.delete_tools):
        result = ToolClassification(is_sensitive=True, operation_type=ToolOperationType.delete)
    elif normalized in _normalized_set(policy.execute_tools):
        result = ToolClassification(is_sensitive=True, operation_type=ToolOperationType.execute)
    elif normalized in _normalized_set(policy.write_tools):
        result = ToolClassification(is_sensitive=False, operation_type=ToolOperationType.write)
    elif "read" in normalized or "fs_" in normalized or "file_" in normalized:
        result = ToolClassification(is_sensitive=False, operation_type=ToolOperationType.read)
    else:
        result = ToolClassification(is_sensitive=False, operation_type=ToolOperationType.other)

    override = approval_override(name, policy)
    if override is not None:
        return ToolClassification(is_sensitive=override, operation_type=result.operation_type)
    return result


def approval_override(name: str, policy: Optional[SensitivityPolicy] = None) -> Optional[bool]:
    """
    Return the policy's explicit approval setting for ``name``.

    ``True`` for ``always_require_approval``, ``False`` for
    ``never_require_approval`` (``always`` wins when a name is in both), and
    ``None`` when the policy does not mention the tool.
    """
    policy = policy or DEFAULT_POLICY
    normalized = normalize_tool_name(name)
    if normalized in _normalized_set(policy.always_require_approval):
        return True
    if normalized in _normalized_set(policy.never_require_approval):
        return False
    return None


def describe_operation(operation_type: ToolOperationType, tool_name: str) -> str:
    """Short human-readable label for an operation."""
    labels = {
        ToolOperationType.delete: "File deletion",
        ToolOperationType.execute: "Command execution",
        ToolOperationType.write: "File write",
        ToolOperationType.read: "File read",
    }
    return f"{labels.get(operation_type, 'Tool operation')} ({tool_name})"


def confirmation_message(operation_type: ToolOperationType, tool_name: str) -> str:
    """
    Build the prompt shown to the approver of a sensitive operation.

    Args:
        operation_type: The classified operation type.
        tool_name: The tool awaiting approval.

    Returns:
        A multi-line confirmation prompt.
    """
    base = f"Sensitive operation detected: {describe_operation(operation_type, tool_name)}\n\n"
    if operation_type == ToolOperationType.delete:
        return base + "This permanently deletes files or directories and cannot be undone.\n\nContinue?"
    if operation_type == ToolOperationType.execute:
        return base + "This runs a system command and may affect the host.\n\nContinue?"
    if operation_type == ToolOperationType.write:
        return base + "This modifies or creates files.\n\nContinue?"
    return base + "Continue?"


def check_args_size(args: Dict[str, Any], policy: Optional[SensitivityPolicy] = None) -> Optional[str]:
    """
    Validate tool arguments against the configured size limit.

    Returns:
        An error string if the serialized arguments are too large, otherwise None.
    """
    policy = policy or DEFAULT_POLICY
    raw = json.dumps(args, default=str).encode("utf-8")
    if len(raw) > policy.max_tool_args_bytes:
        return "tool args too large"
    return None
