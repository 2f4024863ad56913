from __future__ import annotations

"""Error taxonomy for capability dispatch, approvals and skills.

Registry and schema errors indicate a caller programming error and are raised
synchronously to the invoker. ``ApprovalAlreadyDecided`` and ``DuplicateCallId``
are expected races under concurrent retry. ``ResourcePathEscape`` is a
security violation and is always a hard failure.
"""

from typing import Any, List, Optional


class ToolGateError(Exception):
    """Base class for all errors raised by the dispatch core."""


class CapabilityNotFound(ToolGateError, KeyError):
    """No capability is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"capability not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class DuplicateCapability(ToolGateError):
    """A capability with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"capability already registered: {name}")
        self.name = name


class SchemaValidationFailed(ToolGateError):
    """Invocation arguments do not match the capability's argument schema."""

    def __init__(self, tool_name: str, details: List[dict[str, Any]]) -> None:
        summary = "; ".join(
            f"{'.'.join(str(p) for p in d.get('loc', ())) or '<root>'}: {d.get('msg', '')}" for d in details
        )
        super().__init__(f"invalid arguments for {tool_name}: {summary}")
        self.tool_name = tool_name
        self.details = details


class ExecutionFailed(ToolGateError):
    """The executor raised while running a tool.

    The original exception is kept on ``cause`` and chained as ``__cause__``.
    """

    def __init__(self, tool_name: str, call_id: str, cause: BaseException) -> None:
        super().__init__(f"execution of {tool_name} failed (call_id={call_id}): {cause}")
        self.tool_name = tool_name
        self.call_id = call_id
        self.cause = cause


class ApprovalNotFound(ToolGateError, KeyError):
    """No approval exists with the given id."""

    def __init__(self, approval_id: str) -> None:
        super().__init__(f"approval not found: {approval_id}")
        self.approval_id = approval_id

    def __str__(self) -> str:
        return str(self.args[0])


class ApprovalAlreadyDecided(ToolGateError):
    """The approval has left the pending state; the first decision stands."""

    def __init__(self, approval_id: str, decision: Optional[str] = None) -> None:
        super().__init__(f"approval {approval_id} already decided: {decision}")
        self.approval_id = approval_id
        self.decision = decision


class DuplicateCallId(ToolGateError):
    """A pending approval already exists for this call id."""

    def __init__(self, call_id: str, approval_id: Optional[str] = None) -> None:
        super().__init__(f"pending approval already exists for call_id={call_id}")
        self.call_id = call_id
        self.approval_id = approval_id


class SkillNotFound(ToolGateError, KeyError):
    """No skill with the given name is known to the store."""

    def __init__(self, name: str, available: Optional[List[str]] = None) -> None:
        message = f"skill not found: {name}"
        if available is not None:
            message += f". Available skills: {', '.join(available)}"
        super().__init__(message)
        self.name = name
        self.available = list(available or [])

    def __str__(self) -> str:
        return str(self.args[0])


class ResourcePathEscape(ToolGateError):
    """A skill resource path resolves outside the skill's resource root."""

    def __init__(self, skill_name: str, resource_path: str) -> None:
        super().__init__(f"resource path escapes skill root of {skill_name}: {resource_path!r}")
        self.skill_name = skill_name
        self.resource_path = resource_path
