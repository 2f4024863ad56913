"""Capability dispatch and approval gating.

This package contains the "engine room" of toolgate.

Design overview
---------------

- ``CapabilityRegistry`` holds immutable ``ToolDescriptor`` entries, each with
  an argument schema and a sensitivity classification.
- ``InvocationDispatcher`` validates each call and either executes it or
  opens an approval and suspends on it.
- ``ApprovalLedger`` drives approvals through ``pending -> approved | denied``.
  A decision is atomic per approval id; the first one wins.
- ``SkillResolver`` loads skills by name on first use and serves their
  resource files, refusing paths that escape the skill directory.

Persistence
-----------

Approvals are stored through the ``ApprovalRepository`` protocol; see
``toolgate.agent_core.repos``.
"""

from .approvals import ApprovalLedger
from .capabilities import CapabilityRegistry, ExecutionContext, Executor, HandlerExecutor, NoArgs, ToolDescriptor
from .errors import (
    ApprovalAlreadyDecided,
    ApprovalNotFound,
    CapabilityNotFound,
    DuplicateCallId,
    DuplicateCapability,
    ExecutionFailed,
    ResourcePathEscape,
    SchemaValidationFailed,
    SkillNotFound,
    ToolGateError,
)
from .factory import ToolRuntime, build_runtime
from .runtime import InvocationDispatcher, InvocationResult, InvocationStatus
from .schemas import Approval, ApprovalDecision, InvocationContext, ToolOperationType, WorkspaceRef
from .skills import FileSystemSkillStore, SkillResolver

__all__ = [
    "Approval",
    "ApprovalAlreadyDecided",
    "ApprovalDecision",
    "ApprovalLedger",
    "ApprovalNotFound",
    "CapabilityNotFound",
    "CapabilityRegistry",
    "DuplicateCallId",
    "DuplicateCapability",
    "ExecutionContext",
    "ExecutionFailed",
    "Executor",
    "FileSystemSkillStore",
    "HandlerExecutor",
    "InvocationContext",
    "InvocationDispatcher",
    "InvocationResult",
    "InvocationStatus",
    "NoArgs",
    "ResourcePathEscape",
    "SchemaValidationFailed",
    "SkillNotFound",
    "SkillResolver",
    "ToolDescriptor",
    "ToolGateError",
    "ToolOperationType",
    "ToolRuntime",
    "WorkspaceRef",
    "build_runtime",
]
