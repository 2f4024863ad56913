from __future__ import annotations

"""Capability descriptors and execution data models.

A capability (tool) is described by a ``ToolDescriptor``: a unique name, an
argument schema expressed as a Pydantic model class, and its sensitivity
classification. The dispatcher validates arguments against the schema and
hands the validated model to an ``Executor`` together with an
``ExecutionContext``.

Executors should:

- treat the workspace in the context as opaque,
- return structured outputs,
- avoid performing approval decisions themselves (gating is enforced by the
  dispatcher before invocation).
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..policy.models import SensitivityPolicy
from ..policy.sensitivity import approval_override, classify_tool
from ..schemas.domain import Approval, InvocationContext, ToolOperationType, WorkspaceRef


class NoArgs(BaseModel):
    """Argument schema for tools that take no arguments."""

    model_config = ConfigDict(extra="forbid")


@dataclass(frozen=True)
class ExecutionContext:
    """Execution context passed to executors.

    Attributes
    ----------
    call_id:
        Correlation key of the invocation.
    tool_name:
        The capability being executed.
    invocation:
        The caller-supplied ``InvocationContext`` (agent, user, session, workspace).
    approval:
        The decided ``Approval`` when execution follows a human decision,
        ``None`` for auto-executed tools.
    """

    call_id: str
    tool_name: str
    invocation: InvocationContext
    approval: Optional[Approval] = None

    @property
    def agent_id(self) -> str:
        return self.invocation.agent_id

    @property
    def user_id(self) -> str:
        return self.invocation.user_id

    @property
    def session_id(self) -> Optional[str]:
        return self.invocation.session_id

    @property
    def workspace(self) -> Optional[WorkspaceRef]:
        return self.invocation.workspace

    @property
    def authorized_by(self) -> Optional[str]:
        """Identity that approved this execution, if it was gated."""
        return self.approval.decided_by if self.approval is not None else None

    @property
    def approval_note(self) -> Optional[str]:
        return self.approval.note if self.approval is not None else None


ToolHandler = Callable[[Any, ExecutionContext], Awaitable[Any]]


class ToolDescriptor(BaseModel):
    """Immutable description of an invocable capability.

    When ``is_sensitive`` or ``operation_type`` are not given they are derived
    from the tool name with ``classify_tool``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Unique identifier for the tool")
    description: str = Field(default="", description="Human-readable description of what the tool does")
    input_schema: Type[BaseModel] = Field(default=NoArgs, description="Pydantic model class for argument validation")
    is_sensitive: bool = Field(default=False, description="Whether invocations require human approval")
    operation_type: ToolOperationType = Field(default=ToolOperationType.other)
    handler: Optional[Callable[..., Any]] = Field(
        default=None, description="Async handler executing the tool, used by HandlerExecutor"
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_classification(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        name = data.get("name")
        if not name or (data.get("is_sensitive") is not None and data.get("operation_type") is not None):
            return data
        classification = classify_tool(str(name))
        data = dict(data)
        if data.get("is_sensitive") is None:
            data["is_sensitive"] = classification.is_sensitive
        if data.get("operation_type") is None:
            data["operation_type"] = classification.operation_type
        return data

    @classmethod
    def build(
        cls,
        name: str,
        input_schema: Type[BaseModel] = NoArgs,
        *,
        handler: Optional[Callable[..., Any]] = None,
        description: str = "",
        is_sensitive: Optional[bool] = None,
        operation_type: Optional[ToolOperationType] = None,
        policy: Optional[SensitivityPolicy] = None,
    ) -> "ToolDescriptor":
        """Create a descriptor, classifying with ``policy`` where fields are omitted."""
        if policy is not None and (is_sensitive is None or operation_type is None):
            classification = classify_tool(name, policy)
            if is_sensitive is None:
                is_sensitive = classification.is_sensitive
            if operation_type is None:
                operation_type = classification.operation_type
        return cls(
            name=name,
            description=description,
            input_schema=input_schema,
            is_sensitive=is_sensitive,
            operation_type=operation_type,
            handler=handler,
        )

    def with_policy(self, policy: SensitivityPolicy) -> "ToolDescriptor":
        """
        Apply the policy's ``always_require_approval`` / ``never_require_approval``
        entries to an already-built descriptor.

        Name-based classification is fixed when the descriptor is built; the
        explicit overrides of the runtime policy still win over it.
        """
        override = approval_override(self.name, policy)
        if override is None or override == self.is_sensitive:
            return self
        return self.model_copy(update={"is_sensitive": override})

    def to_dict(self) -> Dict[str, Any]:
        """Convert the descriptor to a dictionary with its JSON schema."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema.model_json_schema(),
            "is_sensitive": self.is_sensitive,
            "operation_type": self.operation_type.value,
        }


class Executor(Protocol):
    """Protocol for the component that actually runs a tool body."""

    async def run(self, tool_name: str, arguments: BaseModel, context: ExecutionContext) -> Any: ...


class HandlerExecutor(Executor):
    """Executor that calls the ``handler`` attached to each descriptor."""

    def __init__(self, registry: Any) -> None:
        self._registry = registry

    async def run(self, tool_name: str, arguments: BaseModel, context: ExecutionContext) -> Any:
        descriptor = self._registry.lookup(tool_name)
        if descriptor.handler is None:
            raise RuntimeError(f"no handler configured for tool: {tool_name}")
        result = descriptor.handler(arguments, context)
        if inspect.isawaitable(result):
            result = await result
        return result
