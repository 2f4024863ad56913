from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.domain import ToolOperationType

DEFAULT_DELETE_TOOLS = frozenset(
    {"fs_rm", "fs_delete", "fs_remove", "file_delete", "file_remove", "rm", "delete", "remove"}
)

DEFAULT_EXECUTE_TOOLS = frozenset(
    {
        "bash_execute",
        "bash_exec",
        "bash",
        "shell_run",
        "shell_execute",
        "shell_exec",
        "shell",
        "execute",
        "exec",
        "run_command",
    }
)

DEFAULT_WRITE_TOOLS = frozenset(
    {"fs_write", "fs_edit", "fs_create", "file_write", "file_edit", "file_create", "write", "edit", "create_file"}
)


class SensitivityPolicy(BaseSchema):
    """
    Configuration for approval gating by tool name.

    Delete and execute tools are sensitive by default. Write tools are classified
    but run without approval unless listed in ``always_require_approval``.
    """

    delete_tools: set[str] = Field(
        default_factory=lambda: set(DEFAULT_DELETE_TOOLS),
        description="Tool names classified as delete operations (sensitive).",
    )
    execute_tools: set[str] = Field(
        default_factory=lambda: set(DEFAULT_EXECUTE_TOOLS),
        description="Tool names classified as command execution (sensitive).",
    )
    write_tools: set[str] = Field(
        default_factory=lambda: set(DEFAULT_WRITE_TOOLS),
        description="Tool names classified as write operations.",
    )
    always_require_approval: set[str] = Field(
        default_factory=set,
        description="Tool names that always require approval regardless of classification.",
    )
    never_require_approval: set[str] = Field(
        default_factory=set,
        description="Tool names that never require approval regardless of classification.",
    )
    max_tool_args_bytes: int = Field(default=64_000, ge=1, le=5_000_000)


@dataclass(frozen=True)
class ToolClassification:
    """
    Result of classifying a tool by name.

    Attributes:
        is_sensitive: Whether invocations need human approval before execution.
        operation_type: What kind of operation the tool performs.
    """

    is_sensitive: bool
    operation_type: ToolOperationType
