"""Capability descriptors, registry and execution.

 A *capability* (tool) is a named operation an agent can invoke.

 - ``ToolDescriptor`` describes it: name, argument schema (a Pydantic model
   class), sensitivity and operation type.
 - ``CapabilityRegistry`` maps names to descriptors; it is filled at start-up
   and frozen afterwards.
 - ``Executor`` runs a tool body. ``HandlerExecutor`` calls the handler stored
   on the descriptor.

 Capabilities never decide approvals themselves: gating is enforced by the
 dispatcher before an executor is called.

 This package exports:

 - ``ToolDescriptor``/``NoArgs``: description and default argument schema.
 - ``CapabilityRegistry``: name → descriptor mapping.
 - ``ExecutionContext``/``Executor``/``HandlerExecutor``: execution input and runners.
 - ``skill_tools``: the builtin ``skill_list``/``skill_activate``/``skill_resource`` tools.
 """

from .base import ExecutionContext, Executor, HandlerExecutor, NoArgs, ToolDescriptor
from .builtin import SkillActivateTool, SkillListTool, SkillResourceTool, skill_tools
from .registry import CapabilityRegistry

__all__ = [
    "CapabilityRegistry",
    "ExecutionContext",
    "Executor",
    "HandlerExecutor",
    "NoArgs",
    "SkillActivateTool",
    "SkillListTool",
    "SkillResourceTool",
    "ToolDescriptor",
    "skill_tools",
]
