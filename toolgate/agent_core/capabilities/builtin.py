from __future__ import annotations

"""Builtin skill tools.

These tools let an agent discover and load skills progressively:

- ``skill_list``: names and trigger descriptions only.
- ``skill_activate``: load a skill's instructions and resource index.
- ``skill_resource``: read one resource file of a skill.

All three are non-sensitive reads. Expected failures (unknown skill, missing
file) are returned as ``{"ok": False, "error": ..., "recommendations": [...]}``
so the model can correct itself. A resource path that escapes the skill root
is not softened: ``ResourcePathEscape`` propagates and the dispatcher reports
it as ``ExecutionFailed``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from pydantic import Field

from ..errors import SkillNotFound
from ..schemas.base import WireSchema
from ..schemas.domain import ToolOperationType
from ..skills.models import Skill, SkillActivationSource
from ..skills.resolver import SkillResolver
from ..skills.store import RESOURCE_DIRS
from .base import ExecutionContext, NoArgs, ToolDescriptor

_UNKNOWN_SKILL_HINTS = [
    "Use skill_list to view available skills",
    "Verify the skill name spelling",
]


class SkillActivateArgs(WireSchema):
    name: str = Field(..., min_length=1, description="Name of the skill to activate")


class SkillResourceArgs(WireSchema):
    skill_name: str = Field(..., min_length=1, description="Name of the skill")
    resource_path: str = Field(..., min_length=1, description="Path relative to the skill directory")


def _resource_flags(skill: Skill) -> Dict[str, bool]:
    return {f"has_{d}": bool(skill.resources_under(d)) for d in RESOURCE_DIRS}


@dataclass(frozen=True)
class SkillListTool:
    """List available skills and whether they are activated."""

    resolver: SkillResolver

    name = "skill_list"
    description = "List available skills with their trigger descriptions."

    async def __call__(self, args: NoArgs, ctx: ExecutionContext) -> Dict[str, Any]:
        summaries = await self.resolver.list_skills()
        skills = []
        for summary in summaries:
            item: Dict[str, Any] = summary.model_dump()
            cached = self.resolver.get(summary.name)
            if cached is not None:
                item.update(_resource_flags(cached))
            skills.append(item)
        return {
            "ok": True,
            "skills": skills,
            "count": len(skills),
            "activated_count": sum(1 for s in summaries if s.activated),
        }

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor.build(
            self.name,
            NoArgs,
            handler=self,
            description=self.description,
            is_sensitive=False,
            operation_type=ToolOperationType.read,
        )


@dataclass(frozen=True)
class SkillActivateTool:
    """
    Activate a skill and return its full instructions.

    The result carries the instruction body and the resource index; resources
    themselves are loaded separately through ``skill_resource``.
    """

    resolver: SkillResolver

    name = "skill_activate"
    description = "Activate a skill and load its full instructions into context."

    async def __call__(self, args: SkillActivateArgs, ctx: ExecutionContext) -> Dict[str, Any]:
        try:
            skill = await self.resolver.activate(args.name, SkillActivationSource.agent)
        except SkillNotFound as e:
            return {"ok": False, "error": str(e), "recommendations": list(_UNKNOWN_SKILL_HINTS)}
        return {
            "ok": True,
            "message": f'Skill "{skill.name}" activated',
            "description": skill.description,
            "instructions": skill.body,
            "allowed_tools": list(skill.allowed_tools),
            "resources": list(skill.resources),
            **_resource_flags(skill),
        }

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor.build(
            self.name,
            SkillActivateArgs,
            handler=self,
            description=self.description,
            is_sensitive=False,
            operation_type=ToolOperationType.read,
        )


@dataclass(frozen=True)
class SkillResourceTool:
    """Load one resource file (references, assets, scripts) of a skill."""

    resolver: SkillResolver

    name = "skill_resource"
    description = "Load a resource file from a skill (references, assets, scripts)."

    async def __call__(self, args: SkillResourceArgs, ctx: ExecutionContext) -> Dict[str, Any]:
        try:
            content = await self.resolver.fetch_resource(args.skill_name, args.resource_path)
        except SkillNotFound as e:
            return {"ok": False, "error": str(e), "recommendations": list(_UNKNOWN_SKILL_HINTS)}
        except OSError as e:
            skill = self.resolver.get(args.skill_name)
            available = list(skill.resources) if skill is not None else []
            return {
                "ok": False,
                "error": f"cannot read resource {args.resource_path!r}: {e}",
                "recommendations": [
                    "Check that the resource path is correct",
                    "Confirm the file exists in the skill directory",
                    f"Available resources: {available}",
                ],
            }
        return {
            "ok": True,
            "skill_name": args.skill_name,
            "resource_path": args.resource_path,
            "content": content,
        }

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor.build(
            self.name,
            SkillResourceArgs,
            handler=self,
            description=self.description,
            is_sensitive=False,
            operation_type=ToolOperationType.read,
        )


def skill_tools(resolver: SkillResolver) -> List[ToolDescriptor]:
    """Descriptors of all builtin skill tools bound to ``resolver``."""
    return [
        SkillListTool(resolver).descriptor(),
        SkillActivateTool(resolver).descriptor(),
        SkillResourceTool(resolver).descriptor(),
    ]
