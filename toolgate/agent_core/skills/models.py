"""Skill descriptors and activation records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field

from ..schemas.base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SkillActivationSource(str, Enum):
    agent = "agent"
    user = "user"
    auto = "auto"


class SkillManifest(BaseSchema):
    """Parsed ``SKILL.md``: frontmatter fields plus the markdown body."""

    name: str
    description: str = ""
    version: Optional[str] = None
    allowed_tools: List[str] = Field(default_factory=list)
    resources: Optional[List[str]] = None
    body: str = ""


class Skill(BaseSchema):
    """
    A fully loaded skill.

    ``resources`` are paths relative to the skill root; ``body`` holds the
    instructions handed back to the caller as opaque payload.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    path: str
    body: str = ""
    version: Optional[str] = None
    allowed_tools: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)

    def resources_under(self, prefix: str) -> List[str]:
        prefix = prefix.rstrip("/") + "/"
        return [r for r in self.resources if r.startswith(prefix)]


class SkillSummary(BaseSchema):
    """Metadata-only view used for listing skills before activation."""

    name: str
    description: str = ""
    activated: bool = False


class SkillActivation(BaseSchema):
    name: str
    activated_at: datetime = Field(default_factory=_utc_now)
    activated_by: SkillActivationSource = SkillActivationSource.agent
    tools_granted: List[str] = Field(default_factory=list)
