"""Skills: instruction bundles resolved by name on demand.

- ``SkillStore`` / ``FileSystemSkillStore``: narrow read access to skill content.
- ``SkillResolver``: load-once cache, activation tracking and sandboxed
  resource fetching.
"""

from .models import Skill, SkillActivation, SkillActivationSource, SkillManifest, SkillSummary
from .resolver import SkillResolver, normalize_resource_path
from .store import DEFAULT_MANIFEST_NAME, FileSystemSkillStore, SkillStore, parse_manifest

__all__ = [
    "DEFAULT_MANIFEST_NAME",
    "FileSystemSkillStore",
    "Skill",
    "SkillActivation",
    "SkillActivationSource",
    "SkillManifest",
    "SkillResolver",
    "SkillStore",
    "SkillSummary",
    "normalize_resource_path",
    "parse_manifest",
]
