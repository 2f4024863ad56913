from __future__ import annotations

"""Skill content store.

The resolver reads skills only through the narrow ``SkillStore`` protocol.
``FileSystemSkillStore`` implements it over a directory tree where every
sub-directory holding a manifest (``SKILL.md`` by default) is one skill::

    skills/
      memory/
        SKILL.md
        references/schema.md
        scripts/dump.sh

A manifest starts with YAML frontmatter followed by markdown instructions::

    ---
    name: memory
    description: Use when the user asks to remember something
    allowed-tools: [fs_read]
    ---
    # Memory
    ...
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any, Iterable, List, Protocol

import yaml

from ..errors import ResourcePathEscape
from .models import SkillManifest

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_NAME = "SKILL.md"
RESOURCE_DIRS = ("scripts", "references", "assets")

_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v for v in re.split(r"[,\s]+", value) if v]
    return [str(v) for v in value]


def parse_manifest(text: str, *, default_name: str) -> SkillManifest:
    """
    Parse a skill manifest.

    Frontmatter keys: ``name``, ``description``, ``version``,
    ``allowed-tools`` (list or comma/space separated string) and
    ``resources`` (list of relative paths). Without frontmatter the first
    ``# `` heading is the name and the first plain line the description.

    Raises:
        ValueError: If the frontmatter is not valid YAML or not a mapping.
    """
    match = _FRONTMATTER.match(text)
    if match is None:
        lines = text.splitlines()
        name = default_name
        for line in lines[:20]:
            if line.startswith("# "):
                name = line[2:].strip() or default_name
                break
        description = next((ln.strip() for ln in lines if ln.strip() and not ln.startswith("#")), "")
        return SkillManifest(name=name, description=description, body=text)

    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"invalid skill manifest frontmatter (skill {default_name}): {e}") from e
    if not isinstance(meta, dict):
        raise ValueError(f"skill manifest frontmatter must be a mapping (skill {default_name})")

    resources = meta.get("resources")
    return SkillManifest(
        name=str(meta.get("name") or default_name),
        description=str(meta.get("description") or "").strip(),
        version=str(meta["version"]) if meta.get("version") is not None else None,
        allowed_tools=_as_str_list(meta.get("allowed-tools", meta.get("allowed_tools"))),
        resources=_as_str_list(resources) if resources is not None else None,
        body=text[match.end():],
    )


class SkillStore(Protocol):
    """Read-only access to skill content."""

    manifest_name: str

    async def list_names(self) -> List[str]:
        """Return the names of all skills in the store."""
        ...

    async def has_skill(self, skill_name: str) -> bool: ...

    def location(self, skill_name: str) -> str:
        """Return a display location (path/URI) of the skill root."""
        ...

    async def read_text(self, skill_name: str, relative_path: str) -> str:
        """
        Read a file relative to the skill root.

        Raises:
            FileNotFoundError: If the file does not exist.
            ResourcePathEscape: If the resolved file lies outside the skill root.
        """
        ...

    async def list_files(self, skill_name: str, subdirs: Iterable[str]) -> List[str]:
        """List files (relative to the skill root) below the given sub-directories."""
        ...


def _is_plain_segment(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name and "\x00" not in name


class FileSystemSkillStore(SkillStore):
    """``SkillStore`` over a local directory; blocking IO runs in a worker thread."""

    def __init__(self, base_dir: str | Path, *, manifest_name: str = DEFAULT_MANIFEST_NAME) -> None:
        self._base_dir = Path(base_dir)
        self.manifest_name = manifest_name

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _skill_dir(self, skill_name: str) -> Path:
        if not _is_plain_segment(skill_name):
            raise FileNotFoundError(f"invalid skill name: {skill_name!r}")
        return self._base_dir / skill_name

    def location(self, skill_name: str) -> str:
        return str(self._skill_dir(skill_name))

    def _list_names_sync(self) -> List[str]:
        if not self._base_dir.is_dir():
            logger.warning("Skills directory does not exist: %s", self._base_dir)
            return []
        return sorted(
            p.name for p in self._base_dir.iterdir() if p.is_dir() and (p / self.manifest_name).is_file()
        )

    async def list_names(self) -> List[str]:
        return await asyncio.to_thread(self._list_names_sync)

    async def has_skill(self, skill_name: str) -> bool:
        if not _is_plain_segment(skill_name):
            return False
        return await asyncio.to_thread((self._base_dir / skill_name / self.manifest_name).is_file)

    def _read_text_sync(self, skill_name: str, relative_path: str) -> str:
        root = self._skill_dir(skill_name).resolve()
        target = (root / relative_path).resolve()
        # Symlinks may still point outside even after the caller normalised the path.
        if target != root and root not in target.parents:
            raise ResourcePathEscape(skill_name, relative_path)
        return target.read_text(encoding="utf-8")

    async def read_text(self, skill_name: str, relative_path: str) -> str:
        return await asyncio.to_thread(self._read_text_sync, skill_name, relative_path)

    def _list_files_sync(self, skill_name: str, subdirs: Iterable[str]) -> List[str]:
        root = self._skill_dir(skill_name)
        found: List[str] = []
        for sub in subdirs:
            base = root / sub
            if not base.is_dir():
                continue
            for dirpath, _dirnames, filenames in os.walk(base):
                for filename in sorted(filenames):
                    rel = Path(dirpath, filename).relative_to(root)
                    found.append(rel.as_posix())
        return sorted(found)

    async def list_files(self, skill_name: str, subdirs: Iterable[str]) -> List[str]:
        return await asyncio.to_thread(self._list_files_sync, skill_name, tuple(subdirs))
