from __future__ import annotations

"""On-demand skill resolution.

Skills are disclosed progressively:

1. ``list_skills`` returns name and trigger description only.
2. ``activate`` loads the manifest body and the resource index, then caches the
   ``Skill`` for the lifetime of the process.
3. ``fetch_resource`` reads one resource file, after checking that the path
   stays inside the skill root.

The cache is filled at most once per name. Concurrent first activations share
a single in-flight load; readers of an already cached skill never wait.
``reload`` drops a cached entry so the next activation re-reads the store.
"""

import asyncio
import logging
import posixpath
from pathlib import PureWindowsPath
from typing import Dict, List, Optional, Set, Tuple

from ..errors import ResourcePathEscape, SkillNotFound
from .models import Skill, SkillActivation, SkillActivationSource, SkillSummary
from .store import RESOURCE_DIRS, SkillStore, parse_manifest

logger = logging.getLogger(__name__)


def normalize_resource_path(skill_name: str, resource_path: str) -> str:
    """
    Normalize a resource path relative to the skill root.

    The path is rejected, never clamped, when it is absolute, carries a drive
    letter, or walks above the root after ``..`` segments are collapsed.

    Raises:
        ValueError: If the path is empty.
        ResourcePathEscape: If the path leaves the skill root.
    """
    raw = (resource_path or "").strip()
    if not raw:
        raise ValueError("resource path is empty")
    if "\x00" in raw:
        raise ResourcePathEscape(skill_name, resource_path)

    win = PureWindowsPath(raw)
    candidate = raw.replace("\\", "/")
    if candidate.startswith("/") or win.drive or win.root:
        raise ResourcePathEscape(skill_name, resource_path)

    normalized = posixpath.normpath(candidate)
    if normalized in (".", "..") or normalized.startswith("../"):
        raise ResourcePathEscape(skill_name, resource_path)
    return normalized


class SkillResolver:
    """Load-once cache of skills backed by a ``SkillStore``."""

    def __init__(self, store: SkillStore) -> None:
        self._store = store
        self._cache: Dict[str, Skill] = {}
        self._loading: Dict[str, asyncio.Future[Skill]] = {}
        self._resources: Dict[Tuple[str, str], str] = {}
        self._activations: Dict[str, SkillActivation] = {}

    @property
    def store(self) -> SkillStore:
        return self._store

    async def _read_skill(self, name: str) -> Skill:
        if not await self._store.has_skill(name):
            raise SkillNotFound(name, available=await self._store.list_names())

        text = await self._store.read_text(name, self._store.manifest_name)
        manifest = parse_manifest(text, default_name=name)

        if manifest.resources is not None:
            resources = [normalize_resource_path(name, r) for r in manifest.resources]
        else:
            resources = await self._store.list_files(name, RESOURCE_DIRS)

        return Skill(
            name=name,
            description=manifest.description,
            path=self._store.location(name),
            body=manifest.body,
            version=manifest.version,
            allowed_tools=manifest.allowed_tools,
            resources=resources,
        )

    async def _load(self, name: str) -> Skill:
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        pending = self._loading.get(name)
        if pending is not None:
            return await asyncio.shield(pending)

        pending = asyncio.get_running_loop().create_future()
        self._loading[name] = pending
        try:
            skill = await self._read_skill(name)
        except asyncio.CancelledError:
            self._loading.pop(name, None)
            pending.cancel()
            raise
        except Exception as exc:
            self._loading.pop(name, None)
            pending.set_exception(exc)
            # Mark retrieved; concurrent waiters still observe it.
            pending.exception()
            raise

        if self._loading.get(name) is pending:
            self._cache[name] = skill
            self._loading.pop(name, None)
        pending.set_result(skill)
        logger.info("Loaded skill %s (%d resources)", name, len(skill.resources))
        return skill

    async def activate(
        self,
        name: str,
        activated_by: SkillActivationSource = SkillActivationSource.agent,
    ) -> Skill:
        """
        Activate a skill, loading it from the store on first use.

        Raises:
            SkillNotFound: If the store has no skill with this name.
        """
        skill = await self._load(name)
        if name not in self._activations:
            self._activations[name] = SkillActivation(
                name=name, activated_by=activated_by, tools_granted=list(skill.allowed_tools)
            )
            logger.debug("Activated skill: %s", name)
        return skill

    async def fetch_resource(self, name: str, resource_path: str) -> str:
        """
        Return the content of a resource file of a skill.

        The path is validated before the store is touched. Fetching from a skill
        that is not yet activated activates it.

        Raises:
            ResourcePathEscape: If the path resolves outside the skill root.
            SkillNotFound: If the skill is unknown.
            FileNotFoundError: If the resource does not exist.
        """
        normalized = normalize_resource_path(name, resource_path)
        await self.activate(name)

        key = (name, normalized)
        cached = self._resources.get(key)
        if cached is not None:
            return cached

        content = await self._store.read_text(name, normalized)
        self._resources[key] = content
        return content

    def reload(self, name: str) -> None:
        """Invalidate the cached descriptor and resources of a skill."""
        self._cache.pop(name, None)
        self._loading.pop(name, None)
        for key in [k for k in self._resources if k[0] == name]:
            del self._resources[key]
        logger.info("Invalidated skill cache: %s", name)

    def deactivate(self, name: str) -> None:
        self._activations.pop(name, None)

    def is_activated(self, name: str) -> bool:
        return name in self._activations

    def is_cached(self, name: str) -> bool:
        return name in self._cache

    def get(self, name: str) -> Optional[Skill]:
        return self._cache.get(name)

    def activations(self) -> List[SkillActivation]:
        return list(self._activations.values())

    def granted_tools(self) -> Set[str]:
        """Union of tools granted by all activated skills."""
        tools: Set[str] = set()
        for activation in self._activations.values():
            tools.update(activation.tools_granted)
        return tools

    async def list_skills(self) -> List[SkillSummary]:
        """List skills with metadata only; bodies of uncached skills are not retained."""
        summaries: List[SkillSummary] = []
        for name in await self._store.list_names():
            cached = self._cache.get(name)
            if cached is not None:
                description = cached.description
            else:
                try:
                    text = await self._store.read_text(name, self._store.manifest_name)
                    description = parse_manifest(text, default_name=name).description
                except (OSError, ValueError) as e:
                    logger.warning("Failed to read skill manifest %s: %s", name, e)
                    continue
            summaries.append(SkillSummary(name=name, description=description, activated=self.is_activated(name)))
        return summaries
