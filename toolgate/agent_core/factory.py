from __future__ import annotations

"""Convenience factories for wiring the dispatch core.

This module contains the composition root: one registry, one ledger, one
skill resolver and one dispatcher, constructed once at process start and
passed by reference.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own executor or approval repository.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from ..core.config import Settings
from ..core.logging_config import setup_logging
from .approvals.ledger import ApprovalLedger
from .capabilities.base import Executor, ToolDescriptor
from .capabilities.builtin import skill_tools
from .capabilities.registry import CapabilityRegistry
from .policy.models import SensitivityPolicy
from .repos.interfaces import ApprovalRepository
from .repos.memory import InMemoryApprovalRepository
from .repos.sql import SqlApprovalRepository, create_all, create_engine, create_sessionmaker
from .runtime.dispatcher import InvocationDispatcher
from .skills.resolver import SkillResolver
from .skills.store import FileSystemSkillStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolRuntime:
    """The wired dispatch core.

    ``engine`` is set when approvals are stored in SQL; call ``start`` to
    create the tables and ``close`` to stop continuations and dispose the
    engine.
    """

    registry: CapabilityRegistry
    ledger: ApprovalLedger
    resolver: SkillResolver
    dispatcher: InvocationDispatcher
    policy: SensitivityPolicy
    engine: Optional[AsyncEngine] = None

    async def start(self) -> None:
        if self.engine is not None:
            await create_all(self.engine)

    async def close(self) -> None:
        await self.dispatcher.shutdown()
        if self.engine is not None:
            await self.engine.dispose()


def build_default_registry(
    resolver: SkillResolver,
    tools: Iterable[ToolDescriptor] = (),
    policy: Optional[SensitivityPolicy] = None,
) -> CapabilityRegistry:
    """
    Build a frozen ``CapabilityRegistry`` with the builtin skill tools plus ``tools``.

    When ``policy`` is given its approval overrides are applied to every
    descriptor before registration.
    """
    reg = CapabilityRegistry()
    for descriptor in [*skill_tools(resolver), *tools]:
        reg.register(descriptor.with_policy(policy) if policy is not None else descriptor)
    reg.freeze()
    return reg


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    tools: Iterable[ToolDescriptor] = (),
    executor: Optional[Executor] = None,
    repository: Optional[ApprovalRepository] = None,
    policy: Optional[SensitivityPolicy] = None,
    configure_logging: bool = False,
) -> ToolRuntime:
    """
    Construct the dispatch core from settings.

    Args:
        settings: Runtime settings. Defaults to a fresh ``Settings()`` read from the environment.
        tools: Additional descriptors registered after the builtin skill tools.
        executor: Executor for tool bodies. Defaults to ``HandlerExecutor``.
        repository: Approval store. Defaults to SQL when ``database_url`` is set,
            otherwise in-memory.
        policy: Sensitivity policy. Defaults to one carrying the configured size limit.
            Its approval overrides are applied to every registered tool.
        configure_logging: Call ``setup_logging`` with the settings' logging options.
    """
    settings = settings or Settings()
    if configure_logging:
        setup_logging(
            log_level=settings.log_level,
            log_format=settings.log_format,
            enable_file=settings.enable_file_logging,
            log_file_dir=settings.log_file_dir,
        )

    policy = policy or SensitivityPolicy(max_tool_args_bytes=settings.safety.max_tool_args_bytes)

    engine: Optional[AsyncEngine] = None
    if repository is None:
        if settings.database_url:
            engine = create_engine(settings.database_url)
            repository = SqlApprovalRepository(session_factory=create_sessionmaker(engine))
            logger.info("Using SQL approval store")
        else:
            repository = InMemoryApprovalRepository()
            logger.info("Using in-memory approval store")

    skills = settings.skills
    resolver = SkillResolver(FileSystemSkillStore(Path(skills.skills_dir), manifest_name=skills.manifest_name))
    registry = build_default_registry(resolver, tools, policy)
    ledger = ApprovalLedger(repository, poll_interval=settings.approvals.poll_interval_seconds)
    dispatcher = InvocationDispatcher(registry, ledger, executor=executor, policy=policy)
    logger.debug(f"Runtime built with {len(registry)} capabilities")

    return ToolRuntime(
        registry=registry,
        ledger=ledger,
        resolver=resolver,
        dispatcher=dispatcher,
        policy=policy,
        engine=engine,
    )
