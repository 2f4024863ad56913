from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from toolgate.agent_core.capabilities.base import ToolDescriptor
from toolgate.agent_core.factory import build_runtime
from toolgate.agent_core.policy.models import SensitivityPolicy
from toolgate.agent_core.repos.memory import InMemoryApprovalRepository
from toolgate.agent_core.repos.sql import SqlApprovalRepository
from toolgate.agent_core.runtime.models import InvocationStatus
from toolgate.core.config import Settings


def _settings(skills_dir: Path, **extra) -> Settings:
    return Settings(skills_dir=str(skills_dir), **extra)


def test_build_runtime_wires_in_memory_defaults(skills_dir: Path) -> None:
    rt = build_runtime(_settings(skills_dir, max_tool_args_bytes=1234))

    assert isinstance(rt.ledger.repository, InMemoryApprovalRepository)
    assert rt.engine is None
    assert rt.registry.frozen is True
    assert {d.name for d in rt.registry.list()} == {"skill_list", "skill_activate", "skill_resource"}
    assert rt.policy.max_tool_args_bytes == 1234
    assert rt.dispatcher.registry is rt.registry
    assert rt.dispatcher.ledger is rt.ledger


def test_build_runtime_uses_sql_store_when_database_url_set(skills_dir: Path) -> None:
    rt = build_runtime(_settings(skills_dir, database_url="sqlite+aiosqlite:///:memory:"))
    assert isinstance(rt.ledger.repository, SqlApprovalRepository)
    assert rt.engine is not None


def test_explicit_repository_wins(skills_dir: Path) -> None:
    repo = InMemoryApprovalRepository()
    rt = build_runtime(_settings(skills_dir, database_url="sqlite+aiosqlite:///:memory:"), repository=repo)
    assert rt.ledger.repository is repo
    assert rt.engine is None


@pytest.mark.asyncio
async def test_runtime_gates_registered_tool(skills_dir: Path, invocation_ctx) -> None:
    async def _rm(args, ctx):
        return f"removed by approval of {ctx.authorized_by}"

    rt = build_runtime(_settings(skills_dir), tools=[ToolDescriptor.build("fs_rm", handler=_rm)])
    await rt.start()

    pending = await rt.dispatcher.invoke("c1", "fs_rm", {}, invocation_ctx)
    assert pending.status == InvocationStatus.pending_approval

    await rt.ledger.approve(pending.approval.approval_id, "admin")
    final = await asyncio.wait_for(pending.wait(), timeout=1)
    assert final.output == "removed by approval of admin"

    await rt.close()


def test_runtime_policy_overrides_reach_registered_tools(skills_dir: Path) -> None:
    policy = SensitivityPolicy(
        always_require_approval={"notes.append", "skill_resource"},
        never_require_approval={"shell.run"},
    )
    rt = build_runtime(
        _settings(skills_dir),
        tools=[ToolDescriptor.build("notes.append"), ToolDescriptor.build("shell.run")],
        policy=policy,
    )

    assert rt.registry.lookup("notes.append").is_sensitive is True
    assert rt.registry.lookup("shell.run").is_sensitive is False
    assert rt.registry.lookup("skill_resource").is_sensitive is True
    assert rt.registry.lookup("skill_list").is_sensitive is False
