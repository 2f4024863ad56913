from __future__ import annotations

from pathlib import Path

import pytest

from toolgate.agent_core.approvals.ledger import ApprovalLedger
from toolgate.agent_core.capabilities.builtin import skill_tools
from toolgate.agent_core.capabilities.registry import CapabilityRegistry
from toolgate.agent_core.errors import ExecutionFailed, ResourcePathEscape
from toolgate.agent_core.runtime.dispatcher import InvocationDispatcher
from toolgate.agent_core.runtime.models import InvocationStatus
from toolgate.agent_core.schemas.domain import ToolOperationType
from toolgate.agent_core.skills.resolver import SkillResolver
from toolgate.agent_core.skills.store import FileSystemSkillStore


@pytest.fixture
def resolver(skills_dir: Path) -> SkillResolver:
    return SkillResolver(FileSystemSkillStore(skills_dir))


@pytest.fixture
def dispatcher(resolver: SkillResolver) -> InvocationDispatcher:
    reg = CapabilityRegistry()
    for desc in skill_tools(resolver):
        reg.register(desc)
    reg.freeze()
    return InvocationDispatcher(reg, ApprovalLedger())


def test_skill_tools_are_non_sensitive_reads(resolver: SkillResolver) -> None:
    descriptors = {d.name: d for d in skill_tools(resolver)}
    assert set(descriptors) == {"skill_list", "skill_activate", "skill_resource"}
    for d in descriptors.values():
        assert d.is_sensitive is False
        assert d.operation_type == ToolOperationType.read
        assert d.handler is not None


@pytest.mark.asyncio
async def test_skill_list(dispatcher: InvocationDispatcher, resolver: SkillResolver, invocation_ctx) -> None:
    await resolver.activate("memory")

    result = await dispatcher.invoke("c1", "skill_list", {}, invocation_ctx)

    assert result.status == InvocationStatus.completed
    out = result.output
    assert out["ok"] is True
    assert out["count"] == 2
    assert out["activated_count"] == 1
    memory = next(s for s in out["skills"] if s["name"] == "memory")
    assert memory["activated"] is True
    assert memory["has_scripts"] is True
    assert memory["has_assets"] is False


@pytest.mark.asyncio
async def test_skill_activate(dispatcher: InvocationDispatcher, resolver: SkillResolver, invocation_ctx) -> None:
    result = await dispatcher.invoke("c1", "skill_activate", {"name": "memory"}, invocation_ctx)

    out = result.output
    assert out["ok"] is True
    assert out["message"] == 'Skill "memory" activated'
    assert "Store facts under references/." in out["instructions"]
    assert out["allowed_tools"] == ["fs_read", "fs_write"]
    assert out["resources"] == ["references/schema.md", "scripts/dump.sh"]
    assert out["has_references"] is True
    assert resolver.is_activated("memory")


@pytest.mark.asyncio
async def test_skill_activate_unknown_returns_recommendations(dispatcher: InvocationDispatcher, invocation_ctx) -> None:
    result = await dispatcher.invoke("c1", "skill_activate", {"name": "ghost"}, invocation_ctx)

    out = result.output
    assert out["ok"] is False
    assert "ghost" in out["error"]
    assert "memory" in out["error"]
    assert out["recommendations"]


@pytest.mark.asyncio
async def test_skill_resource_accepts_camel_case_arguments(dispatcher: InvocationDispatcher, invocation_ctx) -> None:
    result = await dispatcher.invoke(
        "c1", "skill_resource", {"skillName": "memory", "resourcePath": "references/schema.md"}, invocation_ctx
    )

    assert result.output == {
        "ok": True,
        "skill_name": "memory",
        "resource_path": "references/schema.md",
        "content": "facts: list of strings\n",
    }


@pytest.mark.asyncio
async def test_skill_resource_missing_file(dispatcher: InvocationDispatcher, invocation_ctx) -> None:
    result = await dispatcher.invoke(
        "c1", "skill_resource", {"skill_name": "memory", "resource_path": "references/none.md"}, invocation_ctx
    )

    out = result.output
    assert out["ok"] is False
    assert any("references/schema.md" in r for r in out["recommendations"])


@pytest.mark.asyncio
async def test_skill_resource_escape_is_a_hard_failure(dispatcher: InvocationDispatcher, invocation_ctx) -> None:
    with pytest.raises(ExecutionFailed) as exc:
        await dispatcher.invoke(
            "c1", "skill_resource", {"skill_name": "memory", "resource_path": "../../etc/passwd"}, invocation_ctx
        )
    assert isinstance(exc.value.cause, ResourcePathEscape)
