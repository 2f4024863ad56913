from __future__ import annotations

from pathlib import Path

import pytest

from toolgate.agent_core.schemas.domain import InvocationContext, WorkspaceRef

MEMORY_MANIFEST = """---
name: memory
description: Use when the user asks to remember or recall facts
version: "1.2"
allowed-tools: [fs_read, fs_write]
---
# Memory

Store facts under references/.
"""


@pytest.fixture
def invocation_ctx() -> InvocationContext:
    return InvocationContext(
        agent_id="agent-1",
        user_id="user-1",
        session_id="session-1",
        workspace=WorkspaceRef(workspace_id="ws-1", owner_id="user-1", name="demo", work_dir="/tmp/demo"),
    )


@pytest.fixture
def skills_dir(tmp_path: Path) -> Path:
    """A skills tree with ``memory`` (frontmatter + resources) and ``notes`` (plain markdown)."""
    root = tmp_path / "skills"

    memory = root / "memory"
    (memory / "references").mkdir(parents=True)
    (memory / "scripts").mkdir()
    (memory / "SKILL.md").write_text(MEMORY_MANIFEST, encoding="utf-8")
    (memory / "references" / "schema.md").write_text("facts: list of strings\n", encoding="utf-8")
    (memory / "scripts" / "dump.sh").write_text("#!/bin/sh\necho dump\n", encoding="utf-8")

    notes = root / "notes"
    notes.mkdir()
    (notes / "SKILL.md").write_text("# notes\nTake meeting notes.\n", encoding="utf-8")

    # No manifest: not a skill.
    (root / "scratch").mkdir()
    return root
