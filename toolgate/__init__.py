"""toolgate.

This package contains a runtime that lets an autonomous agent invoke named
capabilities ("tools") against a workspace, gating sensitive operations behind
a human approval and exposing skills that are loaded on demand.

High-level architecture
-----------------------

- **Non-sensitive tools** (reads, listings) execute as soon as their arguments
  validate.
- **Sensitive tools** (deletes, command execution) open an approval record and
  suspend. Execution resumes only after a human or external policy process
  approves; a denial settles the call without running the tool.

Core subpackages
----------------

- ``toolgate.agent_core``:

  - Capability descriptors, the registry and executors.
  - The sensitivity policy.
  - The approval ledger with in-memory and SQL persistence.
  - The invocation dispatcher.
  - The skill store and resolver.

- ``toolgate.core``: settings and logging setup.

Typical workflow
----------------

1. ``build_runtime()`` wires a registry, ledger, resolver and dispatcher.
2. ``dispatcher.invoke(call_id, tool, args, ctx)`` runs or gates the call.
3. ``ledger.approve(...)`` / ``ledger.deny(...)`` decides a pending approval.
4. ``result.wait()`` yields the final outcome of a gated call.
"""
