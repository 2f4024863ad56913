"""Invocation runtime.

The runtime takes a tool call (call id, tool name, arguments, caller context)
and drives it through validation, sensitivity gating and execution:

- non-sensitive tools execute immediately,
- sensitive tools suspend on an approval and resume once it is decided.

The main entry point is ``InvocationDispatcher``.
"""

from .dispatcher import InvocationDispatcher
from .models import InvocationResult, InvocationStatus

__all__ = [
    "InvocationDispatcher",
    "InvocationResult",
    "InvocationStatus",
]
