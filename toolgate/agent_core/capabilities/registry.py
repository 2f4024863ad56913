from __future__ import annotations

"""Capability registry.

The registry maps a tool name to its immutable ``ToolDescriptor``.

Registration is append-only and expected during process start-up only. Once
``freeze`` has been called the table is read-only and lookups run without
synchronization.
"""

import logging
from typing import Dict, List

from ..errors import CapabilityNotFound, DuplicateCapability
from .base import ToolDescriptor

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    In-memory mapping of tool names to descriptors.

    Notes:
        - ``register`` rejects a name that is already present.
        - ``lookup`` raises ``CapabilityNotFound`` (a ``KeyError``) if the tool is missing.
        - ``list`` returns a snapshot in registration order.
    """

    def __init__(self) -> None:
        """Initialize an empty capability registry."""
        self._tools: Dict[str, ToolDescriptor] = {}
        self._frozen = False

    def register(self, descriptor: ToolDescriptor) -> None:
        """
        Register a capability descriptor.

        Args:
            descriptor: The descriptor to add.

        Raises:
            DuplicateCapability: If a descriptor with the same name is registered.
            RuntimeError: If the registry has been frozen.
        """
        if self._frozen:
            raise RuntimeError("capability registry is frozen")
        if descriptor.name in self._tools:
            raise DuplicateCapability(descriptor.name)
        self._tools[descriptor.name] = descriptor
        logger.debug(
            "Registered capability %s (sensitive=%s, operation=%s)",
            descriptor.name,
            descriptor.is_sensitive,
            descriptor.operation_type.value,
        )

    def lookup(self, name: str) -> ToolDescriptor:
        """
        Retrieve a registered descriptor by name.

        Raises:
            CapabilityNotFound: If no capability is registered with the given name.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise CapabilityNotFound(name) from None

    def has(self, name: str) -> bool:
        return name in self._tools

    def list(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def freeze(self) -> None:
        """Mark start-up registration as complete."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._tools)
