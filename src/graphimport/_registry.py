# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Registry mapping foreign operator types to operator classes."""

from __future__ import annotations

__all__ = [
    "OperatorRegistry",
    "registry",
]

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graphimport._ops._base import Operator

logger = logging.getLogger(__name__)

OperatorClass = type["Operator"]


class OperatorRegistry:
    """Registry for operator classes.

    Operators are registered by (domain, op_type) with a minimum opset version.
    Lookup returns the registration with the highest ``since_version`` that
    does not exceed the requested version.

    Example::

        from graphimport import registry

        @registry.register("", "Range", since_version=11)
        class Range(Operator):
            ...

        cls = registry.get("", "Range", version=17)
    """

    def __init__(self) -> None:
        # {(domain, op_type): [(since_version, cls), ...]} sorted by version descending
        self._classes: dict[tuple[str, str], list[tuple[int, OperatorClass]]] = {}

    def register(
        self,
        domain: str,
        op_type: str,
        since_version: int = 1,
    ) -> Callable[[OperatorClass], OperatorClass]:
        """Register an operator class for an operator type.

        Args:
            domain: Operator domain (``""`` for the default domain).
            op_type: Operator type (e.g. ``"Range"``).
            since_version: First opset version the class applies to.

        Returns:
            A class decorator that registers the class.
        """

        def decorator(cls: OperatorClass) -> OperatorClass:
            key = (_normalize_domain(domain), op_type)
            entries = self._classes.setdefault(key, [])
            entries.append((since_version, cls))
            entries.sort(key=lambda x: x[0], reverse=True)
            logger.debug(
                "Registered %s for %s::%s (since_version=%s)",
                cls.__name__,
                domain or "ai.onnx",
                op_type,
                since_version,
            )
            return cls

        return decorator

    def get(self, domain: str, op_type: str, *, version: int) -> OperatorClass | None:
        """Get the operator class for an operator type.

        Args:
            domain: Operator domain.
            op_type: Operator type.
            version: Opset version of the domain in the imported graph.

        Returns:
            The operator class, or None if none is registered for this version.
        """
        for since_version, cls in self._classes.get((_normalize_domain(domain), op_type), ()):
            if since_version <= version:
                return cls
        return None

    def has(self, domain: str, op_type: str) -> bool:
        """Check if any operator class is registered for an operator type."""
        return (_normalize_domain(domain), op_type) in self._classes

    def clear(self) -> None:
        """Clear all registered classes (mainly for testing)."""
        self._classes.clear()


def _normalize_domain(domain: str) -> str:
    return "" if domain == "ai.onnx" else domain


# Global registry instance
registry = OperatorRegistry()
