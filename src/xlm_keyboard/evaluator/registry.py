"""Evaluator registry with entry-point auto-discovery.

Built-in backends are registered at module import time via the
``@register_evaluator`` decorator. Backends shipped by other packages (native
runtime bindings) are discovered lazily on the first
:meth:`EvaluatorRegistry.get` call via the ``xlm_keyboard.evaluators``
entry-point group.
"""

from __future__ import annotations

import importlib.metadata
import inspect
import logging
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from xlm_keyboard.config import XLMConfig
    from xlm_keyboard.evaluator.base import Evaluator

logger = logging.getLogger("xlm_keyboard")

_ENTRY_POINT_GROUP = "xlm_keyboard.evaluators"


class EvaluatorRegistry:
    """Registry for evaluator classes.

    Discovery chain:

    1. Built-in backends registered via ``@register_evaluator``
    2. Third-party backends discovered via ``xlm_keyboard.evaluators``
       entry points (loaded lazily on first ``get()`` call)
    """

    _registry: ClassVar[dict[str, type[Evaluator]]] = {}
    _entry_points_loaded: ClassVar[bool] = False

    @classmethod
    def register(cls, name: str) -> Callable[[type[Evaluator]], type[Evaluator]]:
        """Decorator to register an evaluator class under a string key.

        Args:
            name: Unique identifier for the backend (e.g., ``'mock'``).

        Returns:
            The original class, unmodified.
        """

        def decorator(evaluator_cls: type[Evaluator]) -> type[Evaluator]:
            cls._registry[name] = evaluator_cls
            return evaluator_cls

        return decorator

    @classmethod
    def get(cls, name: str) -> type[Evaluator]:
        """Look up an evaluator class by name.

        Loads entry points on the first call if not already loaded.

        Raises:
            KeyError: If *name* is not found after loading entry points.
        """
        if name in cls._registry:
            return cls._registry[name]

        if not cls._entry_points_loaded:
            cls._load_entry_points()
            if name in cls._registry:
                return cls._registry[name]

        available = ", ".join(sorted(cls._registry.keys())) or "(none)"
        raise KeyError(f"Unknown evaluator: {name!r}. Available: {available}")

    @classmethod
    def build(cls, config: XLMConfig) -> Evaluator:
        """Instantiate the backend named by ``config.evaluator_type``.

        The config is passed as the first argument only when the constructor
        declares a ``config`` parameter.
        """
        evaluator_cls = cls.get(config.evaluator_type)
        if _accepts_config(evaluator_cls):
            return evaluator_cls(config)  # type: ignore[call-arg]
        return evaluator_cls()

    @classmethod
    def list_available(cls) -> list[str]:
        """Return all registered backend names, loading entry points first."""
        if not cls._entry_points_loaded:
            cls._load_entry_points()
        return sorted(cls._registry.keys())

    @classmethod
    def _load_entry_points(cls) -> None:
        """Discover and register backends from the entry-point group.

        Errors during individual entry-point loading are logged as warnings
        but do not prevent other backends from loading.
        """
        cls._entry_points_loaded = True
        try:
            eps = importlib.metadata.entry_points(group=_ENTRY_POINT_GROUP)
        except Exception:  # Intentional: must not crash on broken metadata
            logger.warning("Failed to load entry points for %s", _ENTRY_POINT_GROUP, exc_info=True)
            return

        for ep in eps:
            if ep.name in cls._registry:
                # Built-in decorator registration takes precedence.
                continue
            try:
                cls._registry[ep.name] = ep.load()
                logger.debug("Loaded evaluator %r from entry point", ep.name)
            except Exception:  # Intentional: one bad plugin must not block others
                logger.warning(
                    "Failed to load evaluator entry point %r: %s",
                    ep.name,
                    ep.value,
                    exc_info=True,
                )

    @classmethod
    def _reset(cls) -> None:
        """Reset registry state. **Test-only**, not part of the public API."""
        cls._registry.clear()
        cls._entry_points_loaded = False


def _accepts_config(cls: type) -> bool:
    """Check whether *cls*'s constructor takes a ``config`` first parameter."""
    try:
        sig = inspect.signature(cls)
    except (ValueError, TypeError):
        return False
    for param in sig.parameters.values():
        return param.name == "config"
    return False


# Convenience alias used as a decorator in backend modules.
register_evaluator = EvaluatorRegistry.register
