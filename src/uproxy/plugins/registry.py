"""Named registry of backend module implementations.

Backend module classes register under a stable name, either with the
``@register`` decorator at import time or through package entry-points
in the ``"uproxy.backends"`` group.  Integrators can then deploy a
module version by name without importing its class directly.

Example
-------
::

    from uproxy.backend import Backend, backend_registry

    @backend_registry.register("ledger-v1")
    class LedgerV1(Backend):
        ...

    backend_registry.load_entrypoints("uproxy.backends")
    cls = backend_registry.get("ledger-v1")
"""
from __future__ import annotations

import importlib.metadata
import logging
from abc import ABC
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=ABC)


class PluginNotFoundError(KeyError):
    """Raised when a requested name is not in the registry."""

    def __init__(self, name: str, registry_name: str) -> None:
        self.plugin_name = name
        self.registry_name = registry_name
        super().__init__(
            f"{name!r} is not registered in the {registry_name!r} registry. "
            "Check that the providing package is installed and imported."
        )


class PluginAlreadyRegisteredError(ValueError):
    """Raised when attempting to register a name that already exists."""

    def __init__(self, name: str, registry_name: str) -> None:
        self.plugin_name = name
        self.registry_name = registry_name
        super().__init__(
            f"{name!r} is already registered in the {registry_name!r} registry."
        )


class PluginRegistry(Generic[T]):
    """Type-checked name -> class registry.

    Parameters
    ----------
    base_class:
        The abstract base class every registered class must subclass.
    name:
        Registry name used in error and log messages.
    """

    def __init__(self, base_class: type[T], name: str) -> None:
        self._base_class = base_class
        self._name = name
        self._plugins: dict[str, type[T]] = {}

    def register(self, name: str) -> Callable[[type[T]], type[T]]:
        """Return a class decorator registering the class under ``name``.

        Raises
        ------
        PluginAlreadyRegisteredError
            If ``name`` is already in use.
        TypeError
            If the decorated class does not subclass ``base_class``.
        """

        def decorator(cls: type[T]) -> type[T]:
            self.register_class(name, cls)
            return cls

        return decorator

    def register_class(self, name: str, cls: type[T]) -> None:
        if name in self._plugins:
            raise PluginAlreadyRegisteredError(name, self._name)
        if not (isinstance(cls, type) and issubclass(cls, self._base_class)):
            raise TypeError(
                f"Cannot register {cls!r} under {name!r}: "
                f"it must be a subclass of {self._base_class.__name__}."
            )
        self._plugins[name] = cls
        logger.debug(
            "Registered %r -> %s in registry %r", name, cls.__qualname__, self._name
        )

    def deregister(self, name: str) -> None:
        if name not in self._plugins:
            raise PluginNotFoundError(name, self._name)
        del self._plugins[name]
        logger.debug("Deregistered %r from registry %r", name, self._name)

    def get(self, name: str) -> type[T]:
        try:
            return self._plugins[name]
        except KeyError:
            raise PluginNotFoundError(name, self._name) from None

    def list_plugins(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def __repr__(self) -> str:
        return (
            f"PluginRegistry(name={self._name!r}, "
            f"base_class={self._base_class.__name__}, "
            f"plugins={self.list_plugins()})"
        )

    def load_entrypoints(self, group: str) -> None:
        """Register every class declared as an entry-point in ``group``.

        Names already registered are skipped, so repeated calls are
        idempotent.  Entry-points that fail to import or do not subclass
        ``base_class`` are logged and skipped.
        """
        for ep in importlib.metadata.entry_points(group=group):
            if ep.name in self._plugins:
                logger.debug(
                    "Entry-point %r already registered in %r; skipping.",
                    ep.name,
                    self._name,
                )
                continue
            try:
                cls = ep.load()
            except Exception:
                logger.exception(
                    "Failed to load entry-point %r from group %r; skipping.",
                    ep.name,
                    group,
                )
                continue
            if self._plugins.get(ep.name) is cls:
                # importing the module registered it via the decorator
                continue
            try:
                self.register_class(ep.name, cls)
            except (PluginAlreadyRegisteredError, TypeError):
                logger.warning(
                    "Entry-point %r loaded but could not be registered "
                    "in registry %r; skipping.",
                    ep.name,
                    self._name,
                )
