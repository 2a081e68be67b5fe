"""Backend module contract.

A backend module is swappable domain logic.  Its code is stateless; its
fields are declared in a class-level ``layout`` and live in whatever
store the current invocation operates on.  When a proxy forwards a
call, that is the proxy's store; when the module is called directly, it
is the module's own store.

Every backend exposes the single polymorphic entry point
``invoke(selector, args, context)`` inherited from
:class:`~uproxy.contract.Contract`, plus:

- ``layout``   the declared, append-only field layout
- ``version``  a fixed literal returned by ``getVersion()``

Owner gating is the module's own concern and is independent of any
proxy's administrator.
"""
from __future__ import annotations

import logging
from abc import ABC
from typing import TYPE_CHECKING, ClassVar

from uproxy.compat import selector_clashes
from uproxy.contract import Contract, operation
from uproxy.errors import NotAuthorized
from uproxy.plugins.registry import PluginRegistry
from uproxy.storage.layout import StateView, StorageLayout

if TYPE_CHECKING:
    from uproxy.identity import Address
    from uproxy.runtime import ExecutionContext, Runtime

logger = logging.getLogger(__name__)


class Backend(Contract, ABC):
    """Base class for backend modules.

    Subclasses must set ``layout`` and ``version``.  Use :meth:`state`
    to read and write fields; writes to proxy-reserved slots are refused.
    :meth:`require_owner` expects an ``owner`` address field in ``layout``.
    """

    layout: ClassVar[StorageLayout] = StorageLayout()
    version: ClassVar[str] = ""

    def state(self, ctx: "ExecutionContext") -> StateView:
        """Typed field access over the store of the current invocation."""
        return StateView(self.layout, ctx.region())

    def require_owner(self, ctx: "ExecutionContext", state: StateView) -> None:
        """Raise ``NotAuthorized`` unless the caller is the module's owner."""
        if ctx.caller != state["owner"]:
            raise NotAuthorized(
                f"{ctx.caller} is not the owner of this {type(self).__name__}",
                caller=ctx.caller,
            )

    @operation("getVersion()", returns=("string",))
    def get_version(self, ctx: "ExecutionContext") -> str:
        return self.version


class BackendRegistry(PluginRegistry[Backend]):
    """Registry of backend modules, keyed by a stable name.

    On top of the generic registry:

    - a module must declare a non-empty ``version`` literal to be
      registered, so every published name answers ``getVersion()``;
    - operations whose selector aliases a privileged proxy operation are
      reported with a warning, since a proxy administrator never reaches
      them;
    - :meth:`deploy` instantiates and deploys a module by name.
    """

    def __init__(self, name: str = "backends") -> None:
        super().__init__(Backend, name)

    def register_class(self, name: str, cls: type[Backend]) -> None:
        if isinstance(cls, type) and issubclass(cls, Backend) and not cls.version:
            raise TypeError(
                f"Cannot register {cls.__qualname__} under {name!r}: "
                "it does not declare a version."
            )
        super().register_class(name, cls)
        clashes = selector_clashes(cls)
        if clashes:
            logger.warning(
                "Backend %r (%s) has operations unreachable by a proxy administrator: %s",
                name,
                cls.__qualname__,
                ", ".join(clashes),
            )

    def versions(self) -> dict[str, str]:
        """Map every registered name to its module's version literal."""
        return {name: self.get(name).version for name in self.list_plugins()}

    def deploy(self, runtime: "Runtime", deployer: "Address", name: str) -> "Address":
        """Deploy a fresh instance of the module registered as ``name``.

        Raises
        ------
        PluginNotFoundError
            If ``name`` is not registered.
        """
        address = runtime.deploy(deployer, self.get(name)())
        logger.debug("Deployed backend %r at %s", name, address)
        return address


backend_registry = BackendRegistry()

__all__ = ["Backend", "BackendRegistry", "backend_registry"]
