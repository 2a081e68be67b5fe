"""Transparent upgradeable delegation proxy.

The proxy is a long-lived address that forwards almost every
invocation to the currently registered backend module, executing the
backend's code *in place* against the proxy's own store.  The backend
can therefore be swapped while the address and accumulated state stay.

Routing rule, evaluated on every invocation:

1. If the caller is the administrator **and** the selector matches one
   of the proxy's privileged operations, run that operation locally.
2. Otherwise forward the call data, unchanged, to the backend.

A non-administrator invoking a privileged selector is *not* rejected;
the call is forwarded and the backend decides what happens.  An
administrator invoking any other selector is forwarded too.

Proxy state lives in two reserved slots (see
:mod:`uproxy.storage.slots`) that no backend field layout can reach.

Example
-------
::

    proxy = runtime.deploy(deployer, DelegationProxy(), backend, admin)
    admin_view = runtime.bind(proxy, DelegationProxy)
    admin_view.transact(admin, "upgrade_to", new_backend)
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from uproxy.abi import SELECTOR_LENGTH
from uproxy.contract import Contract, operation
from uproxy.errors import InvalidArgument
from uproxy.events import AdminChanged, Upgraded
from uproxy.identity import Address
from uproxy.storage.slots import ADMIN_REF, BACKEND_REF

if TYPE_CHECKING:
    from uproxy.runtime import ExecutionContext

logger = logging.getLogger(__name__)


def _require_identity(address: object, role: str) -> Address:
    if not isinstance(address, Address):
        raise InvalidArgument(f"{role} must be an Address, got {type(address).__name__}")
    if address.is_null:
        raise InvalidArgument(f"{role} cannot be the null identity")
    return address


class DelegationProxy(Contract):
    """Stateless proxy code; all proxy state is in the reserved slots.

    Construction arguments (passed to ``Runtime.deploy``):

    backend:
        Initial backend module address. Must not be null.
    admin:
        Initial administrator identity. Must not be null.
    init_data:
        Optional call data forwarded to the backend right after
        construction, with the deployer as caller.
    """

    def on_deploy(
        self,
        ctx: "ExecutionContext",
        backend: Address,
        admin: Address,
        init_data: bytes = b"",
    ) -> None:
        _require_identity(backend, "backend")
        _require_identity(admin, "admin")
        self._set_backend(ctx, backend)
        self._set_admin(ctx, admin)
        if init_data:
            self._forward(ctx, init_data)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def execute(self, ctx: "ExecutionContext", calldata: bytes) -> bytes:
        sel = calldata[:SELECTOR_LENGTH]
        if ctx.caller == ADMIN_REF.read(ctx.store) and sel in self.operations:
            return self.invoke(sel, calldata[SELECTOR_LENGTH:], ctx)
        return self._forward(ctx, calldata)

    def _forward(self, ctx: "ExecutionContext", calldata: bytes) -> bytes:
        backend = BACKEND_REF.read(ctx.store)
        return ctx.runtime.delegate(ctx, backend, calldata)

    # ------------------------------------------------------------------
    # Reserved slot writers
    # ------------------------------------------------------------------

    def _set_backend(self, ctx: "ExecutionContext", backend: Address) -> None:
        BACKEND_REF.write(ctx.store, backend)
        ctx.emit(Upgraded(backend))
        logger.info("Proxy %s now delegates to %s", ctx.address, backend)

    def _set_admin(self, ctx: "ExecutionContext", admin: Address) -> None:
        previous = ADMIN_REF.read(ctx.store)
        ADMIN_REF.write(ctx.store, admin)
        ctx.emit(AdminChanged(previous, admin))
        logger.info("Proxy %s admin changed from %s to %s", ctx.address, previous, admin)

    # ------------------------------------------------------------------
    # Privileged operations
    # ------------------------------------------------------------------

    @operation("getBackend()", returns=("address",))
    def get_backend(self, ctx: "ExecutionContext") -> Address:
        return BACKEND_REF.read(ctx.store)

    @operation("getAdmin()", returns=("address",))
    def get_admin(self, ctx: "ExecutionContext") -> Address:
        return ADMIN_REF.read(ctx.store)

    @operation("changeAdmin(address)")
    def change_admin(self, ctx: "ExecutionContext", new_admin: Address) -> None:
        self._set_admin(ctx, _require_identity(new_admin, "new_admin"))

    @operation("upgradeTo(address)")
    def upgrade_to(self, ctx: "ExecutionContext", new_backend: Address) -> None:
        """Repoint the backend reference. No state is copied or migrated."""
        self._set_backend(ctx, _require_identity(new_backend, "new_backend"))

    @operation("upgradeToAndCall(address,bytes)", payable=True)
    def upgrade_to_and_call(
        self, ctx: "ExecutionContext", new_backend: Address, data: bytes
    ) -> None:
        """Upgrade, then forward ``data`` to the new backend as the administrator."""
        self._set_backend(ctx, _require_identity(new_backend, "new_backend"))
        self._forward(ctx, data)


__all__ = ["DelegationProxy"]
