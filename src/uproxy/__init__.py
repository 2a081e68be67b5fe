"""uproxy — upgradeable delegation proxy with collision-free reserved slots.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import uproxy
    from uproxy import Address, Runtime
    from uproxy.backends import CounterV1, CounterV2

    rt = Runtime()
    deployer = Address.from_label("deployer")
    admin = Address.from_label("admin")

    v1 = rt.deploy(deployer, CounterV1())
    proxy = uproxy.deploy_proxy(
        rt, deployer, v1, admin, init_data=CounterV1.encode("initialize", 10)
    )

    counter = rt.bind(proxy, CounterV2)
    counter.transact(deployer, "set_value", 20)

    v2 = rt.deploy(deployer, CounterV2())
    rt.bind(proxy, uproxy.DelegationProxy).transact(admin, "upgrade_to", v2)
    assert counter.transact(deployer, "get_version") == "V2"
    assert counter.transact(deployer, "value") == 20

    uproxy.__version__
    '0.1.0'
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from uproxy.backend import Backend, backend_registry
from uproxy.contract import Contract, operation
from uproxy.errors import (
    AccountNotFound,
    AlreadyInitialized,
    CallDepthExceeded,
    InvalidArgument,
    NotAuthorized,
    ProxyError,
    ReservedSlotViolation,
    UnknownOperation,
)
from uproxy.events import AdminChanged, MessageChanged, Upgraded, ValueChanged
from uproxy.identity import NULL_ADDRESS, Address
from uproxy.proxy import DelegationProxy
from uproxy.runtime import CallResult, ExecutionContext, Runtime, RuntimeConfig
from uproxy.storage import ADMIN_SLOT, BACKEND_SLOT, PersistentStore, StorageLayout

__version__: str = "0.1.0"

if TYPE_CHECKING:
    from uproxy.compat import CompatibilityReport


def deploy_proxy(
    runtime: Runtime,
    deployer: Address,
    backend: Address,
    admin: Address,
    init_data: bytes = b"",
) -> Address:
    """Deploy a ``DelegationProxy`` in front of ``backend``.

    Parameters
    ----------
    runtime:
        The hosting runtime.
    deployer:
        Identity issuing the deployment; caller of ``init_data``.
    backend:
        Initial backend module address.
    admin:
        Initial administrator identity.
    init_data:
        Optional call data forwarded to the backend after construction,
        typically an encoded ``initialize`` call.

    Returns
    -------
    Address
        The new proxy's address.

    Raises
    ------
    InvalidArgument
        If ``backend`` or ``admin`` is the null identity.
    """
    return runtime.deploy(deployer, DelegationProxy(), backend, admin, init_data)


def check_layout(old: StorageLayout, new: StorageLayout) -> "CompatibilityReport":
    """Report whether ``new`` only appends fields to ``old``.

    The proxy never runs this check itself; it is an integrator aid.
    """
    from uproxy.compat import check_layout as _check_layout

    return _check_layout(old, new)


__all__ = [
    "__version__",
    "deploy_proxy",
    "check_layout",
    "Address",
    "NULL_ADDRESS",
    "Runtime",
    "RuntimeConfig",
    "ExecutionContext",
    "CallResult",
    "Contract",
    "operation",
    "Backend",
    "backend_registry",
    "DelegationProxy",
    "PersistentStore",
    "StorageLayout",
    "BACKEND_SLOT",
    "ADMIN_SLOT",
    "Upgraded",
    "AdminChanged",
    "ValueChanged",
    "MessageChanged",
    "ProxyError",
    "InvalidArgument",
    "NotAuthorized",
    "AlreadyInitialized",
    "UnknownOperation",
    "ReservedSlotViolation",
    "AccountNotFound",
    "CallDepthExceeded",
]
