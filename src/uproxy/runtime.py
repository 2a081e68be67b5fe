"""In-process execution host for proxies and backend modules.

The ``Runtime`` owns every account (code, store, balance) and the
shared ``EventLog``.  Every invocation and deployment is atomic, nested
ones included: the runtime snapshots all stores, balances and the log
before running it and restores them exactly if it fails, so a nested
``call`` reported as failed leaves no writes behind.

Two ways of running code are provided:

``call`` / ``transact``
    A regular invocation.  The target's code runs against the target's
    own store.
``delegate``
    Invoke-in-place.  Another account's code runs against the *calling
    context's* store, with the calling context's caller and value.
    This is how a proxy forwards to its backend: the backend's reads
    and writes land in the proxy's store, never in a private copy.

Usage
-----
::

    from uproxy import Runtime, DelegationProxy, Address
    from uproxy.backends.counter import CounterV1

    rt = Runtime()
    deployer = Address.from_label("deployer")
    backend = rt.deploy(deployer, CounterV1())
    proxy = rt.deploy(deployer, DelegationProxy(), backend, deployer)
    result = rt.call(deployer, proxy, CounterV1.encode("get_version"))
"""
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from uproxy.contract import Contract
from uproxy.errors import (
    AccountNotFound,
    CallDepthExceeded,
    InvalidArgument,
    ProxyError,
)
from uproxy.events import Event, EventLog
from uproxy.identity import ADDRESS_LENGTH, Address
from uproxy.storage.slots import RESERVED_SLOTS
from uproxy.storage.store import PersistentStore, RegionView

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Contract)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuntimeConfig:
    """Runtime options.

    Parameters
    ----------
    max_call_depth:
        Maximum nesting of invocations (delegations included) within a
        single top-level call.
    load_entry_points:
        When ``True`` the runtime discovers installed backend modules
        from ``entry_point_group`` on construction.
    entry_point_group:
        Entry-point group scanned for backend module classes.
    """

    max_call_depth: int = 64
    load_entry_points: bool = False
    entry_point_group: str = "uproxy.backends"


# ---------------------------------------------------------------------------
# Accounts and contexts
# ---------------------------------------------------------------------------


@dataclass
class Account:
    """A deployed account: code, its own store, and a balance."""

    address: Address
    code: Contract | None = None
    store: PersistentStore = field(default_factory=PersistentStore)
    balance: int = 0


@dataclass
class ExecutionContext:
    """Everything a running piece of code may observe or affect.

    Parameters
    ----------
    runtime:
        The hosting runtime.
    caller:
        Identity that issued the invocation.  Preserved across delegation.
    address:
        Account whose storage is in use (the proxy, when forwarded).
    code_address:
        Account whose code is running (the backend, when forwarded).
    value:
        Value transferred with the invocation.
    store:
        The store all persistent reads and writes go to.
    depth:
        Nesting level, 0 for a top-level invocation.
    """

    runtime: "Runtime"
    caller: Address
    address: Address
    code_address: Address
    value: int
    store: PersistentStore
    depth: int = 0

    @property
    def is_delegated(self) -> bool:
        return self.address != self.code_address

    def region(self) -> RegionView:
        """Store view that refuses writes to proxy-reserved slots."""
        return RegionView(self.store, RESERVED_SLOTS)

    def emit(self, event: Event) -> None:
        self.runtime.events.append(self.address, event)


@dataclass(frozen=True)
class CallResult:
    """Outcome of an invocation.

    ``return_data`` holds the encoded result on success and the error
    payload on failure.
    """

    success: bool
    return_data: bytes = b""
    error: ProxyError | None = None

    def unwrap(self) -> bytes:
        """Return ``return_data`` or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.return_data


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class Runtime:
    """Hosts accounts and executes invocations atomically.

    Parameters
    ----------
    config:
        Runtime options; defaults to ``RuntimeConfig()``.
    """

    def __init__(self, config: RuntimeConfig | None = None) -> None:
        self.config = config or RuntimeConfig()
        self.events = EventLog()
        self._accounts: dict[Address, Account] = {}
        self._nonces: dict[Address, int] = {}
        self._depth = 0
        if self.config.load_entry_points:
            from uproxy.backend import backend_registry

            backend_registry.load_entrypoints(self.config.entry_point_group)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account(self, address: Address) -> Account:
        account = self._accounts.get(address)
        if account is None:
            account = Account(address=address)
            self._accounts[address] = account
        return account

    def code_at(self, address: Address) -> Contract | None:
        account = self._accounts.get(address)
        return account.code if account is not None else None

    def storage_at(self, address: Address) -> PersistentStore:
        """Return the live store of ``address`` for out-of-band inspection."""
        return self._account(address).store

    def balance_of(self, address: Address) -> int:
        account = self._accounts.get(address)
        return account.balance if account is not None else 0

    def fund(self, address: Address, amount: int) -> None:
        """Credit ``amount`` to ``address`` outside of any invocation."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._account(address).balance += amount

    def _next_address(self, deployer: Address) -> Address:
        nonce = self._nonces.get(deployer, 0)
        self._nonces[deployer] = nonce + 1
        digest = hashlib.sha3_256(deployer.raw + nonce.to_bytes(32, "big")).digest()
        return Address(digest[-ADDRESS_LENGTH:])

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        stores = {addr: acct.store.snapshot() for addr, acct in self._accounts.items()}
        balances = {addr: acct.balance for addr, acct in self._accounts.items()}
        codes = {addr: acct.code for addr, acct in self._accounts.items()}
        log_length = len(self.events)
        try:
            yield
        except BaseException:
            for addr in list(self._accounts):
                if addr not in stores:
                    del self._accounts[addr]
                    continue
                account = self._accounts[addr]
                account.store.restore(stores[addr])
                account.balance = balances[addr]
                account.code = codes[addr]
            self.events.truncate(log_length)
            logger.debug("Invocation failed; state rolled back")
            raise

    @contextmanager
    def _frame(self) -> Iterator[int]:
        if self._depth >= self.config.max_call_depth:
            raise CallDepthExceeded(self.config.max_call_depth)
        self._depth += 1
        try:
            yield self._depth - 1
        finally:
            self._depth -= 1

    def _transfer(self, sender: Address, recipient: Address, value: int) -> None:
        if value < 0:
            raise InvalidArgument("value must be non-negative")
        if value == 0:
            return
        source = self._account(sender)
        if source.balance < value:
            raise InvalidArgument(
                f"insufficient balance: {sender} holds {source.balance}, needs {value}"
            )
        source.balance -= value
        self._account(recipient).balance += value

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    def deploy(
        self, deployer: Address, contract: Contract, *args: Any, value: int = 0
    ) -> Address:
        """Deploy ``contract`` at a fresh address and run its ``on_deploy`` hook.

        Raises
        ------
        ProxyError
            Whatever ``on_deploy`` raises; no account is left behind.
        """
        address = self._next_address(deployer)
        with self._atomic(), self._frame() as depth:
            account = self._account(address)
            account.code = contract
            self._transfer(deployer, address, value)
            ctx = ExecutionContext(
                runtime=self,
                caller=deployer,
                address=address,
                code_address=address,
                value=value,
                store=account.store,
                depth=depth,
            )
            contract.on_deploy(ctx, *args)
        logger.debug("Deployed %s at %s", type(contract).__name__, address)
        return address

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def _run(self, caller: Address, target: Address, calldata: bytes, value: int) -> bytes:
        with self._atomic(), self._frame() as depth:
            account = self._accounts.get(target)
            if account is None or account.code is None:
                raise AccountNotFound(target)
            self._transfer(caller, target, value)
            ctx = ExecutionContext(
                runtime=self,
                caller=caller,
                address=target,
                code_address=target,
                value=value,
                store=account.store,
                depth=depth,
            )
            return account.code.execute(ctx, bytes(calldata))

    def call(
        self, caller: Address, target: Address, calldata: bytes, value: int = 0
    ) -> CallResult:
        """Invoke ``target``; failures are reported, never raised."""
        logger.debug("call %s -> %s (%d bytes)", caller, target, len(calldata))
        try:
            return CallResult(success=True, return_data=self._run(caller, target, calldata, value))
        except ProxyError as exc:
            logger.debug("call %s -> %s failed: %s", caller, target, exc)
            return CallResult(success=False, return_data=exc.payload, error=exc)

    def transact(
        self, caller: Address, target: Address, calldata: bytes, value: int = 0
    ) -> bytes:
        """Invoke ``target`` and return its result bytes, raising on failure."""
        return self._run(caller, target, calldata, value)

    def delegate(self, ctx: ExecutionContext, code_address: Address, calldata: bytes) -> bytes:
        """Run ``code_address``'s code in place, against ``ctx.store``.

        Caller, value and storage are taken from ``ctx``; only the code
        changes.  The result or failure is returned or raised unchanged.
        """
        code = self.code_at(code_address)
        if code is None:
            raise AccountNotFound(code_address)
        with self._frame() as depth:
            inner = ExecutionContext(
                runtime=self,
                caller=ctx.caller,
                address=ctx.address,
                code_address=code_address,
                value=ctx.value,
                store=ctx.store,
                depth=depth,
            )
            logger.debug("delegate %s -> code %s", ctx.address, code_address)
            return code.execute(inner, calldata)

    def bind(self, address: Address, interface: type[C]) -> "BoundContract[C]":
        """Return a helper that calls ``address`` through ``interface``'s operations."""
        return BoundContract(self, address, interface)


class BoundContract(Generic[C]):
    """Encode calls by method name and decode their results.

    Example
    -------
    ::

        counter = runtime.bind(proxy_address, CounterV1)
        counter.transact(owner, "set_value", 20)
        assert counter.transact(user, "value") == 20
    """

    def __init__(self, runtime: Runtime, address: Address, interface: type[C]) -> None:
        self.runtime = runtime
        self.address = address
        self.interface = interface

    def call(self, sender: Address, name: str, *args: Any, value: int = 0) -> CallResult:
        return self.runtime.call(sender, self.address, self.interface.encode(name, *args), value)

    def transact(self, sender: Address, name: str, *args: Any, value: int = 0) -> Any:
        op = self.interface.operations_by_name[name]
        data = self.runtime.transact(
            sender, self.address, self.interface.encode(name, *args), value
        )
        return op.decode_result(data)

    def __repr__(self) -> str:
        return f"BoundContract({self.interface.__name__} at {self.address})"


__all__ = [
    "RuntimeConfig",
    "Account",
    "ExecutionContext",
    "CallResult",
    "Runtime",
    "BoundContract",
]
