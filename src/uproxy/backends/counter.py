"""Reference counter modules, used to exercise upgrades.

``CounterV2`` is layout-compatible with ``CounterV1``: it keeps every
V1 field at the same slot and appends a ``message`` field.  A proxy
upgraded from V1 to V2 keeps its ``value``, ``owner`` and
``initialized`` state.

Field layout
------------
=====  ===============  =========  =====
slot   field            type       since
=====  ===============  =========  =====
0      value            uint256    V1
1      owner            address    V1
2      initialized      bool       V1
3      message          string     V2
=====  ===============  =========  =====
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from uproxy.backend import Backend, backend_registry
from uproxy.contract import operation
from uproxy.errors import AlreadyInitialized
from uproxy.events import MessageChanged, ValueChanged
from uproxy.identity import Address
from uproxy.storage.layout import StorageLayout

if TYPE_CHECKING:
    from uproxy.runtime import ExecutionContext

V1_LAYOUT = StorageLayout.of(
    ("value", "uint256"),
    ("owner", "address"),
    ("initialized", "bool"),
)
V2_LAYOUT = V1_LAYOUT.extend(("message", "string"))


@backend_registry.register("counter-v1")
class CounterV1(Backend):
    """Owner-gated counter with one-time initialization."""

    layout = V1_LAYOUT
    version = "V1"

    @operation("initialize(uint256)")
    def initialize(self, ctx: "ExecutionContext", initial_value: int) -> None:
        """Set the starting value and record the caller as owner. Runs once."""
        state = self.state(ctx)
        if state["initialized"]:
            raise AlreadyInitialized(f"{type(self).__name__} is already initialized")
        state["initialized"] = True
        state["value"] = initial_value
        state["owner"] = ctx.caller

    @operation("setValue(uint256)")
    def set_value(self, ctx: "ExecutionContext", new_value: int) -> None:
        state = self.state(ctx)
        self.require_owner(ctx, state)
        state["value"] = new_value
        ctx.emit(ValueChanged(new_value))

    @operation("increment()")
    def increment(self, ctx: "ExecutionContext") -> None:
        self._add(ctx, 1)

    @operation("value()", returns=("uint256",))
    def value(self, ctx: "ExecutionContext") -> int:
        return self.state(ctx)["value"]

    @operation("owner()", returns=("address",))
    def owner(self, ctx: "ExecutionContext") -> Address:
        return self.state(ctx)["owner"]

    @operation("initialized()", returns=("bool",))
    def initialized(self, ctx: "ExecutionContext") -> bool:
        return self.state(ctx)["initialized"]

    def _add(self, ctx: "ExecutionContext", amount: int) -> None:
        state = self.state(ctx)
        self.require_owner(ctx, state)
        new_value = state["value"] + amount
        state["value"] = new_value
        ctx.emit(ValueChanged(new_value))


@backend_registry.register("counter-v2")
class CounterV2(CounterV1):
    """``CounterV1`` plus ``incrementBy`` and an owner-set message."""

    layout = V2_LAYOUT
    version = "V2"

    @operation("incrementBy(uint256)")
    def increment_by(self, ctx: "ExecutionContext", amount: int) -> None:
        self._add(ctx, amount)

    @operation("initializeV2(string)")
    def initialize_v2(self, ctx: "ExecutionContext", message: str) -> None:
        """Set the first message. Runs once, while ``message`` is still empty."""
        state = self.state(ctx)
        self.require_owner(ctx, state)
        if state["message"]:
            raise AlreadyInitialized("V2 state is already initialized")
        state["message"] = message
        ctx.emit(MessageChanged(message))

    @operation("setMessage(string)")
    def set_message(self, ctx: "ExecutionContext", message: str) -> None:
        state = self.state(ctx)
        self.require_owner(ctx, state)
        state["message"] = message
        ctx.emit(MessageChanged(message))

    @operation("message()", returns=("string",))
    def message(self, ctx: "ExecutionContext") -> str:
        return self.state(ctx)["message"]


__all__ = ["V1_LAYOUT", "V2_LAYOUT", "CounterV1", "CounterV2"]
