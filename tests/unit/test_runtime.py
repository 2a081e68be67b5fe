"""Unit tests for uproxy.runtime — deployment, invocation, atomic rollback,
invoke-in-place delegation, and configuration.
"""
from __future__ import annotations

import hashlib
import logging

import pytest

from uproxy.backends.counter import CounterV1
from uproxy.contract import Contract, operation
from uproxy.errors import (
    AccountNotFound,
    CallDepthExceeded,
    InvalidArgument,
    NotAuthorized,
)
from uproxy.events import ValueChanged
from uproxy.identity import Address
from uproxy.runtime import CallResult, ExecutionContext, Runtime, RuntimeConfig


class Forwarder(Contract):
    """Minimal invoke-in-place forwarder used to test ``Runtime.delegate``."""

    def on_deploy(self, ctx: ExecutionContext, target: Address) -> None:
        ctx.store.write(0xF0, bytes(12) + target.raw)

    def execute(self, ctx: ExecutionContext, calldata: bytes) -> bytes:
        target = Address(ctx.store.read(0xF0)[12:])
        return ctx.runtime.delegate(ctx, target, calldata)


class Recorder(Contract):
    @operation("record()", returns=("address", "address", "bool"))
    def record(self, ctx: ExecutionContext) -> tuple[Address, Address, bool]:
        return ctx.caller, ctx.address, ctx.is_delegated


class Scribbler(Contract):
    """Writes, emits and moves value, then fails."""

    @operation("scribble()", payable=True)
    def scribble(self, ctx: ExecutionContext) -> None:
        ctx.store.write(0, (5).to_bytes(32, "big"))
        ctx.emit(ValueChanged(5))
        raise InvalidArgument("scribbled, then gave up")


class Stillborn(Contract):
    def on_deploy(self, ctx: ExecutionContext) -> None:
        ctx.store.write(0, (9).to_bytes(32, "big"))
        raise InvalidArgument("refusing to deploy")


class NestedCaller(Contract):
    """Calls another contract through the public interface and reports the outcome."""

    @operation("poke(address,uint256)", returns=("bool",), payable=True)
    def poke(self, ctx: ExecutionContext, target: Address, value: int) -> bool:
        return ctx.runtime.call(ctx.address, target, Scribbler.encode("scribble"), value).success

    @operation("spawn()", returns=("bool",))
    def spawn(self, ctx: ExecutionContext) -> bool:
        try:
            ctx.runtime.deploy(ctx.address, Stillborn())
        except InvalidArgument:
            return False
        return True


class TestDeploy:
    def test_addresses_are_unique_per_nonce(self, runtime: Runtime, deployer: Address) -> None:
        first = runtime.deploy(deployer, CounterV1())
        second = runtime.deploy(deployer, CounterV1())
        assert first != second

    def test_addresses_are_deterministic(self, deployer: Address) -> None:
        assert Runtime().deploy(deployer, CounterV1()) == Runtime().deploy(deployer, CounterV1())

    def test_code_and_empty_store(self, runtime: Runtime, deployer: Address) -> None:
        address = runtime.deploy(deployer, CounterV1())
        assert isinstance(runtime.code_at(address), CounterV1)
        assert len(runtime.storage_at(address)) == 0

    def test_failed_deploy_leaves_no_account(self, runtime: Runtime, deployer: Address) -> None:
        would_be = Runtime().deploy(deployer, CounterV1())
        with pytest.raises(InvalidArgument):
            runtime.deploy(deployer, CounterV1(), 1)
        assert runtime.code_at(would_be) is None
        assert len(runtime.events) == 0


class TestCall:
    def test_success_result(self, runtime: Runtime, deployer: Address, v1: Address) -> None:
        result = runtime.call(deployer, v1, CounterV1.encode("get_version"))
        assert result.success
        assert result.error is None
        assert CounterV1.operations_by_name["get_version"].decode_result(result.return_data) == "V1"

    def test_failure_is_reported(self, runtime: Runtime, user: Address, v1: Address) -> None:
        result = runtime.call(user, v1, CounterV1.encode("set_value", 1))
        assert not result.success
        assert isinstance(result.error, NotAuthorized)
        assert result.return_data == result.error.payload

    def test_unwrap(self, runtime: Runtime, user: Address, v1: Address) -> None:
        result = runtime.call(user, v1, CounterV1.encode("set_value", 1))
        with pytest.raises(NotAuthorized):
            result.unwrap()
        assert CallResult(success=True, return_data=b"ok").unwrap() == b"ok"

    def test_no_code_at_target(self, runtime: Runtime, user: Address) -> None:
        result = runtime.call(user, Address.from_label("empty"), b"")
        assert isinstance(result.error, AccountNotFound)

    def test_transact_raises(self, runtime: Runtime, user: Address, v1: Address) -> None:
        with pytest.raises(NotAuthorized):
            runtime.transact(user, v1, CounterV1.encode("increment"))


class TestAtomicity:
    def test_failure_restores_store_and_events(
        self, runtime: Runtime, deployer: Address, v1: Address
    ) -> None:
        counter = runtime.bind(v1, CounterV1)
        counter.transact(deployer, "initialize", 2**256 - 1)
        before = runtime.storage_at(v1).snapshot()
        events_before = len(runtime.events)
        with pytest.raises(InvalidArgument):
            counter.transact(deployer, "increment")
        assert runtime.storage_at(v1).snapshot() == before
        assert len(runtime.events) == events_before

    def test_failure_restores_balances(self, runtime: Runtime, deployer: Address, v1: Address) -> None:
        runtime.fund(deployer, 100)
        result = runtime.call(deployer, v1, CounterV1.encode("increment"), value=30)
        assert not result.success
        assert runtime.balance_of(deployer) == 100
        assert runtime.balance_of(v1) == 0

    def test_failed_nested_call_leaves_no_writes(
        self, runtime: Runtime, deployer: Address
    ) -> None:
        scribbler = runtime.deploy(deployer, Scribbler())
        outer = runtime.deploy(deployer, NestedCaller())
        runtime.fund(outer, 10)
        events_before = len(runtime.events)
        ok = runtime.bind(outer, NestedCaller).transact(deployer, "poke", scribbler, 4)
        assert ok is False
        assert len(runtime.storage_at(scribbler)) == 0
        assert len(runtime.events) == events_before
        assert runtime.balance_of(outer) == 10
        assert runtime.balance_of(scribbler) == 0

    def test_failed_nested_deploy_leaves_no_account(
        self, runtime: Runtime, deployer: Address
    ) -> None:
        outer = runtime.deploy(deployer, NestedCaller())
        digest = hashlib.sha3_256(outer.raw + (0).to_bytes(32, "big")).digest()
        would_be = Address(digest[-20:])
        assert runtime.bind(outer, NestedCaller).transact(deployer, "spawn") is False
        assert runtime.code_at(would_be) is None
        assert len(runtime.storage_at(would_be)) == 0

    def test_insufficient_balance(self, runtime: Runtime, user: Address, v1: Address) -> None:
        result = runtime.call(user, v1, CounterV1.encode("get_version"), value=1)
        assert isinstance(result.error, InvalidArgument)

    def test_negative_fund(self, runtime: Runtime, user: Address) -> None:
        with pytest.raises(ValueError):
            runtime.fund(user, -1)


class TestDelegate:
    def test_code_runs_against_callers_store(
        self, runtime: Runtime, deployer: Address, v1: Address
    ) -> None:
        fwd = runtime.deploy(deployer, Forwarder(), v1)
        runtime.bind(fwd, CounterV1).transact(deployer, "initialize", 7)
        assert runtime.bind(fwd, CounterV1).transact(deployer, "value") == 7
        assert runtime.bind(v1, CounterV1).transact(deployer, "value") == 0
        assert len(runtime.storage_at(v1)) == 0

    def test_context_is_preserved(self, runtime: Runtime, deployer: Address, user: Address) -> None:
        recorder = runtime.deploy(deployer, Recorder())
        fwd = runtime.deploy(deployer, Forwarder(), recorder)
        caller, storage_owner, delegated = runtime.bind(fwd, Recorder).transact(user, "record")
        assert caller == user
        assert storage_owner == fwd
        assert delegated is True

    def test_events_attributed_to_storage_owner(
        self, runtime: Runtime, deployer: Address, v1: Address
    ) -> None:
        fwd = runtime.deploy(deployer, Forwarder(), v1)
        bound = runtime.bind(fwd, CounterV1)
        bound.transact(deployer, "initialize", 1)
        bound.transact(deployer, "set_value", 3)
        assert runtime.events.of_type(ValueChanged, emitter=fwd) == [ValueChanged(3)]
        assert runtime.events.of_type(ValueChanged, emitter=v1) == []

    def test_missing_code(self, runtime: Runtime, deployer: Address) -> None:
        fwd = runtime.deploy(deployer, Forwarder(), Address.from_label("void"))
        with pytest.raises(AccountNotFound):
            runtime.transact(deployer, fwd, b"\x00\x00\x00\x00")

    def test_depth_limit(self, deployer: Address) -> None:
        runtime = Runtime(RuntimeConfig(max_call_depth=4))
        fwd_address = runtime.deploy(deployer, Forwarder(), Address.from_label("x"))
        runtime.storage_at(fwd_address).write(0xF0, bytes(12) + fwd_address.raw)
        with pytest.raises(CallDepthExceeded):
            runtime.transact(deployer, fwd_address, b"loop")


class TestConfig:
    def test_defaults(self) -> None:
        config = RuntimeConfig()
        assert config.max_call_depth == 64
        assert config.load_entry_points is False
        assert config.entry_point_group == "uproxy.backends"

    def test_entry_point_loading_is_idempotent(self) -> None:
        from uproxy.backend import backend_registry

        Runtime(RuntimeConfig(load_entry_points=True))
        Runtime(RuntimeConfig(load_entry_points=True))
        assert "counter-v1" in backend_registry
        assert "counter-v2" in backend_registry


class TestLogging:
    def test_deploy_is_logged(
        self, runtime: Runtime, deployer: Address, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="uproxy.runtime"):
            runtime.deploy(deployer, CounterV1())
        assert any("Deployed CounterV1" in record.getMessage() for record in caplog.records)

    def test_rollback_is_logged(
        self, runtime: Runtime, user: Address, v1: Address, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="uproxy.runtime"):
            runtime.call(user, v1, CounterV1.encode("increment"))
        assert any("rolled back" in record.getMessage() for record in caplog.records)
