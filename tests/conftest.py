"""Shared test fixtures for uproxy.

Fixtures defined here are available to all tests in the suite without
needing an explicit import. Add project-wide fixtures here; keep
domain-specific fixtures close to the tests that use them.
"""
from __future__ import annotations

import pytest

from uproxy import Address, DelegationProxy, Runtime, deploy_proxy
from uproxy.backends.counter import CounterV1, CounterV2
from uproxy.runtime import BoundContract


@pytest.fixture()
def expected_version() -> str:
    """Return the current expected version string.

    Update this fixture when cutting a release so that the version
    test immediately catches stale ``__version__`` values.
    """
    return "0.1.0"


@pytest.fixture()
def runtime() -> Runtime:
    return Runtime()


@pytest.fixture()
def deployer() -> Address:
    return Address.from_label("deployer")


@pytest.fixture()
def admin() -> Address:
    return Address.from_label("admin")


@pytest.fixture()
def user() -> Address:
    return Address.from_label("user")


@pytest.fixture()
def v1(runtime: Runtime, deployer: Address) -> Address:
    """A deployed, uninitialized ``CounterV1`` module."""
    return runtime.deploy(deployer, CounterV1())


@pytest.fixture()
def v2(runtime: Runtime, deployer: Address) -> Address:
    """A deployed, uninitialized ``CounterV2`` module."""
    return runtime.deploy(deployer, CounterV2())


@pytest.fixture()
def proxy(runtime: Runtime, deployer: Address, admin: Address, v1: Address) -> Address:
    """A proxy in front of ``v1``, initialized through the proxy with value 10.

    The deployer issued the initialization call, so the deployer is the
    module owner; ``admin`` is the proxy administrator.
    """
    return deploy_proxy(
        runtime, deployer, v1, admin, init_data=CounterV1.encode("initialize", 10)
    )


@pytest.fixture()
def counter(runtime: Runtime, proxy: Address) -> BoundContract[CounterV2]:
    """The proxy seen through the backend interface."""
    return runtime.bind(proxy, CounterV2)


@pytest.fixture()
def proxy_admin(runtime: Runtime, proxy: Address) -> BoundContract[DelegationProxy]:
    """The proxy seen through its privileged interface."""
    return runtime.bind(proxy, DelegationProxy)
