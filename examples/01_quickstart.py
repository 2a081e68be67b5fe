#!/usr/bin/env python3
"""Example: Quickstart — uproxy

Deploy a counter module behind a proxy, use it, upgrade the module,
and check that the proxy's state survived.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install uproxy
"""
from __future__ import annotations

import uproxy
from uproxy import Address, DelegationProxy, Runtime
from uproxy.backends import CounterV1, CounterV2


def main() -> None:
    print(f"uproxy version: {uproxy.__version__}")

    rt = Runtime()
    deployer = Address.from_label("deployer")
    admin = Address.from_label("admin")
    alice = Address.from_label("alice")

    # Step 1: Deploy V1 and a proxy, initializing through the proxy
    v1 = rt.deploy(deployer, CounterV1())
    proxy = uproxy.deploy_proxy(
        rt, deployer, v1, admin, init_data=CounterV1.encode("initialize", 10)
    )
    counter = rt.bind(proxy, CounterV2)
    print(f"Proxy at {proxy}, backend {v1}")
    print(f"value={counter.transact(alice, 'value')} version={counter.transact(alice, 'get_version')}")

    # Step 2: The module owner (the deployer) changes the value
    counter.transact(deployer, "set_value", 20)

    # Step 3: A non-owner is rejected by the module's own access control
    result = counter.call(alice, "set_value", 99)
    print(f"alice set_value -> success={result.success} ({result.error})")

    # Step 4: The administrator upgrades to V2
    v2 = rt.deploy(deployer, CounterV2())
    rt.bind(proxy, DelegationProxy).transact(admin, "upgrade_to", v2)
    print(f"After upgrade: value={counter.transact(alice, 'value')} "
          f"version={counter.transact(alice, 'get_version')}")

    # Step 5: V2-only operations are now reachable
    counter.transact(deployer, "initialize_v2", "hello from V2")
    print(f"message={counter.transact(alice, 'message')!r}")

    print("\nEvents:")
    for entry in rt.events:
        print(f"  {entry.emitter}: {entry.event}")


if __name__ == "__main__":
    main()
