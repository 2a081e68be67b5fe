#!/usr/bin/env python3
"""Example: Layout compatibility — uproxy

Check candidate module layouts before upgrading a proxy, and inspect
the proxy's reserved slots out-of-band from a YAML store dump.

Usage:
    python examples/02_layout_check.py

Requirements:
    pip install uproxy
"""
from __future__ import annotations

import uproxy
from uproxy import Address, Runtime
from uproxy.backends import CounterV1, CounterV2
from uproxy.compat import selector_clashes
from uproxy.storage import (
    ADMIN_SLOT,
    BACKEND_SLOT,
    PersistentStore,
    StorageLayout,
    proxy_admin_of,
    proxy_backend_of,
)


def main() -> None:
    # Appending fields is safe
    print(uproxy.check_layout(CounterV1.layout, CounterV2.layout).summary())

    # Reordering is not
    reordered = StorageLayout.of(
        ("owner", "address"), ("value", "uint256"), ("initialized", "bool")
    )
    print(uproxy.check_layout(CounterV1.layout, reordered).summary())

    print(f"Selector clashes in CounterV2: {selector_clashes(CounterV2) or 'none'}")

    # Reserved slots are public constants
    print(f"\nbackend slot: 0x{BACKEND_SLOT.hex()}")
    print(f"admin slot:   0x{ADMIN_SLOT.hex()}")

    rt = Runtime()
    deployer = Address.from_label("deployer")
    admin = Address.from_label("admin")
    v1 = rt.deploy(deployer, CounterV1())
    proxy = uproxy.deploy_proxy(rt, deployer, v1, admin, CounterV1.encode("initialize", 1))

    dump = rt.storage_at(proxy).to_yaml()
    print(f"\nProxy store dump:\n{dump}")
    restored = PersistentStore.from_yaml(dump)
    print(f"backend from dump: {proxy_backend_of(restored)}")
    print(f"admin from dump:   {proxy_admin_of(restored)}")


if __name__ == "__main__":
    main()
