"""Persistent storage: the flat slot store, reserved proxy slots, and
declared backend field layouts.
"""
from __future__ import annotations

from uproxy.storage.layout import Field, FieldKind, StateView, StorageLayout
from uproxy.storage.slots import (
    ADMIN_SLOT,
    BACKEND_SLOT,
    RESERVED_SLOTS,
    ReservedSlot,
    proxy_admin_of,
    proxy_backend_of,
    reserved_slot,
)
from uproxy.storage.store import PersistentStore, RegionView

__all__ = [
    "PersistentStore",
    "RegionView",
    "ReservedSlot",
    "reserved_slot",
    "BACKEND_SLOT",
    "ADMIN_SLOT",
    "RESERVED_SLOTS",
    "proxy_backend_of",
    "proxy_admin_of",
    "Field",
    "FieldKind",
    "StorageLayout",
    "StateView",
]
