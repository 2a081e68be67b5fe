"""Reserved proxy slots.

The proxy keeps its backend reference and administrator identity in
the same store as the backend module's own fields.  To make a
collision with any backend field layout negligible, each reserved slot
identifier is a one-way hash of a unique descriptive label, minus one:

    slot = SHA3-256(label) - 1  (mod 2**256)

Backend fields occupy small sequential slot indices and hash-derived
data slots of the form ``SHA3-256(field_slot) + i``; subtracting one
keeps the reserved identifiers off that second family, because no known
preimage hashes to them.

``BACKEND_SLOT`` and ``ADMIN_SLOT`` are public constants so that tools
reading a store out-of-band can locate proxy-managed state.
"""
from __future__ import annotations

import hashlib

from uproxy.identity import ADDRESS_LENGTH, Address
from uproxy.storage.store import WORD_SIZE, PersistentStore, RegionView

BACKEND_LABEL = "uproxy.proxy.backend"
ADMIN_LABEL = "uproxy.proxy.admin"


def reserved_slot(label: str) -> bytes:
    """Return the 32-byte reserved slot identifier for ``label``."""
    digest = int.from_bytes(hashlib.sha3_256(label.encode("utf-8")).digest(), "big")
    return ((digest - 1) % 2 ** (8 * WORD_SIZE)).to_bytes(WORD_SIZE, "big")


BACKEND_SLOT: bytes = reserved_slot(BACKEND_LABEL)
ADMIN_SLOT: bytes = reserved_slot(ADMIN_LABEL)
RESERVED_SLOTS: frozenset[bytes] = frozenset({BACKEND_SLOT, ADMIN_SLOT})


class ReservedSlot:
    """Accessor pair for one identity-valued reserved slot.

    Parameters
    ----------
    label:
        Unique descriptive label the slot identifier is derived from.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.key = reserved_slot(label)

    def read(self, store: PersistentStore | RegionView) -> Address:
        return Address(store.read(self.key)[WORD_SIZE - ADDRESS_LENGTH :])

    def write(self, store: PersistentStore, address: Address) -> None:
        store.write(self.key, bytes(WORD_SIZE - ADDRESS_LENGTH) + address.raw)

    def __repr__(self) -> str:
        return f"ReservedSlot({self.label!r}, key=0x{self.key.hex()})"


BACKEND_REF = ReservedSlot(BACKEND_LABEL)
ADMIN_REF = ReservedSlot(ADMIN_LABEL)


def proxy_backend_of(store: PersistentStore) -> Address:
    """Read a proxy's backend reference straight from its store."""
    return BACKEND_REF.read(store)


def proxy_admin_of(store: PersistentStore) -> Address:
    """Read a proxy's administrator identity straight from its store."""
    return ADMIN_REF.read(store)


__all__ = [
    "BACKEND_LABEL",
    "ADMIN_LABEL",
    "BACKEND_SLOT",
    "ADMIN_SLOT",
    "RESERVED_SLOTS",
    "reserved_slot",
    "ReservedSlot",
    "BACKEND_REF",
    "ADMIN_REF",
    "proxy_backend_of",
    "proxy_admin_of",
]
