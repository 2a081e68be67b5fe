"""Flat ``bytes32 -> bytes32`` persistent store.

Each deployed account owns exactly one ``PersistentStore``.  Keys and
values are 32-byte words; reading an unset key yields the zero word and
writing the zero word deletes the key, so two stores with the same
observable contents always compare equal.

Snapshots can be exported to plain dicts or YAML so that tooling can
inspect a store out-of-band, e.g. to read the proxy's reserved slots::

    from uproxy.storage import PersistentStore, BACKEND_SLOT

    text = store.to_yaml()
    restored = PersistentStore.from_yaml(text)
    assert restored.read(BACKEND_SLOT) == store.read(BACKEND_SLOT)
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Union

import yaml

from uproxy.errors import ReservedSlotViolation

WORD_SIZE = 32
ZERO_WORD = bytes(WORD_SIZE)

SlotKey = Union[int, bytes]


def slot_key(slot: SlotKey) -> bytes:
    """Normalise an integer or 32-byte slot identifier to 32 bytes."""
    if isinstance(slot, int):
        if not 0 <= slot < 2 ** (8 * WORD_SIZE):
            raise ValueError(f"slot index out of range: {slot}")
        return slot.to_bytes(WORD_SIZE, "big")
    if len(slot) != WORD_SIZE:
        raise ValueError(f"slot key must be {WORD_SIZE} bytes, got {len(slot)}")
    return bytes(slot)


def _hex(word: bytes) -> str:
    return "0x" + word.hex()


def _unhex(text: str) -> bytes:
    return bytes.fromhex(text[2:] if text.startswith("0x") else text)


class PersistentStore:
    """A single account's persistent key/value space.

    Parameters
    ----------
    data:
        Optional initial contents keyed by 32-byte slot identifiers.
    """

    def __init__(self, data: Mapping[bytes, bytes] | None = None) -> None:
        self._data: dict[bytes, bytes] = {}
        for key, value in (data or {}).items():
            self.write(key, value)

    def read(self, slot: SlotKey) -> bytes:
        """Return the word at ``slot`` (the zero word when unset)."""
        return self._data.get(slot_key(slot), ZERO_WORD)

    def write(self, slot: SlotKey, word: bytes) -> None:
        """Store ``word`` at ``slot``; the zero word clears the slot."""
        if len(word) != WORD_SIZE:
            raise ValueError(f"stored word must be {WORD_SIZE} bytes, got {len(word)}")
        key = slot_key(slot)
        if word == ZERO_WORD:
            self._data.pop(key, None)
        else:
            self._data[key] = bytes(word)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[bytes, bytes]:
        """Return a copy of the raw contents for a later :meth:`restore`."""
        return dict(self._data)

    def restore(self, snapshot: Mapping[bytes, bytes]) -> None:
        """Replace the contents with a previously taken snapshot."""
        self._data = dict(snapshot)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, str]:
        """Return the contents as ``0x``-hex strings, sorted by slot."""
        return {_hex(key): _hex(self._data[key]) for key in sorted(self._data)}

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "PersistentStore":
        return cls({_unhex(key): _unhex(value) for key, value in data.items()})

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=True)

    @classmethod
    def from_yaml(cls, text: str) -> "PersistentStore":
        data: dict[str, str] | None = yaml.safe_load(text)
        return cls.from_dict(data or {})

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[bytes]:
        return iter(sorted(self._data))

    def __contains__(self, slot: object) -> bool:
        if not isinstance(slot, (int, bytes)):
            return False
        return slot_key(slot) in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PersistentStore):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"PersistentStore(slots={len(self._data)})"


class RegionView:
    """The view of a store handed to backend module code.

    Reads pass straight through; writes to any of ``reserved`` raise
    :class:`~uproxy.errors.ReservedSlotViolation`, so module code can
    never overwrite proxy-managed slots.
    """

    def __init__(self, store: PersistentStore, reserved: frozenset[bytes]) -> None:
        self._store = store
        self._reserved = reserved

    @property
    def store(self) -> PersistentStore:
        return self._store

    def read(self, slot: SlotKey) -> bytes:
        return self._store.read(slot)

    def write(self, slot: SlotKey, word: bytes) -> None:
        key = slot_key(slot)
        if key in self._reserved:
            raise ReservedSlotViolation(key)
        self._store.write(key, word)


__all__ = [
    "WORD_SIZE",
    "ZERO_WORD",
    "SlotKey",
    "slot_key",
    "PersistentStore",
    "RegionView",
]
