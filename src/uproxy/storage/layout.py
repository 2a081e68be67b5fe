"""Declared field layouts for backend module state.

A backend module declares its persistent fields as an ordered
``StorageLayout``.  Field *i* lives at slot *i*.  A ``string`` field
keeps its byte length at its own slot and its UTF-8 data in consecutive
words starting at ``SHA3-256(slot)``.

Layouts evolve by appending only: a later module version builds its
layout with :meth:`StorageLayout.extend` so every earlier field keeps
its slot and type::

    V1 = StorageLayout.of(("value", "uint256"), ("owner", "address"))
    V2 = V1.extend(("message", "string"))
"""
from __future__ import annotations

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from uproxy.abi import encode_uint
from uproxy.identity import ADDRESS_LENGTH, Address
from uproxy.storage.store import WORD_SIZE, ZERO_WORD, PersistentStore, RegionView


class FieldKind(Enum):
    """Value types a backend field may hold."""

    UINT256 = "uint256"
    ADDRESS = "address"
    BOOL = "bool"
    STRING = "string"


@dataclass(frozen=True, slots=True)
class Field:
    """A single declared field."""

    name: str
    kind: FieldKind

    def __str__(self) -> str:
        return f"{self.kind.value} {self.name}"


FieldLike = Union[Field, tuple[str, str]]


def _as_field(item: FieldLike) -> Field:
    if isinstance(item, Field):
        return item
    name, kind = item
    return Field(name=name, kind=FieldKind(kind))


@dataclass(frozen=True)
class StorageLayout:
    """Ordered, append-only sequence of fields.

    Parameters
    ----------
    fields:
        The declared fields; position determines the slot index.
    """

    fields: tuple[Field, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for item in self.fields:
            if item.name in seen:
                raise ValueError(f"Duplicate field name {item.name!r} in layout")
            seen.add(item.name)

    @classmethod
    def of(cls, *items: FieldLike) -> "StorageLayout":
        return cls(tuple(_as_field(item) for item in items))

    def extend(self, *items: FieldLike) -> "StorageLayout":
        """Return a new layout with ``items`` appended after every existing field."""
        return StorageLayout(self.fields + tuple(_as_field(item) for item in items))

    def field(self, name: str) -> Field:
        for item in self.fields:
            if item.name == name:
                return item
        raise KeyError(f"No field {name!r} in layout")

    def slot_of(self, name: str) -> int:
        for index, item in enumerate(self.fields):
            if item.name == name:
                return index
        raise KeyError(f"No field {name!r} in layout")

    @property
    def names(self) -> list[str]:
        return [item.name for item in self.fields]

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: object) -> bool:
        return any(item.name == name for item in self.fields)


_SLOT_SPACE = 2 ** (8 * WORD_SIZE)


def string_data_slot(slot: int) -> int:
    """First data word of a string field declared at ``slot``."""
    return int.from_bytes(
        hashlib.sha3_256(slot.to_bytes(WORD_SIZE, "big")).digest(), "big"
    )


def _word_count(length: int) -> int:
    return (length + WORD_SIZE - 1) // WORD_SIZE


class StateView:
    """Typed read/write access to a layout's fields over a store.

    Backend code receives a ``StateView`` bound to whatever store the
    current invocation operates on: the module's own store when called
    directly, or the proxy's store when reached through forwarding.

    Parameters
    ----------
    layout:
        The declared fields.
    region:
        The store (or guarded region view) to read and write.
    """

    def __init__(self, layout: StorageLayout, region: PersistentStore | RegionView) -> None:
        self._layout = layout
        self._region = region

    def get(self, name: str) -> Any:
        item = self._layout.field(name)
        slot = self._layout.slot_of(name)
        word = self._region.read(slot)
        if item.kind is FieldKind.UINT256:
            return int.from_bytes(word, "big")
        if item.kind is FieldKind.ADDRESS:
            return Address(word[WORD_SIZE - ADDRESS_LENGTH :])
        if item.kind is FieldKind.BOOL:
            return word != ZERO_WORD
        length = int.from_bytes(word, "big")
        base = string_data_slot(slot)
        data = b"".join(
            self._region.read((base + i) % _SLOT_SPACE)
            for i in range(_word_count(length))
        )
        return data[:length].decode("utf-8")

    def set(self, name: str, value: Any) -> None:
        item = self._layout.field(name)
        slot = self._layout.slot_of(name)
        if item.kind is FieldKind.UINT256:
            self._region.write(slot, encode_uint(value))
        elif item.kind is FieldKind.ADDRESS:
            self._region.write(slot, bytes(WORD_SIZE - ADDRESS_LENGTH) + value.raw)
        elif item.kind is FieldKind.BOOL:
            self._region.write(slot, encode_uint(int(bool(value))))
        else:
            self._set_string(slot, value)

    def _set_string(self, slot: int, value: str) -> None:
        data = value.encode("utf-8")
        base = string_data_slot(slot)
        old_words = _word_count(int.from_bytes(self._region.read(slot), "big"))
        new_words = _word_count(len(data))
        for i in range(new_words):
            chunk = data[i * WORD_SIZE : (i + 1) * WORD_SIZE]
            self._region.write((base + i) % _SLOT_SPACE, chunk.ljust(WORD_SIZE, b"\x00"))
        for i in range(new_words, old_words):
            self._region.write((base + i) % _SLOT_SPACE, ZERO_WORD)
        self._region.write(slot, encode_uint(len(data)))

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)


__all__ = [
    "FieldKind",
    "Field",
    "StorageLayout",
    "StateView",
    "string_data_slot",
]
