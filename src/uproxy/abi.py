"""Call-data codec.

Invocations are addressed by a 4-byte *selector* derived from a
canonical signature such as ``"setValue(uint256)"``, followed by the
encoded arguments.  Arguments and return values use 32-byte words:

- ``uint256``  big-endian unsigned integer
- ``address``  20-byte identity, left-padded with zeros
- ``bool``     ``0`` or ``1``
- ``string`` / ``bytes``  dynamic; the head word holds the byte offset
  of the tail, the tail holds a length word followed by the data,
  right-padded to a multiple of 32 bytes

Usage
-----
::

    from uproxy.abi import encode_call, decode_args, selector

    data = encode_call("setValue(uint256)", 20)
    assert data[:4] == selector("setValue(uint256)")
    assert decode_args(("uint256",), data[4:]) == (20,)
"""
from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import Any

from uproxy.errors import InvalidArgument
from uproxy.identity import ADDRESS_LENGTH, Address

WORD = 32
SELECTOR_LENGTH = 4
UINT256_MAX = 2**256 - 1

STATIC_TYPES: frozenset[str] = frozenset({"uint256", "address", "bool"})
DYNAMIC_TYPES: frozenset[str] = frozenset({"string", "bytes"})


def selector(signature: str) -> bytes:
    """Return the 4-byte selector for a canonical signature."""
    return hashlib.sha3_256(signature.encode("ascii")).digest()[:SELECTOR_LENGTH]


def parse_signature(signature: str) -> tuple[str, tuple[str, ...]]:
    """Split ``"name(t1,t2)"`` into ``("name", ("t1", "t2"))``.

    Raises
    ------
    ValueError
        If the signature is not well formed or names an unsupported type.
    """
    open_paren = signature.find("(")
    if open_paren <= 0 or not signature.endswith(")"):
        raise ValueError(f"Malformed signature: {signature!r}")
    name = signature[:open_paren]
    inner = signature[open_paren + 1 : -1]
    types = tuple(t.strip() for t in inner.split(",")) if inner else ()
    for abi_type in types:
        if abi_type not in STATIC_TYPES and abi_type not in DYNAMIC_TYPES:
            raise ValueError(f"Unsupported type {abi_type!r} in {signature!r}")
    return name, types


def _pad_right(data: bytes) -> bytes:
    remainder = len(data) % WORD
    return data if remainder == 0 else data + bytes(WORD - remainder)


def encode_uint(value: int) -> bytes:
    """Encode a single ``uint256`` word."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"uint256 expects an int, got {type(value).__name__}")
    if not 0 <= value <= UINT256_MAX:
        raise InvalidArgument(f"uint256 out of range: {value}")
    return value.to_bytes(WORD, "big")


def _encode_static(abi_type: str, value: Any) -> bytes:
    if abi_type == "uint256":
        return encode_uint(value)
    if abi_type == "address":
        if not isinstance(value, Address):
            raise InvalidArgument(f"address expects an Address, got {type(value).__name__}")
        return bytes(WORD - ADDRESS_LENGTH) + value.raw
    if abi_type == "bool":
        if not isinstance(value, bool):
            raise InvalidArgument(f"bool expects a bool, got {type(value).__name__}")
        return encode_uint(int(value))
    raise InvalidArgument(f"Unsupported static type {abi_type!r}")


def _encode_dynamic(abi_type: str, value: Any) -> bytes:
    if abi_type == "string":
        if not isinstance(value, str):
            raise InvalidArgument(f"string expects a str, got {type(value).__name__}")
        data = value.encode("utf-8")
    else:
        if not isinstance(value, (bytes, bytearray)):
            raise InvalidArgument(f"bytes expects bytes, got {type(value).__name__}")
        data = bytes(value)
    return encode_uint(len(data)) + _pad_right(data)


def encode_args(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """Encode ``values`` according to ``types`` (head words, then tails)."""
    if len(types) != len(values):
        raise InvalidArgument(
            f"expected {len(types)} argument(s), got {len(values)}"
        )
    head: list[bytes] = []
    tail = b""
    head_size = WORD * len(types)
    for abi_type, value in zip(types, values):
        if abi_type in DYNAMIC_TYPES:
            head.append(encode_uint(head_size + len(tail)))
            tail += _encode_dynamic(abi_type, value)
        else:
            head.append(_encode_static(abi_type, value))
    return b"".join(head) + tail


def encode_call(signature: str, *args: Any) -> bytes:
    """Return selector plus encoded arguments for ``signature``."""
    _, types = parse_signature(signature)
    return selector(signature) + encode_args(types, args)


def _read_word(data: bytes, offset: int) -> bytes:
    if offset < 0 or offset + WORD > len(data):
        raise InvalidArgument(f"call data too short: need word at offset {offset}")
    return data[offset : offset + WORD]


def _decode_static(abi_type: str, word: bytes) -> Any:
    number = int.from_bytes(word, "big")
    if abi_type == "uint256":
        return number
    if abi_type == "address":
        if any(word[: WORD - ADDRESS_LENGTH]):
            raise InvalidArgument("address word has non-zero padding")
        return Address(word[WORD - ADDRESS_LENGTH :])
    if number > 1:
        raise InvalidArgument(f"bool word out of range: {number}")
    return bool(number)


def decode_args(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """Decode ``data`` produced by :func:`encode_args`.

    Raises
    ------
    InvalidArgument
        If ``data`` is truncated or a word is out of range for its type.
    """
    values: list[Any] = []
    for index, abi_type in enumerate(types):
        word = _read_word(data, index * WORD)
        if abi_type not in DYNAMIC_TYPES:
            values.append(_decode_static(abi_type, word))
            continue
        offset = int.from_bytes(word, "big")
        length = int.from_bytes(_read_word(data, offset), "big")
        start = offset + WORD
        if start + length > len(data):
            raise InvalidArgument(f"{abi_type} length {length} exceeds call data")
        raw = data[start : start + length]
        if abi_type == "string":
            try:
                values.append(raw.decode("utf-8"))
            except UnicodeDecodeError as exc:
                raise InvalidArgument(f"string is not valid UTF-8: {exc}") from None
        else:
            values.append(raw)
    return tuple(values)


__all__ = [
    "WORD",
    "SELECTOR_LENGTH",
    "UINT256_MAX",
    "selector",
    "parse_signature",
    "encode_uint",
    "encode_args",
    "encode_call",
    "decode_args",
]
