"""Account identities.

An ``Address`` is an opaque 20-byte identity.  The all-zero address is
the *null identity*; proxies refuse it as a backend or administrator.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass

ADDRESS_LENGTH = 20


@dataclass(frozen=True, slots=True)
class Address:
    """A 20-byte account identity.

    Parameters
    ----------
    raw:
        Exactly ``ADDRESS_LENGTH`` bytes.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != ADDRESS_LENGTH:
            raise ValueError(
                f"Address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}"
            )

    @classmethod
    def null(cls) -> "Address":
        """Return the null identity."""
        return cls(bytes(ADDRESS_LENGTH))

    @classmethod
    def from_hex(cls, text: str) -> "Address":
        """Parse a ``0x``-prefixed (or bare) hex string."""
        text = text[2:] if text.startswith(("0x", "0X")) else text
        return cls(bytes.fromhex(text))

    @classmethod
    def from_label(cls, label: str) -> "Address":
        """Derive a deterministic address from a human-readable label."""
        return cls(hashlib.sha3_256(label.encode("utf-8")).digest()[-ADDRESS_LENGTH:])

    @property
    def is_null(self) -> bool:
        return not any(self.raw)

    def to_hex(self) -> str:
        return "0x" + self.raw.hex()

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"Address({self.to_hex()})"


NULL_ADDRESS = Address.null()

__all__ = ["ADDRESS_LENGTH", "Address", "NULL_ADDRESS"]
