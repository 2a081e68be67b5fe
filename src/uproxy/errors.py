"""Failure types raised by proxies, backend modules, and the runtime.

Every failure that crosses an invocation boundary is a ``ProxyError``.
Each carries a ``payload``: the 4-byte selector of ``<Name>(string)``
followed by the ABI-encoded message, which is what an external caller
observes in a failed ``CallResult``.  The proxy forwards these objects
unchanged, so a caller going through a proxy sees exactly the failure
the backend raised.
"""
from __future__ import annotations


class ProxyError(Exception):
    """Base class for all invocation failures.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def kind(self) -> str:
        """The error kind, i.e. the class name."""
        return type(self).__name__

    @property
    def payload(self) -> bytes:
        """Selector of ``<kind>(string)`` followed by the encoded message."""
        from uproxy.abi import encode_call

        return encode_call(f"{self.kind}(string)", self.message)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InvalidArgument(ProxyError):
    """A null identity, malformed call data, or a rejected value transfer."""


class NotAuthorized(ProxyError):
    """The caller is not the backend module's owner."""

    def __init__(self, message: str, caller: object = None) -> None:
        self.caller = caller
        super().__init__(message)


class AlreadyInitialized(ProxyError):
    """A one-time initialization was replayed."""


class UnknownOperation(ProxyError):
    """No operation of the invoked code matches the call selector."""

    def __init__(self, selector: bytes) -> None:
        self.selector = selector
        super().__init__(f"no operation with selector 0x{selector.hex()}")


class ReservedSlotViolation(ProxyError):
    """Backend module code attempted to write a proxy-reserved slot."""

    def __init__(self, slot: bytes) -> None:
        self.slot = slot
        super().__init__(f"slot 0x{slot.hex()} is reserved for the proxy")


class CallDepthExceeded(ProxyError):
    """Nested invocations exceeded the configured maximum depth."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"call depth limit of {limit} exceeded")


class AccountNotFound(ProxyError):
    """The target address has no deployed code."""

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"no code deployed at {address}")


__all__ = [
    "ProxyError",
    "InvalidArgument",
    "NotAuthorized",
    "AlreadyInitialized",
    "UnknownOperation",
    "ReservedSlotViolation",
    "AccountNotFound",
    "CallDepthExceeded",
]
