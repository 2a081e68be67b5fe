"""Contract base class and operation declarations.

A ``Contract`` is stateless code: every persistent effect goes through
the ``ExecutionContext`` it is invoked with.  Public operations are
ordinary methods decorated with :func:`operation`, which records the
canonical signature and return types used to build the selector table::

    class Greeter(Contract):
        @operation("greet(string)", returns=("string",))
        def greet(self, ctx: ExecutionContext, name: str) -> str:
            return f"hello {name}"

``Contract.execute`` splits the call data into selector and arguments,
decodes the arguments, runs the matching method, and encodes its
result.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from uproxy.abi import SELECTOR_LENGTH, decode_args, encode_args, parse_signature, selector
from uproxy.errors import InvalidArgument, UnknownOperation

if TYPE_CHECKING:
    from uproxy.runtime import ExecutionContext

F = TypeVar("F", bound=Callable[..., Any])

_OPERATION_ATTR = "__uproxy_operation__"


@dataclass(frozen=True)
class Operation:
    """A single externally callable operation.

    Parameters
    ----------
    signature:
        Canonical signature, e.g. ``"setValue(uint256)"``.
    attr:
        Name of the implementing method.
    returns:
        ABI types of the return values.
    payable:
        Whether a non-zero value may accompany the call.
    """

    signature: str
    attr: str
    returns: tuple[str, ...] = ()
    payable: bool = False

    @property
    def name(self) -> str:
        return parse_signature(self.signature)[0]

    @property
    def params(self) -> tuple[str, ...]:
        return parse_signature(self.signature)[1]

    @property
    def selector(self) -> bytes:
        return selector(self.signature)

    def encode_result(self, result: Any) -> bytes:
        if not self.returns:
            return b""
        values = (result,) if len(self.returns) == 1 else tuple(result)
        return encode_args(self.returns, values)

    def decode_result(self, data: bytes) -> Any:
        if not self.returns:
            return None
        values = decode_args(self.returns, data)
        return values[0] if len(values) == 1 else values


def operation(
    signature: str, returns: tuple[str, ...] = (), payable: bool = False
) -> Callable[[F], F]:
    """Mark a method as an externally callable operation."""
    parse_signature(signature)
    for abi_type in returns:
        parse_signature(f"r({abi_type})")

    def decorator(func: F) -> F:
        setattr(func, _OPERATION_ATTR, (signature, tuple(returns), payable))
        return func

    return decorator


class Contract:
    """Base class for deployable code.

    Subclasses get ``operations`` (selector -> ``Operation``) and
    ``operations_by_name`` (method name -> ``Operation``) built at class
    creation from every decorated method in the MRO.
    """

    operations: ClassVar[dict[bytes, Operation]] = {}
    operations_by_name: ClassVar[dict[str, Operation]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        by_name: dict[str, Operation] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                spec = getattr(member, _OPERATION_ATTR, None)
                if spec is None:
                    continue
                signature, returns, payable = spec
                by_name[attr] = Operation(signature, attr, returns, payable)
        by_selector: dict[bytes, Operation] = {}
        for op in by_name.values():
            clash = by_selector.get(op.selector)
            if clash is not None and clash.signature != op.signature:
                raise TypeError(
                    f"{cls.__name__}: selector 0x{op.selector.hex()} of "
                    f"{op.signature!r} collides with {clash.signature!r}"
                )
            by_selector[op.selector] = op
        cls.operations = by_selector
        cls.operations_by_name = by_name

    def on_deploy(self, ctx: "ExecutionContext", *args: Any) -> None:
        """Construction hook, run once when the code is deployed."""
        if args:
            raise InvalidArgument(f"{type(self).__name__} takes no construction arguments")

    def execute(self, ctx: "ExecutionContext", calldata: bytes) -> bytes:
        """Entry point used by the runtime for every invocation of this code."""
        return self.invoke(calldata[:SELECTOR_LENGTH], calldata[SELECTOR_LENGTH:], ctx)

    def invoke(self, sel: bytes, args_data: bytes, ctx: "ExecutionContext") -> bytes:
        """Run the operation matching ``sel`` on ``args_data``; return encoded results.

        Raises
        ------
        UnknownOperation
            If no operation has selector ``sel``.
        InvalidArgument
            If ``args_data`` is malformed or value accompanies a
            non-payable operation.
        """
        op = self.operations.get(sel)
        if op is None:
            raise UnknownOperation(sel)
        if ctx.value and not op.payable:
            raise InvalidArgument(f"{op.signature} does not accept value")
        args = decode_args(op.params, args_data)
        return op.encode_result(getattr(self, op.attr)(ctx, *args))

    @classmethod
    def encode(cls, name: str, *args: Any) -> bytes:
        """Encode a call to the operation implemented by method ``name``."""
        op = cls.operations_by_name[name]
        return op.selector + encode_args(op.params, args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


__all__ = ["Operation", "operation", "Contract"]
