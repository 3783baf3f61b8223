"""Value definitions and helpers for Kestrel.

This module defines the runtime values used by the Kestrel interpreter.
Scalars are plain Python objects (`int` for Number, `bool` for Boolean,
`str` for String); containers and functions get small wrapper classes so
that aliasing is observable. It also provides the tag-checked accessors,
the relational operators and the string conversion used by interpolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import KestrelError, TYPE_MISMATCH, DIVISION_BY_ZERO

INT_BITS = 64
INT_MIN = -(1 << (INT_BITS - 1))
INT_MAX = (1 << (INT_BITS - 1)) - 1


class UnitVal:
    """Marker object for the absence of a value."""
    def __repr__(self) -> str:
        return 'Unit'

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, UnitVal)

    def __hash__(self) -> int:
        return hash(UnitVal)


UNIT = UnitVal()


@dataclass(eq=False)
class ArrayVal:
    """Represents a Kestrel array value.

    Arrays are shared: assigning or passing one never copies `items`, so
    mutation through any alias is visible through every other alias.
    Equality is identity.
    """
    items: List[Any] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"Array({self.items!r})"


@dataclass(eq=False)
class ObjectVal:
    """Represents a Kestrel object value.

    Objects map property names to values. Like arrays they are shared by
    reference and compare by identity.
    """
    properties: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"Object({self.properties!r})"


@dataclass(frozen=True)
class Parameter:
    name: str
    mutable: bool = False


class FunctionValue:
    """Represents a callable Kestrel value.

    `fn` receives the fresh call environment (already holding `self`, the
    parameters and the call position) and returns the call result. User
    functions close over their defining environment inside `fn`; built-ins
    are plain Python callables with the same shape.
    """
    def __init__(self, params: List[Parameter], fn: Callable[[Any], Any], name: Optional[str] = None):
        self.params = params
        self.fn = fn
        self.name = name

    def __call__(self, call_env: Any) -> Any:
        return self.fn(call_env)

    def __repr__(self) -> str:
        return f"<function {self.name or 'anonymous'}>"


def type_name(value: Any) -> str:
    """Return the Kestrel kind name of a runtime value."""
    if isinstance(value, bool):
        return 'Boolean'
    if isinstance(value, int):
        return 'Number'
    if isinstance(value, str):
        return 'String'
    if isinstance(value, ArrayVal):
        return 'Array'
    if isinstance(value, ObjectVal):
        return 'Object'
    if isinstance(value, FunctionValue):
        return 'Function'
    if isinstance(value, UnitVal):
        return 'Unit'
    return type(value).__name__


def _mismatch(expected: str, value: Any) -> KestrelError:
    return KestrelError(TYPE_MISMATCH, f"expected {expected}, got {type_name(value)}")


def to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise _mismatch('Boolean', value)
    return value


def to_number(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _mismatch('Number', value)
    return value


def to_string(value: Any) -> str:
    if not isinstance(value, str):
        raise _mismatch('String', value)
    return value


def to_array(value: Any) -> ArrayVal:
    if not isinstance(value, ArrayVal):
        raise _mismatch('Array', value)
    return value


def to_object(value: Any) -> ObjectVal:
    if not isinstance(value, ObjectVal):
        raise _mismatch('Object', value)
    return value


def to_function(value: Any) -> FunctionValue:
    if not isinstance(value, FunctionValue):
        raise _mismatch('Function', value)
    return value


def wrap_int(n: int) -> int:
    """Wrap an integer into the signed 64-bit range (two's complement)."""
    if INT_MIN <= n <= INT_MAX:
        return n
    return ((n - INT_MIN) % (1 << INT_BITS)) + INT_MIN


def number_from_literal(text: str) -> int:
    """Convert a decimal literal of any length to a wrapped Number.

    Digits are folded in in chunks reduced modulo 2**64, so the host's limit
    on int/str conversion length never applies.
    """
    value = 0
    for i in range(0, len(text), 18):
        chunk = text[i:i + 18]
        value = (value * 10 ** len(chunk) + int(chunk)) % (1 << INT_BITS)
    return wrap_int(value)


def arith(op: str, a: int, b: int) -> int:
    """Apply an arithmetic operator to two Numbers.

    Division truncates toward zero and the remainder takes the sign of the
    dividend, the way machine integer division behaves. Results wrap.
    """
    if op == '+':
        return wrap_int(a + b)
    if op == '-':
        return wrap_int(a - b)
    if op == '*':
        return wrap_int(a * b)
    if op in ('/', '%'):
        if b == 0:
            raise KestrelError(DIVISION_BY_ZERO, 'division by zero' if op == '/' else 'modulo by zero')
        quotient = abs(a) // abs(b)
        if (a < 0) != (b < 0):
            quotient = -quotient
        if op == '/':
            return wrap_int(quotient)
        return wrap_int(a - quotient * b)
    raise KestrelError(TYPE_MISMATCH, f'unknown arithmetic operator {op}')


def values_equal(a: Any, b: Any) -> bool:
    kind = type_name(a)
    if kind != type_name(b):
        raise KestrelError(TYPE_MISMATCH, f'cannot compare {kind} with {type_name(b)}')
    if isinstance(a, (ArrayVal, ObjectVal, FunctionValue)):
        return a is b
    return a == b


def compare(op: str, a: Any, b: Any) -> bool:
    """Evaluate a relational operator between two values of the same kind."""
    if op == '==':
        return values_equal(a, b)
    if op == '!=':
        return not values_equal(a, b)
    kind = type_name(a)
    if kind != type_name(b):
        raise KestrelError(TYPE_MISMATCH, f'cannot compare {kind} with {type_name(b)}')
    if kind not in ('Number', 'String', 'Boolean'):
        raise KestrelError(TYPE_MISMATCH, f'{kind} values have no ordering')
    if op == '<':
        return a < b
    if op == '<=':
        return a <= b
    if op == '>':
        return a > b
    if op == '>=':
        return a >= b
    raise KestrelError(TYPE_MISMATCH, f'unknown comparison operator {op}')


def stringify(value: Any) -> str:
    """Convert a Kestrel value to the text used by interpolation and puts."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, ArrayVal):
        return '[' + ', '.join(stringify(item) for item in value.items) + ']'
    if isinstance(value, ObjectVal):
        entries = ', '.join(f"{k}: {stringify(v)}" for k, v in value.properties.items())
        return '{' + entries + '}'
    if isinstance(value, FunctionValue):
        return '[function]'
    if isinstance(value, UnitVal):
        return 'undefined'
    return str(value)
