"""Built-in capability set: the only functions and constants expressions can reach."""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Callable, Mapping

# ---------------------------------------------------------------------------
# Size limits shared with the evaluator
# ---------------------------------------------------------------------------

MAX_INT_BITS = 4096
MAX_STRING_LENGTH = 10_000
_MAX_FACTORIAL = 500


def check_int_size(value: int) -> int:
    """Raise OverflowError if *value* is wider than MAX_INT_BITS."""
    if value.bit_length() > MAX_INT_BITS:
        raise OverflowError(f"integer result exceeds {MAX_INT_BITS} bits")
    return value


def check_power(base: Any, exponent: Any) -> None:
    """Reject ``base ** exponent`` up front when both are ints and the result is too wide.

    Float powers overflow on their own (OverflowError), so only exact integer
    powers need the estimate.
    """
    if isinstance(base, bool) or isinstance(exponent, bool):
        return
    if not isinstance(base, int) or not isinstance(exponent, int):
        return
    if exponent <= 0 or abs(base) <= 1:
        return
    if exponent * math.log2(abs(base)) > MAX_INT_BITS:
        raise OverflowError(f"integer result exceeds {MAX_INT_BITS} bits")


# ---------------------------------------------------------------------------
# Whitelist: names the evaluator exposes, by category.
# ---------------------------------------------------------------------------

BUILTIN_WHITELIST: dict[str, str] = {
    # Math (23)
    "abs": "math",
    "ceil": "math",
    "floor": "math",
    "trunc": "math",
    "round": "math",
    "sqrt": "math",
    "exp": "math",
    "log": "math",
    "log2": "math",
    "log10": "math",
    "pow": "math",
    "fmod": "math",
    "modf": "math",
    "frexp": "math",
    "ldexp": "math",
    "hypot": "math",
    "factorial": "math",
    "gcd": "math",
    "lcm": "math",
    "min": "math",
    "max": "math",
    "sum": "math",
    "isclose": "math",
    # Trig (12)
    "sin": "trig",
    "cos": "trig",
    "tan": "trig",
    "asin": "trig",
    "acos": "trig",
    "atan": "trig",
    "atan2": "trig",
    "sinh": "trig",
    "cosh": "trig",
    "tanh": "trig",
    "degrees": "trig",
    "radians": "trig",
    # Conversion (6)
    "int": "conversion",
    "float": "conversion",
    "hex": "conversion",
    "bin": "conversion",
    "oct": "conversion",
    "tostring": "conversion",
    # Constants (5)
    "pi": "constant",
    "e": "constant",
    "tau": "constant",
    "inf": "constant",
    "nan": "constant",
    # Introspection (1)
    "type": "introspection",
}


def is_builtin(name: str) -> bool:
    """Check if a name is in the built-in whitelist (case-sensitive)."""
    return name in BUILTIN_WHITELIST


# ---------------------------------------------------------------------------
# Wrapped builtins
# ---------------------------------------------------------------------------


def _builtin_pow(base: Any, exponent: Any, modulus: Any = None) -> Any:
    if modulus is not None:
        return pow(base, exponent, modulus)
    check_power(base, exponent)
    return pow(base, exponent)


def _builtin_factorial(n: Any) -> int:
    if isinstance(n, int) and n > _MAX_FACTORIAL:
        raise OverflowError(f"factorial() argument must be at most {_MAX_FACTORIAL}")
    return math.factorial(n)


def _builtin_min(*args: Any) -> Any:
    if not args:
        raise TypeError("min expected at least 1 argument, got 0")
    return min(args)


def _builtin_max(*args: Any) -> Any:
    if not args:
        raise TypeError("max expected at least 1 argument, got 0")
    return max(args)


def _builtin_sum(*args: Any) -> Any:
    """Sum of the arguments (``sum(1, 2, 3)``); there are no iterables to pass."""
    return sum(args)


def _builtin_tostring(value: Any) -> str:
    return str(value)


def _builtin_type(value: Any) -> str:
    """Type name of a value as a string."""
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    if callable(value):
        return "function"
    return type(value).__name__


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTINS: dict[str, Any] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "trunc": math.trunc,
    "round": round,
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "log2": math.log2,
    "log10": math.log10,
    "pow": _builtin_pow,
    "fmod": math.fmod,
    "modf": math.modf,
    "frexp": math.frexp,
    "ldexp": math.ldexp,
    "hypot": math.hypot,
    "factorial": _builtin_factorial,
    "gcd": math.gcd,
    "lcm": math.lcm,
    "min": _builtin_min,
    "max": _builtin_max,
    "sum": _builtin_sum,
    "isclose": math.isclose,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "degrees": math.degrees,
    "radians": math.radians,
    "int": int,
    "float": float,
    "hex": hex,
    "bin": bin,
    "oct": oct,
    "tostring": _builtin_tostring,
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
    "inf": math.inf,
    "nan": math.nan,
    "type": _builtin_type,
}


class BuiltinRegistry:
    """Registry of the names visible to every expression.

    Starts with the default built-ins and can be extended with custom
    functions or constants. Environments only ever read from it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = dict(_BUILTINS)

    def register(self, name: str, value: Callable[..., Any] | int | float) -> None:
        if not name.isidentifier():
            raise ValueError(f"Invalid builtin name: {name!r}")
        self._entries[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._entries.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._entries

    def as_mapping(self) -> Mapping[str, Any]:
        return MappingProxyType(self._entries)

    @property
    def supported_names(self) -> frozenset[str]:
        return frozenset(self._entries.keys())
