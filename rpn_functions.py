"""
Registry of the named functions the parser accepts, e.g. POWER(a, b).

A FunctionRegistry is an immutable value: build it once (or derive a new
one with with_function) before parsing starts, then hand it to the parser
and the evaluator. Names are canonicalised to upper case and looked up
case-insensitively.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, List


@dataclass(frozen=True)
class RegisteredFunction:
    name: str      # canonical, upper case
    arity: int
    implementation: Callable[..., float]

    def __call__(self, *args: float) -> float:
        return self.implementation(*args)


def ieee_pow(base: float, exponent: float) -> float:
    """
    pow with IEEE 754 results where math.pow raises.

    Overflow gives a signed infinity, zero to a negative power gives an
    infinity and a negative base with a fractional exponent gives nan.
    """
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and _is_odd_integer(exponent):
            return -math.inf
        return math.inf
    except ValueError:
        if base == 0:
            if _is_odd_integer(exponent):
                return math.copysign(math.inf, base)
            return math.inf
        return math.nan


def _is_odd_integer(x: float) -> bool:
    return math.isfinite(x) and float(x).is_integer() and int(x) % 2 == 1


class FunctionRegistry:
    def __init__(self, functions: Iterable[RegisteredFunction] = ()):
        table = {}
        for fn in functions:
            key = fn.name.upper()
            if key in table:
                raise ValueError(f"Function {key!r} registered twice")
            if fn.arity < 0:
                raise ValueError(f"Function {key!r} has negative arity {fn.arity}")
            table[key] = RegisteredFunction(key, fn.arity, fn.implementation)
        self._functions = MappingProxyType(table)

    def is_registered(self, name: str) -> bool:
        return name.upper() in self._functions

    def lookup(self, name: str) -> RegisteredFunction:
        """Return the entry for name; raises KeyError if it is not registered."""
        try:
            return self._functions[name.upper()]
        except KeyError:
            raise KeyError(f"Unknown function {name!r}") from None

    def with_function(
        self, name: str, arity: int, implementation: Callable[..., float]
    ) -> "FunctionRegistry":
        """Return a new registry with one extra entry; self is left unchanged."""
        return FunctionRegistry(
            list(self._functions.values())
            + [RegisteredFunction(name, arity, implementation)]
        )

    def names(self) -> List[str]:
        return sorted(self._functions)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_registered(name)

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        entries = ", ".join(f"{f.name}/{f.arity}" for f in self._functions.values())
        return f"FunctionRegistry({entries})"


DEFAULT_REGISTRY = FunctionRegistry([
    RegisteredFunction("POWER", 2, ieee_pow),
])
