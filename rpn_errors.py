"""
Error hierarchy for the rpncalc pipeline.

Every user-facing failure is an ExpressionError carrying a message and,
where one is known, the 0-based character offset in the source string:

    ExpressionError
    ├── ScanError    (unexpected character, empty input)
    ├── ParseError   (grammar violations, arity mismatches, trailing tokens)
    └── EvalError    (postfix stack invariant violated)
"""

from __future__ import annotations

from typing import Optional


class ExpressionError(Exception):
    """Base class for errors raised while scanning, parsing or evaluating."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.offset = offset

    def __str__(self) -> str:
        return self.message


class ScanError(ExpressionError):
    pass


class ParseError(ExpressionError):
    pass


class EvalError(ExpressionError):
    def __init__(self, message: str):
        super().__init__(message, offset=None)
