"""
Postfix (RPN) evaluator and the scan -> parse -> evaluate pipeline.

    >>> calculate("2 + 3 * 4")
    14.0
    >>> format_postfix(compile_expression("-3").instructions)
    '3 -1 MULTIPLY'
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from rpn_core import (
    BinaryKind,
    BinaryOp,
    FunctionOp,
    Instruction,
    Number,
    Token,
    TreeNode,
    parse,
    scan,
)
from rpn_errors import EvalError
from rpn_functions import DEFAULT_REGISTRY, FunctionRegistry

logger = logging.getLogger(__name__)

INVALID_SEQUENCE = "invalid instruction sequence"


def _divide(b: float, a: float) -> float:
    # IEEE semantics: x/0 is +-inf, 0/0 is nan. Python raises instead.
    try:
        return b / a
    except ZeroDivisionError:
        if b == 0 or math.isnan(b):
            return math.nan
        return math.copysign(math.inf, b) * math.copysign(1.0, a)


_BINARY_OPS = {
    BinaryKind.ADD: lambda b, a: b + a,
    BinaryKind.SUBTRACT: lambda b, a: b - a,
    BinaryKind.MULTIPLY: lambda b, a: b * a,
    BinaryKind.DIVIDE: _divide,
}


def evaluate(
    instructions: Iterable[Instruction],
    registry: FunctionRegistry = DEFAULT_REGISTRY,
) -> float:
    """
    Run a postfix instruction sequence on a single numeric stack.

    Binary operators pop the right-hand operand first: "10 3 SUBTRACT" is 7.
    Functions pop their arguments and apply them in source order.

    Raises EvalError if an operator runs out of operands or the stack does
    not end with exactly one value. An unregistered FunctionOp is an
    internal defect and raises NotImplementedError.
    """
    stack: List[float] = []

    for item in instructions:
        if isinstance(item, Number):
            stack.append(float(item.value))

        elif isinstance(item, BinaryOp):
            if len(stack) < 2:
                raise EvalError(INVALID_SEQUENCE)
            a = stack.pop()
            b = stack.pop()
            stack.append(_BINARY_OPS[item.kind](b, a))

        elif isinstance(item, FunctionOp):
            if not registry.is_registered(item.name):
                raise NotImplementedError(f"No implementation for function {item.name!r}")
            function = registry.lookup(item.name)
            if len(stack) < function.arity:
                raise EvalError(INVALID_SEQUENCE)
            args = stack[len(stack) - function.arity:]
            del stack[len(stack) - function.arity:]
            stack.append(float(function(*args)))

        else:
            raise NotImplementedError(f"Unknown instruction type: {type(item)}")

    if len(stack) != 1:
        logger.debug("Stack has %d values after evaluation, expected 1", len(stack))
        raise EvalError(INVALID_SEQUENCE)
    return stack[0]


def format_postfix(instructions: Iterable[Instruction]) -> str:
    return " ".join(str(item) for item in instructions)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompiledExpression:
    source: str
    tokens: Tuple[Token, ...]
    instructions: Tuple[Instruction, ...]
    tree: TreeNode

    def evaluate(self, registry: FunctionRegistry = DEFAULT_REGISTRY) -> float:
        return evaluate(self.instructions, registry)


def compile_expression(
    text: str, registry: FunctionRegistry = DEFAULT_REGISTRY
) -> CompiledExpression:
    stream = scan(text)
    tokens = tuple(stream.remaining())
    result = parse(stream, registry)
    return CompiledExpression(
        source=text,
        tokens=tokens,
        instructions=result.instructions,
        tree=result.tree,
    )


def calculate(text: str, registry: FunctionRegistry = DEFAULT_REGISTRY) -> float:
    value = evaluate(compile_expression(text, registry).instructions, registry)
    logger.debug("%r = %r", text, value)
    return value
