#!/usr/bin/env python3
"""
Interactive calculator front end for rpncalc.

With an expression argument, evaluates it once:

    python rpn_calc.py "POWER(2, 3) - -1"

Without one, starts a read-eval-print loop that ends on a blank line or EOF.
For every expression we print the scanned tokens, the postfix (RPN)
sequence, the parse tree and the result; --quiet prints only the result.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from rpn_codegen_llvm import build_module_for_instructions
from rpn_core import dump_tree, format_number
from rpn_errors import ExpressionError
from rpn_eval import CompiledExpression, compile_expression, format_postfix

try:
    import readline  # do not remove. makes input() use readline

    readline
except ImportError:
    pass

PROMPT = "Enter Infix Expression"


def format_error(text: str, err: ExpressionError) -> str:
    """Error message plus a caret under the offending character, if known."""
    lines = [f"ERROR: {err}"]
    if err.offset is not None:
        lines.append(f"  {text}")
        lines.append(f"  {' ' * err.offset}^")
    return "\n".join(lines)


def print_report(compiled: CompiledExpression, value: float, quiet: bool = False) -> None:
    if quiet:
        print(format_number(value))
        return
    print(f"Tokens: {', '.join(t.short for t in compiled.tokens)}")
    print()
    print(f"RPN: {format_postfix(compiled.instructions)}")
    print()
    print("Tree:")
    print(dump_tree(compiled.tree))
    print()
    print(f"Result: {format_number(value)}")


def process_expression(
    text: str, quiet: bool = False, emit_ir: Optional[str] = None
) -> float:
    """Compile, evaluate and report one expression. Errors propagate."""
    compiled = compile_expression(text)
    value = compiled.evaluate()
    print_report(compiled, value, quiet=quiet)

    if emit_ir:
        module = build_module_for_instructions(compiled.instructions)
        with open(emit_ir, "w", encoding="utf-8") as f:
            f.write(str(module))
        print(f"[INFO] Wrote LLVM IR to {emit_ir}")
    return value


def repl(quiet: bool = False) -> None:
    while True:
        print(PROMPT)
        try:
            text = input("> ")
        except EOFError:
            break
        if not text.strip():
            break
        try:
            process_expression(text, quiet=quiet)
        except ExpressionError as err:
            print(format_error(text, err))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Evaluate infix arithmetic expressions via a postfix stack machine."
    )
    p.add_argument(
        "expression",
        nargs="?",
        default=None,
        help='Expression to evaluate, e.g. "2 + 3 * 4". Omit to start a REPL.',
    )
    p.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Print only the result, without tokens, RPN and tree.",
    )
    p.add_argument(
        "--emit-ir",
        default=None,
        metavar="PATH",
        help="Also write LLVM IR for the expression to PATH.",
    )
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    args = p.parse_args(argv)
    if args.emit_ir and args.expression is None:
        p.error("--emit-ir requires an expression")
    return args


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.expression is None:
        repl(quiet=args.quiet)
        return 0

    try:
        process_expression(args.expression, quiet=args.quiet, emit_ir=args.emit_ir)
    except ExpressionError as err:
        print(format_error(args.expression, err))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
