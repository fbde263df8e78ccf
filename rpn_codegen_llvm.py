#!/usr/bin/env python3
"""
LLVM code generator for rpncalc expressions.

Given an expression string like:

    POWER(2, 3) * -(1 + 4)

we:

  1. Scan + parse it into a postfix instruction sequence using rpn_core
  2. Build an LLVM module with a function:

         double rpn_expr(void);

  3. Emit LLVM IR to a .ll file.

The postfix sequence maps one-to-one onto an SSA value stack, so lowering
is a single loop with no recursion.
"""

from __future__ import annotations

import argparse
from typing import Iterable, List

from llvmlite import ir

from rpn_core import BinaryKind, BinaryOp, FunctionOp, Instruction, Number
from rpn_errors import EvalError
from rpn_eval import INVALID_SEQUENCE, compile_expression
from rpn_functions import DEFAULT_REGISTRY, FunctionRegistry

# Registered functions with an LLVM intrinsic equivalent.
INTRINSICS = {
    "POWER": "llvm.pow.f64",
}

# ---------------------------------------------------------------------------
# Instruction codegen
# ---------------------------------------------------------------------------

def _get_function(module: ir.Module, name: str, arity: int) -> ir.Function:
    symbol = INTRINSICS.get(name, name.lower())
    double = ir.DoubleType()
    fn_ty = ir.FunctionType(double, [double] * arity)
    fn = module.globals.get(symbol)
    if fn is None:
        return ir.Function(module, fn_ty, name=symbol)
    # Only reuse an earlier declaration of the same callee.
    if (
        not isinstance(fn, ir.Function)
        or not fn.is_declaration
        or fn.function_type != fn_ty
    ):
        raise ValueError(
            f"Function {name} would call symbol {symbol!r}, which is already "
            f"defined in module {module.name!r}"
        )
    return fn


def codegen_instructions(
    instructions: Iterable[Instruction],
    builder: ir.IRBuilder,
    module: ir.Module,
    registry: FunctionRegistry = DEFAULT_REGISTRY,
) -> ir.Value:
    """
    Generate LLVM IR for a postfix sequence, returning an ir.Value (double).

    module: LLVM module (needed for llvm.pow.f64 / external calls)
    registry: supplies the arity of each FunctionOp
    """
    double = ir.DoubleType()
    stack: List[ir.Value] = []

    for item in instructions:
        if isinstance(item, Number):
            stack.append(ir.Constant(double, float(item.value)))
            continue

        if isinstance(item, BinaryOp):
            if len(stack) < 2:
                raise EvalError(INVALID_SEQUENCE)
            right = stack.pop()
            left = stack.pop()
            if item.kind is BinaryKind.ADD:
                stack.append(builder.fadd(left, right, name="addtmp"))
            elif item.kind is BinaryKind.SUBTRACT:
                stack.append(builder.fsub(left, right, name="subtmp"))
            elif item.kind is BinaryKind.MULTIPLY:
                stack.append(builder.fmul(left, right, name="multmp"))
            elif item.kind is BinaryKind.DIVIDE:
                stack.append(builder.fdiv(left, right, name="divtmp"))
            else:
                raise NotImplementedError(f"Unsupported binary op {item.kind!r}")
            continue

        if isinstance(item, FunctionOp):
            if not registry.is_registered(item.name):
                raise NotImplementedError(f"No implementation for function {item.name!r}")
            function = registry.lookup(item.name)
            if len(stack) < function.arity:
                raise EvalError(INVALID_SEQUENCE)
            args = stack[len(stack) - function.arity:]
            del stack[len(stack) - function.arity:]
            callee = _get_function(module, function.name, function.arity)
            stack.append(builder.call(callee, args, name="calltmp"))
            continue

        raise NotImplementedError(f"Unknown instruction type: {type(item)}")

    if len(stack) != 1:
        raise EvalError(INVALID_SEQUENCE)
    return stack[0]


# ---------------------------------------------------------------------------
# Function + module construction
# ---------------------------------------------------------------------------

def build_module_for_instructions(
    instructions: Iterable[Instruction],
    func_name: str = "rpn_expr",
    module_name: str = "rpn_module",
    registry: FunctionRegistry = DEFAULT_REGISTRY,
) -> ir.Module:
    """
    Construct an LLVM module with a single function double func_name(void)
    that computes the expression.
    """
    double = ir.DoubleType()
    module = ir.Module(name=module_name)

    fn_ty = ir.FunctionType(double, [])
    fn = ir.Function(module, fn_ty, name=func_name)

    block = fn.append_basic_block(name="entry")
    builder = ir.IRBuilder(block)

    ret_val = codegen_instructions(instructions, builder, module, registry)
    builder.ret(ret_val)

    return module


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Generate LLVM IR (.ll) from an infix arithmetic expression."
    )
    p.add_argument(
        "expression",
        help='Expression, e.g. "POWER(2, 3) + 1"',
    )
    p.add_argument(
        "--out",
        "-o",
        required=True,
        help="Output .ll file path.",
    )
    p.add_argument(
        "--func-name",
        default="rpn_expr",
        help="Name of the generated LLVM function.",
    )
    p.add_argument(
        "--module-name",
        default="rpn_module",
        help="Optional LLVM module name.",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    compiled = compile_expression(args.expression)
    module = build_module_for_instructions(
        compiled.instructions,
        func_name=args.func_name,
        module_name=args.module_name,
    )

    with open(args.out, "w", encoding="utf-8") as f:
        f.write(str(module))
    print(f"[INFO] Wrote LLVM IR for {args.func_name} to {args.out}")


if __name__ == "__main__":
    main()
