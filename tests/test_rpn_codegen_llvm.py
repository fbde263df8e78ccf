#! /usr/bin/env py.test

import ctypes
import math

import llvmlite.binding as llvm
import pytest
from llvmlite import ir

from rpn_codegen_llvm import build_module_for_instructions, codegen_instructions, main
from rpn_core import BinaryKind, BinaryOp, FunctionOp, Number
from rpn_errors import EvalError
from rpn_eval import calculate, compile_expression
from rpn_functions import DEFAULT_REGISTRY


def ir_for(text, **kw):
    return str(build_module_for_instructions(compile_expression(text).instructions, **kw))


def verified(module):
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    parsed = llvm.parse_assembly(str(module))
    parsed.verify()
    return parsed


def jit_run(text, func_name="rpn_expr"):
    module = build_module_for_instructions(
        compile_expression(text).instructions, func_name=func_name
    )
    parsed = verified(module)
    target_machine = llvm.Target.from_default_triple().create_target_machine()
    parsed.triple = target_machine.triple
    engine = llvm.create_mcjit_compiler(parsed, target_machine)
    engine.finalize_object()
    address = engine.get_function_address(func_name)
    return ctypes.CFUNCTYPE(ctypes.c_double)(address)()


def test_function_signature():
    text = ir_for("1 + 2")
    assert 'define double @"rpn_expr"()' in text
    assert "ret double" in text


def test_custom_names():
    text = ir_for("1", func_name="answer", module_name="calc")
    assert '@"answer"' in text
    assert "calc" in text


def test_binary_ops_lower_to_float_instructions():
    text = ir_for("(1 + 2) * (3 - 4) / 5")
    for opcode in ("fadd", "fsub", "fmul", "fdiv"):
        assert opcode in text


def test_unary_minus_is_fmul():
    text = ir_for("-3")
    assert "fmul" in text
    assert "fsub" not in text


def test_power_uses_intrinsic():
    text = ir_for("POWER(2, 3) + POWER(3, 2)")
    assert text.count('declare double @"llvm.pow.f64"') == 1
    assert text.count('call double @"llvm.pow.f64"') == 2


def test_other_functions_become_external_calls():
    registry = DEFAULT_REGISTRY.with_function("HYPOT", 2, math.hypot)
    instructions = [Number(3.0), Number(4.0), FunctionOp("HYPOT")]
    module = build_module_for_instructions(instructions, registry=registry)
    text = str(module)
    assert 'declare double @"hypot"' in text
    assert 'call double @"hypot"' in text


def test_invalid_sequence():
    module = ir.Module(name="m")
    fn = ir.Function(module, ir.FunctionType(ir.DoubleType(), []), name="f")
    builder = ir.IRBuilder(fn.append_basic_block(name="entry"))
    with pytest.raises(EvalError):
        codegen_instructions([Number(1.0), BinaryOp(BinaryKind.ADD)], builder, module)
    with pytest.raises(EvalError):
        codegen_instructions([Number(1.0), Number(2.0)], builder, module)


def test_unknown_function_is_internal_defect():
    with pytest.raises(NotImplementedError):
        build_module_for_instructions([Number(1.0), FunctionOp("SQRT")])


def test_cli_writes_ll_file(tmp_path, capsys):
    out = tmp_path / "expr.ll"
    main(["POWER(2, 3)", "-o", str(out)])
    assert 'define double @"rpn_expr"()' in out.read_text(encoding="utf-8")
    assert "[INFO] Wrote LLVM IR" in capsys.readouterr().out


def test_module_verifies():
    verified(build_module_for_instructions(
        compile_expression("POWER(2, 3) - -1/0 + (4 - 5) * 6").instructions
    ))


def test_module_with_extern_verifies():
    registry = DEFAULT_REGISTRY.with_function("HYPOT", 2, math.hypot)
    instructions = [Number(3.0), Number(4.0), FunctionOp("HYPOT"),
                    Number(1.0), FunctionOp("HYPOT")]
    module = build_module_for_instructions(instructions, registry=registry)
    verified(module)
    assert str(module).count('declare double @"hypot"') == 1


@pytest.mark.parametrize("text", [
    "2 + 3 * 4",
    "10 - 3 - 2",
    "-(2 + 3) / 4",
    "1/0",
    "-1/0",
    "0/0",
    "POWER(2, 10)",
    "POWER(9, .5) - -1",
    "POWER(10, 400)",
    "POWER(0, -1)",
    "POWER(-8, 1/3)",
])
def test_jit_matches_evaluator(text):
    expected = calculate(text)
    got = jit_run(text)
    if math.isnan(expected):
        assert math.isnan(got)
    else:
        assert got == expected


def test_jit_custom_function_name():
    assert jit_run("1.5 * 2", func_name="answer") == 3.0


def test_extern_clashing_with_expression_function():
    registry = DEFAULT_REGISTRY.with_function("RPN_EXPR", 0, lambda: 1.0)
    with pytest.raises(ValueError):
        build_module_for_instructions([FunctionOp("RPN_EXPR")], registry=registry)


def test_extern_clashing_with_custom_function_name():
    registry = DEFAULT_REGISTRY.with_function("HYPOT", 2, math.hypot)
    instructions = [Number(3.0), Number(4.0), FunctionOp("HYPOT")]
    with pytest.raises(ValueError):
        build_module_for_instructions(instructions, func_name="hypot", registry=registry)
