#! /usr/bin/env py.test

import pytest

import rpn_calc
from rpn_errors import EvalError, ParseError, ScanError


def test_one_shot_report(capsys):
    assert rpn_calc.main(["2 + 3 * 4"]) == 0
    out = capsys.readouterr().out
    assert "Tokens: 2, Plus, 3, Multiply, 4, EOF" in out
    assert "RPN: 2 3 4 MULTIPLY ADD" in out
    assert "+ (@ Position 2)" in out
    assert "Result: 14" in out


def test_one_shot_quiet(capsys):
    assert rpn_calc.main(["--quiet", "POWER(2, 10)"]) == 0
    assert capsys.readouterr().out == "1024\n"


def test_leading_minus_after_separator(capsys):
    assert rpn_calc.main(["-q", "--", "-3+5"]) == 0
    assert capsys.readouterr().out == "2\n"


def test_one_shot_error_points_at_offset(capsys):
    assert rpn_calc.main(["2+@"]) == 1
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "ERROR: Scanner encountered unexpected char @ at 2."
    assert out[1] == "  2+@"
    assert out[2] == "    ^"


def test_division_by_zero_prints_inf(capsys):
    assert rpn_calc.main(["-q", "1/0"]) == 0
    assert capsys.readouterr().out == "inf\n"


def test_emit_ir(tmp_path, capsys):
    out = tmp_path / "expr.ll"
    assert rpn_calc.main(["-q", "--emit-ir", str(out), "1 + 1"]) == 0
    assert "fadd" in out.read_text(encoding="utf-8")
    assert "[INFO] Wrote LLVM IR" in capsys.readouterr().out


def test_emit_ir_requires_expression():
    with pytest.raises(SystemExit):
        rpn_calc.parse_args(["--emit-ir", "x.ll"])


def test_repl(monkeypatch, capsys):
    lines = iter(["1 + 1", "POWER(2)", "(3", ""])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert rpn_calc.main(["-q"]) == 0
    out = capsys.readouterr().out
    assert out.count(rpn_calc.PROMPT) == 4
    assert "2\n" in out
    assert "Expected 2, got 1" in out
    assert "Expected close bracket at 0." in out


def test_repl_stops_on_eof(monkeypatch, capsys):
    def raise_eof(prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", raise_eof)
    rpn_calc.repl()
    assert capsys.readouterr().out == rpn_calc.PROMPT + "\n"


def test_process_expression_propagates_errors(capsys):
    with pytest.raises(ParseError):
        rpn_calc.process_expression("2 3")
    with pytest.raises(ScanError):
        rpn_calc.process_expression("   ")


def test_format_error_without_offset():
    assert rpn_calc.format_error("x", EvalError("boom")) == "ERROR: boom"
