#!/usr/bin/env python3
"""
Evaluate a batch of expressions from a JSONL file.

Input JSONL (e.g. expressions.jsonl):
    {"id": 1, "expression": "POWER(2, 3) + 1"}

Output JSONL (e.g. results.jsonl), one record per input record:
    {"id": 1, "expression": "...", "status": "ok", "result": 9.0, "postfix": "2 3 POWER 1 ADD"}
    {"id": 2, "expression": "2 +", "status": "parse_error", "error": "...", "offset": 3}

Usage:
    python eval_rpn_expressions.py \
        --in expressions.jsonl \
        --out results.jsonl \
        --max 1000
"""

from __future__ import annotations

import argparse
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from rpn_errors import EvalError, ExpressionError, ParseError, ScanError
from rpn_eval import compile_expression, format_postfix
from rpn_functions import DEFAULT_REGISTRY, FunctionRegistry

STATUS_BY_ERROR = [
    (ScanError, "scan_error"),
    (ParseError, "parse_error"),
    (EvalError, "eval_error"),
]


@dataclass
class EvalResult:
    status: str      # "ok", "scan_error", "parse_error", "eval_error"
    result: Optional[float] = None
    postfix: str = ""
    error: str = ""
    offset: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        if self.status == "ok":
            return {"status": self.status, "result": json_number(self.result),
                    "postfix": self.postfix}
        return {"status": self.status, "error": self.error, "offset": self.offset}


def json_number(value: float):
    """JSON has no inf/nan; spell them as strings."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


def evaluate_expression(
    expression: str, registry: FunctionRegistry = DEFAULT_REGISTRY
) -> EvalResult:
    try:
        compiled = compile_expression(expression, registry)
        value = compiled.evaluate(registry)
    except ExpressionError as e:
        status = next(s for cls, s in STATUS_BY_ERROR if isinstance(e, cls))
        return EvalResult(status=status, error=str(e), offset=e.offset)
    return EvalResult(
        status="ok",
        result=value,
        postfix=format_postfix(compiled.instructions),
    )


def evaluate_file(
    in_path: Path, out_path: Path, max_items: Optional[int] = None
) -> Dict[str, int]:
    """Evaluate every record of in_path into out_path; returns counts per status."""
    counts: Dict[str, int] = {}

    with in_path.open("r", encoding="utf-8") as fin, \
         out_path.open("w", encoding="utf-8") as fout:

        num_evaluated = 0
        for line in fin:
            if max_items is not None and num_evaluated >= max_items:
                break
            if not line.strip():
                continue

            rec = json.loads(line)
            expression = rec.get("expression")
            if expression is None:
                continue

            res = evaluate_expression(str(expression))
            num_evaluated += 1
            counts[res.status] = counts.get(res.status, 0) + 1

            rec.update(res.to_record())
            fout.write(json.dumps(rec, ensure_ascii=False) + "\n")

    return counts


# ---------------------------------------------------------------------------
# CLI driver
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Evaluate infix expressions from a JSONL file."
    )
    p.add_argument(
        "--in",
        dest="in_path",
        required=True,
        help="Input JSONL with an 'expression' field.",
    )
    p.add_argument(
        "--out",
        dest="out_path",
        required=True,
        help="Output JSONL with status/result/error fields added.",
    )
    p.add_argument(
        "--max",
        dest="max_items",
        type=int,
        default=None,
        help="Optional maximum number of expressions to evaluate (for testing).",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    in_path = Path(args.in_path)
    out_path = Path(args.out_path)

    print(f"[INFO] Evaluating expressions from {in_path}")
    counts = evaluate_file(in_path, out_path, args.max_items)

    print("\n=== Summary ===")
    print(f"Total evaluated: {sum(counts.values())}")
    for status, count in sorted(counts.items()):
        print(f"  {status}: {count}")
    print("Output written to:", out_path)


if __name__ == "__main__":
    main()
