#!/usr/bin/env python3
"""
Core scanner + parser for rpncalc infix arithmetic expressions.

We accept expressions of the form:

    2 + 3 * 4
    -(1.5 - .25) / 2
    POWER(2, 3) * 10

scan them into a TokenStream, parse that into a tree:

    OperatorNode('*', left=FunctionNode('POWER', ...), right=NumberNode(10))

and derive the postfix (RPN) instruction sequence from the tree:

    2 3 POWER 10 MULTIPLY

Grammar:

    Expr       -> Term ExprTail
    ExprTail   -> nil | '+' Term ExprTail | '-' Term ExprTail
    Term       -> Factor TermTail
    TermTail   -> nil | '*' Factor TermTail | '/' Factor TermTail
    Factor     -> '-' FactorTail | FactorTail
    FactorTail -> NUMBER | '(' Expr ')' | Function
    Function   -> NAME '(' ArgList ')'          # NAME must be registered
    ArgList    -> nil | Expr (',' Expr)*         # count must equal arity

Unary minus is not an instruction of its own: '-x' is parsed as x * -1,
so the postfix form of '-3' is "3 -1 MULTIPLY".
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from rpn_errors import ParseError, ScanError
from rpn_functions import DEFAULT_REGISTRY, FunctionRegistry

logger = logging.getLogger(__name__)

# Parser recursion grows by about six Python frames per nesting level
# (Expr -> Term -> Factor -> FactorTail -> Function -> ArgList).
DEFAULT_MAX_DEPTH = 100

# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------

def format_number(value: float) -> str:
    """
    Locale-independent fixed-point rendering of a float.

    Uses the shortest repr that round-trips, expanded without an exponent,
    with a trailing ".0" dropped: 3.0 -> "3", -1.0 -> "-1", 1e-05 -> "0.00001".
    """
    value = float(value)
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TokenKind(enum.Enum):
    EOF = "EOF"
    OPEN_PAREN = "OpenParen"
    CLOSE_PAREN = "CloseParen"
    PLUS = "Plus"
    MINUS = "Minus"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"
    SEPARATOR = "Separator"
    NUMERIC = "Numeric"
    TEXT = "Text"


SINGLE_CHAR_TOKENS = {
    "(": TokenKind.OPEN_PAREN,
    ")": TokenKind.CLOSE_PAREN,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.MULTIPLY,
    "/": TokenKind.DIVIDE,
    ",": TokenKind.SEPARATOR,
}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str          # raw lexeme for NUMERIC / TEXT, "" otherwise
    offset: int
    value: Optional[float] = None   # NUMERIC only

    def __str__(self) -> str:
        if self.kind is TokenKind.NUMERIC:
            return f"Numeric: {format_number(self.value)}"
        if self.kind is TokenKind.TEXT:
            return f'Text: "{self.text}"'
        return self.kind.value

    @property
    def short(self) -> str:
        return self.text if self.text else self.kind.value


class TokenStream:
    """
    Forward-only, read-once view over a token list.

    Once the real tokens are used up, peek() and next() keep returning an
    EOF token at the final offset instead of raising.
    """

    def __init__(self, tokens: Sequence[Token], end_offset: Optional[int] = None):
        self._tokens: List[Token] = [t for t in tokens if t.kind is not TokenKind.EOF]
        if end_offset is None:
            eofs = [t for t in tokens if t.kind is TokenKind.EOF]
            if eofs:
                end_offset = eofs[0].offset
            elif self._tokens:
                last = self._tokens[-1]
                end_offset = last.offset + max(len(last.text), 1)
            else:
                end_offset = 0
        self._eof = Token(TokenKind.EOF, "", end_offset)
        self._pos = 0

    def peek(self) -> Token:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return self._eof

    def next(self) -> Token:
        tok = self.peek()
        if self._pos < len(self._tokens):
            self._pos += 1
        return tok

    def remaining(self) -> List[Token]:
        return self._tokens[self._pos:] + [self._eof]

    def at_end(self) -> bool:
        return self.peek().kind is TokenKind.EOF

    def to_short_string(self) -> str:
        return ", ".join(t.short for t in self.remaining())

    def __str__(self) -> str:
        return "\n".join(str(t) for t in self.remaining())

    def __repr__(self) -> str:
        return f"TokenStream([{self.to_short_string()}])"


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_letter(c: str) -> bool:
    return c.isascii() and c.isalpha()


def scan(expression: str) -> TokenStream:
    """
    Turn an expression string into a TokenStream.

    - Punctuation: single characters in ()+-*/,
    - Numbers: 42, 3.14, .5 (no sign, no exponent)
    - Names: a letter followed by letters/digits, e.g. POWER
    """
    if expression is None or not expression.strip():
        raise ScanError("Cannot scan null or empty expression.", 0)

    tokens: List[Token] = []
    i = 0
    n = len(expression)

    while i < n:
        c = expression[i]

        if c.isspace():
            i += 1
            continue

        if c in SINGLE_CHAR_TOKENS:
            tokens.append(Token(SINGLE_CHAR_TOKENS[c], "", i))
            i += 1
            continue

        if _is_digit(c) or c == ".":
            value, j = _scan_number(expression, i)
            tokens.append(Token(TokenKind.NUMERIC, expression[i:j], i, value))
            i = j
            continue

        if _is_letter(c):
            j = i + 1
            while j < n and (_is_letter(expression[j]) or _is_digit(expression[j])):
                j += 1
            tokens.append(Token(TokenKind.TEXT, expression[i:j], i))
            i = j
            continue

        raise ScanError(f"Scanner encountered unexpected char {c} at {i}.", i)

    tokens.append(Token(TokenKind.EOF, "", n))
    logger.debug("Scanned %d tokens from %r", len(tokens), expression)
    return TokenStream(tokens)


def _scan_number(src: str, i: int) -> Tuple[float, int]:
    # Digits are accumulated arithmetically rather than via float(), so a
    # literal always maps to the same double.
    n = len(src)
    value = 0.0
    while i < n and _is_digit(src[i]):
        value = value * 10 + (ord(src[i]) - ord("0"))
        i += 1
    if i < n and src[i] == ".":
        i += 1
        weight = 0.1
        while i < n and _is_digit(src[i]):
            value += (ord(src[i]) - ord("0")) * weight
            weight /= 10.0
            i += 1
    return value, i


# ---------------------------------------------------------------------------
# Parse tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NumberNode:
    value: float
    offset: int

    @property
    def label(self) -> str:
        return format_number(self.value)

    @property
    def children(self) -> Tuple["TreeNode", ...]:
        return ()


@dataclass(frozen=True)
class OperatorNode:
    op: str   # '+', '-', '*', '/'
    offset: int
    left: "TreeNode"
    right: "TreeNode"

    @property
    def label(self) -> str:
        return self.op

    @property
    def children(self) -> Tuple["TreeNode", ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class FunctionNode:
    name: str   # canonical upper-case name
    offset: int
    args: Tuple["TreeNode", ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.name

    @property
    def children(self) -> Tuple["TreeNode", ...]:
        return self.args


TreeNode = Union[NumberNode, OperatorNode, FunctionNode]
TREE_NODE_TYPES = (NumberNode, OperatorNode, FunctionNode)


def dump_tree(root: TreeNode) -> str:
    """One line per node, children indented one space below their parent."""
    lines: List[str] = []
    stack: List[Tuple[TreeNode, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if not isinstance(node, TREE_NODE_TYPES):
            raise NotImplementedError(f"Unknown tree node type: {type(node)}")
        lines.append(f"{' ' * depth}{node.label} (@ Position {node.offset})")
        for child in reversed(node.children):
            stack.append((child, depth + 1))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Postfix instructions
# ---------------------------------------------------------------------------

class BinaryKind(enum.Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


@dataclass(frozen=True)
class Number:
    value: float

    def __str__(self) -> str:
        return format_number(self.value)


@dataclass(frozen=True)
class BinaryOp:
    kind: BinaryKind

    def __str__(self) -> str:
        return self.kind.name


@dataclass(frozen=True)
class FunctionOp:
    name: str

    def __str__(self) -> str:
        return self.name


Instruction = Union[Number, BinaryOp, FunctionOp]


def to_postfix(root: TreeNode) -> List[Instruction]:
    """Post-order walk of the tree: operands first, then their operator."""
    out: List[Instruction] = []
    stack: List[Tuple[TreeNode, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if isinstance(node, NumberNode):
            out.append(Number(node.value))
        elif not isinstance(node, TREE_NODE_TYPES):
            raise NotImplementedError(f"Unknown tree node type: {type(node)}")
        elif not expanded:
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))
        elif isinstance(node, OperatorNode):
            out.append(BinaryOp(BinaryKind(node.op)))
        else:
            out.append(FunctionOp(node.name))
    return out


# ---------------------------------------------------------------------------
# Recursive-descent parser
# ---------------------------------------------------------------------------

class Parser:
    def __init__(
        self,
        tokens: TokenStream,
        registry: FunctionRegistry = DEFAULT_REGISTRY,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.tokens = tokens
        self.registry = registry
        self.max_depth = max_depth
        self.depth = 0

    # Top level: Expr followed by EOF
    def parse_expression(self) -> TreeNode:
        root = self.parse_expr()
        tok = self.tokens.peek()
        if tok.kind is not TokenKind.EOF:
            raise ParseError(
                f"Tokens remain after parsing: {self.tokens.to_short_string()}.",
                tok.offset,
            )
        return root

    # Expr       -> Term ExprTail
    # ExprTail   -> nil | ('+' | '-') Term ExprTail
    def parse_expr(self) -> TreeNode:
        start = self.tokens.peek()
        self.depth += 1
        try:
            if self.depth > self.max_depth:
                raise ParseError(f"Expression nested too deeply at {start.offset}.", start.offset)
            node = self.parse_term()
            while self.tokens.peek().kind in (TokenKind.PLUS, TokenKind.MINUS):
                op = self.tokens.next()
                right = self.parse_term()
                symbol = "+" if op.kind is TokenKind.PLUS else "-"
                node = OperatorNode(symbol, op.offset, node, right)
            return node
        finally:
            self.depth -= 1

    # Term       -> Factor TermTail
    # TermTail   -> nil | ('*' | '/') Factor TermTail
    def parse_term(self) -> TreeNode:
        node = self.parse_factor()
        while self.tokens.peek().kind in (TokenKind.MULTIPLY, TokenKind.DIVIDE):
            op = self.tokens.next()
            right = self.parse_factor()
            symbol = "*" if op.kind is TokenKind.MULTIPLY else "/"
            node = OperatorNode(symbol, op.offset, node, right)
        return node

    # Factor     -> '-' FactorTail | FactorTail
    def parse_factor(self) -> TreeNode:
        if self.tokens.peek().kind is TokenKind.MINUS:
            minus = self.tokens.next()
            operand = self.parse_factor_tail()
            # We negate by multiplying by -1.
            return OperatorNode("*", minus.offset, operand, NumberNode(-1.0, minus.offset))
        return self.parse_factor_tail()

    # FactorTail -> NUMBER | '(' Expr ')' | Function
    def parse_factor_tail(self) -> TreeNode:
        tok = self.tokens.peek()

        if tok.kind is TokenKind.OPEN_PAREN:
            self.tokens.next()
            node = self.parse_expr()
            if self.tokens.peek().kind is not TokenKind.CLOSE_PAREN:
                raise ParseError(f"Expected close bracket at {tok.offset}.", tok.offset)
            self.tokens.next()
            return node

        if tok.kind is TokenKind.TEXT and self.registry.is_registered(tok.text):
            return self.parse_function()

        if tok.kind is TokenKind.NUMERIC:
            self.tokens.next()
            return NumberNode(tok.value, tok.offset)

        raise ParseError(f"Unrecognised factor at {tok.offset}.", tok.offset)

    # Function   -> NAME '(' ArgList ')'
    def parse_function(self) -> TreeNode:
        name_tok = self.tokens.next()
        function = self.registry.lookup(name_tok.text)

        tok = self.tokens.peek()
        if tok.kind is not TokenKind.OPEN_PAREN:
            raise ParseError(f"Expected open bracket at {tok.offset}.", tok.offset)
        self.tokens.next()

        args = self.parse_arg_list()

        tok = self.tokens.peek()
        if len(args) != function.arity:
            raise ParseError(
                f"Invalid number of function parameters in function {function.name}. "
                f"Expected {function.arity}, got {len(args)} at {tok.offset}.",
                tok.offset,
            )
        if tok.kind is not TokenKind.CLOSE_PAREN:
            raise ParseError(f"Expected close bracket at {tok.offset}.", tok.offset)
        self.tokens.next()

        return FunctionNode(function.name, name_tok.offset, tuple(args))

    # ArgList    -> nil | Expr (',' Expr)*
    def parse_arg_list(self) -> List[TreeNode]:
        args: List[TreeNode] = []
        if self.tokens.peek().kind is TokenKind.CLOSE_PAREN:
            return args

        args.append(self.parse_expr())
        while True:
            tok = self.tokens.peek()
            if tok.kind is TokenKind.CLOSE_PAREN:
                return args
            if tok.kind is not TokenKind.SEPARATOR:
                raise ParseError(f"Expected comma at {tok.offset}.", tok.offset)
            self.tokens.next()
            args.append(self.parse_expr())


# ---------------------------------------------------------------------------
# Top-level: parse a token stream (or a raw string)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParseResult:
    instructions: Tuple[Instruction, ...]
    tree: TreeNode


def parse(
    tokens: Union[TokenStream, str],
    registry: FunctionRegistry = DEFAULT_REGISTRY,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ParseResult:
    if isinstance(tokens, str):
        tokens = scan(tokens)
    tree = Parser(tokens, registry, max_depth).parse_expression()
    instructions = tuple(to_postfix(tree))
    logger.debug("Parsed %d instructions", len(instructions))
    return ParseResult(instructions=instructions, tree=tree)


# ---------------------------------------------------------------------------
# Tiny manual test harness
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    tests = [
        "2 + 3 * 4",
        "(2 + 3) * 4",
        "10 - 3 - 2",
        "-3 + 5",
        "POWER(2, 3)",
        "power(2, .5) / 4",
        "POWER(2)",
        "(2 + 3",
        "2 3",
    ]
    for t in tests:
        print("====", t)
        try:
            result = parse(t)
            print(" ".join(str(i) for i in result.instructions))
            print(dump_tree(result.tree))
        except (ScanError, ParseError) as e:
            print("Syntax error:", e)
