# src/schedcheck/bridge/expression.py
"""
@brief
Predicate mini-language for record search.

@details
Translator output is never executed as code. It is parsed by this module
into a small AST and interpreted against one record at a time.

Grammar (keywords are case-insensitive):

    expr       := or_expr
    or_expr    := and_expr (("or" | "||") and_expr)*
    and_expr   := not_expr (("and" | "&&") not_expr)*
    not_expr   := "not" not_expr | comparison
    comparison := operand (op operand)?
    op         := "==" | "=" | "!=" | "<" | "<=" | ">" | ">=" | "in" | "not in" | "contains"
    operand    := NUMBER | STRING | "true" | "false" | FIELD | list | "(" expr ")"
    list       := "[" (literal ("," literal)*)? "]"

Examples:
    Duration > 2 and 3 in PreferredPhases
    RequiredSkills contains "python" or Category == "ETL"
    not (GroupTag in ["GroupA", "GroupB"])

String comparisons are case-insensitive. A bare operand is tested for
truthiness (e.g. `RequiredSkills` means "has at least one skill").
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from schedcheck.errors import ExpressionError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<op>==|!=|<=|>=|&&|\|\||[=<>()\[\],])
      | (?P<name>(?:item\.)?[A-Za-z_][A-Za-z0-9_]*)
    )
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "in", "contains", "true", "false"}
_COMPARISON_OPS = {"==", "!=", "<", "<=", ">", ">=", "in", "not in", "contains"}


@dataclass(frozen=True)
class _Token:
    kind: str  # number | string | op | name | keyword | end
    value: Any


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m or m.end() == pos:
            raise ExpressionError(
                message=f"Unexpected character at position {pos}: {text[pos:pos + 10]!r}",
                source="expression.tokenize",
            )
        pos = m.end()
        if m.group("number") is not None:
            raw = m.group("number")
            tokens.append(_Token("number", float(raw) if "." in raw else int(raw)))
        elif m.group("string") is not None:
            body = m.group("string")[1:-1]
            tokens.append(_Token("string", re.sub(r"\\(.)", r"\1", body)))
        elif m.group("op") is not None:
            op = m.group("op")
            op = {"=": "==", "&&": "and", "||": "or"}.get(op, op)
            tokens.append(_Token("keyword" if op in ("and", "or") else "op", op))
        else:
            name = m.group("name")
            if name.startswith("item."):
                name = name[len("item.") :]
            if name.lower() in _KEYWORDS:
                tokens.append(_Token("keyword", name.lower()))
            else:
                tokens.append(_Token("name", name))
    tokens.append(_Token("end", None))
    return tokens


# ----------------------------
# AST
# ----------------------------
class Node:
    def evaluate(self, record: Mapping[str, Any]) -> Any:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Node):
    value: Any

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        return self.value


@dataclass(frozen=True)
class ListLiteral(Node):
    items: tuple[Any, ...]

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        return list(self.items)


@dataclass(frozen=True)
class FieldRef(Node):
    name: str

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        return record[self.name]


@dataclass(frozen=True)
class Not(Node):
    operand: Node

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        return not _truthy(self.operand.evaluate(record))


@dataclass(frozen=True)
class BoolOp(Node):
    op: str  # "and" | "or"
    operands: tuple[Node, ...]

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        if self.op == "and":
            return all(_truthy(o.evaluate(record)) for o in self.operands)
        return any(_truthy(o.evaluate(record)) for o in self.operands)


@dataclass(frozen=True)
class Compare(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, record: Mapping[str, Any]) -> Any:
        a = self.left.evaluate(record)
        b = self.right.evaluate(record)
        if self.op == "==":
            return _fold(a) == _fold(b)
        if self.op == "!=":
            return _fold(a) != _fold(b)
        if self.op == "<":
            return _ordered(a) < _ordered(b)
        if self.op == "<=":
            return _ordered(a) <= _ordered(b)
        if self.op == ">":
            return _ordered(a) > _ordered(b)
        if self.op == ">=":
            return _ordered(a) >= _ordered(b)
        if self.op == "in":
            return _contains(b, a)
        if self.op == "not in":
            return not _contains(b, a)
        if self.op == "contains":
            return _contains(a, b)
        raise ExpressionError(f"Unknown operator: {self.op}", source="expression.Compare")


def _truthy(value: Any) -> bool:
    return bool(value)


def _fold(value: Any) -> Any:
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, list):
        return [_fold(v) for v in value]
    return value


def _ordered(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TypeError(f"value {value!r} is not orderable")
    return _fold(value)


def _contains(container: Any, item: Any) -> bool:
    if isinstance(container, str):
        if not isinstance(item, str):
            item = str(item)
        return item.casefold() in container.casefold()
    if isinstance(container, (list, tuple)):
        needle = _fold(item)
        return any(_fold(v) == needle for v in container)
    raise TypeError(f"{type(container).__name__} does not support membership")


# ----------------------------
# PARSER
# ----------------------------
class _Parser:
    def __init__(self, tokens: list[_Token], fields: Mapping[str, str]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.fields = fields

    def parse(self) -> Node:
        node = self._or()
        if self._peek().kind != "end":
            self._fail(f"unexpected token {self._peek().value!r}")
        return node

    # -- helpers
    def _peek(self, offset: int = 0) -> _Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def _next(self) -> _Token:
        tok = self._peek()
        self.pos += 1
        return tok

    def _accept(self, kind: str, value: Any = None) -> bool:
        tok = self._peek()
        if tok.kind == kind and (value is None or tok.value == value):
            self.pos += 1
            return True
        return False

    def _expect(self, kind: str, value: Any) -> None:
        if not self._accept(kind, value):
            self._fail(f"expected {value!r}, got {self._peek().value!r}")

    def _fail(self, detail: str) -> None:
        raise ExpressionError(
            message=f"Invalid expression: {detail}",
            source="expression.parse",
            suggested_action="Use comparisons, in/contains and and/or/not over known fields.",
        )

    # -- grammar
    def _or(self) -> Node:
        operands = [self._and()]
        while self._accept("keyword", "or"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def _and(self) -> Node:
        operands = [self._not()]
        while self._accept("keyword", "and"):
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def _not(self) -> Node:
        if self._accept("keyword", "not"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        tok = self._peek()
        op: str | None = None
        if tok.kind == "op" and tok.value in _COMPARISON_OPS:
            op = tok.value
            self.pos += 1
        elif tok.kind == "keyword" and tok.value in ("in", "contains"):
            op = tok.value
            self.pos += 1
        elif tok.kind == "keyword" and tok.value == "not" and self._peek(1).value == "in":
            op = "not in"
            self.pos += 2
        if op is None:
            return left
        return Compare(op, left, self._operand())

    def _operand(self) -> Node:
        tok = self._next()
        if tok.kind in ("number", "string"):
            return Literal(tok.value)
        if tok.kind == "keyword" and tok.value in ("true", "false"):
            return Literal(tok.value == "true")
        if tok.kind == "name":
            canonical = self.fields.get(tok.value.lower())
            if canonical is None:
                self._fail(f"unknown field {tok.value!r}")
            return FieldRef(canonical)
        if tok.kind == "op" and tok.value == "(":
            node = self._or()
            self._expect("op", ")")
            return node
        if tok.kind == "op" and tok.value == "[":
            return self._list()
        self._fail(f"unexpected token {tok.value!r}")
        raise AssertionError("unreachable")

    def _list(self) -> Node:
        items: list[Any] = []
        if self._accept("op", "]"):
            return ListLiteral(())
        while True:
            tok = self._next()
            if tok.kind in ("number", "string"):
                items.append(tok.value)
            elif tok.kind == "keyword" and tok.value in ("true", "false"):
                items.append(tok.value == "true")
            else:
                self._fail(f"list items must be literals, got {tok.value!r}")
            if self._accept("op", "]"):
                return ListLiteral(tuple(items))
            self._expect("op", ",")


# ----------------------------
# PUBLIC API
# ----------------------------
class Predicate:
    """
    @brief
    A parsed, reusable record filter.

    @details
    `matches` never raises: a record that makes evaluation fail (type
    mismatch, missing field) is treated as not matching, and the rest of the
    search continues.
    """

    def __init__(self, source: str, root: Node) -> None:
        self.source = source
        self.root = root

    def __repr__(self) -> str:
        return f"Predicate({self.source!r})"

    def matches(self, record: Any) -> bool:
        data = record.model_dump() if hasattr(record, "model_dump") else record
        try:
            return _truthy(self.root.evaluate(data))
        except (TypeError, KeyError, ValueError, ExpressionError) as e:
            logger.debug("Predicate %r failed on record: %s", self.source, e)
            return False

    def filter(self, records: Iterable[Any]) -> list[Any]:
        return [r for r in records if self.matches(r)]


def compile_predicate(text: str, fields: Sequence[str]) -> Predicate:
    """
    @brief
    Parse an expression restricted to the given field names.

    @raises
        ExpressionError
            On empty input, unknown characters, unknown fields or bad syntax.
    """
    if not isinstance(text, str) or not text.strip():
        raise ExpressionError(message="Empty expression", source="expression.compile_predicate")
    field_map = {f.lower(): f for f in fields}
    root = _Parser(_tokenize(text), field_map).parse()
    return Predicate(text.strip(), root)


__all__ = ["Predicate", "compile_predicate"]
