"""
Filter expressions over index records.

A filter is compiled once (on every keystroke while editing) into a small
syntax tree and then evaluated against each record every cycle. Examples:

    name contains "logs" and rate_per_sec > 10
    contains(.name, "metrics") || health != "green"
    not matches(name, "^\\.") and doc_count >= 1000

Unknown fields, unknown functions and type mismatches are reported when
compiling, never while evaluating.
"""

import logging
import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union

from elastic_ingest_top.errors import FilterCompileError
from elastic_ingest_top.models import Health

logger = logging.getLogger(__name__)

STR = "string"
NUM = "number"
BOOL = "boolean"

FIELD_TYPES: Dict[str, str] = {
    "name": STR,
    "health": STR,
    "doc_count": NUM,
    "size_bytes": NUM,
    "shard_count": NUM,
    "rate_per_sec": NUM,
}

COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}
ORDERING = {"<", "<=", ">", ">="}

FUNCTIONS = ("contains", "startswith", "endswith", "matches")
KEYWORDS = {"and", "or", "not", "true", "false"}
HEALTH_VALUES = tuple(health.value for health in Health)

MAX_NESTING = 100


# --------------------------------------------------------------------------- #
# Syntax tree                                                                 #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class FieldRef:
    name: str


@dataclass(frozen=True)
class Literal:
    value: Union[str, int, float, bool]


@dataclass(frozen=True)
class Compare:
    op: str
    left: Union[FieldRef, Literal]
    right: Union[FieldRef, Literal]


@dataclass(frozen=True)
class BoolOp:
    op: str  # "and" | "or"
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class StringFunc:
    func: str
    subject: Union[FieldRef, Literal]
    argument: str
    pattern: Optional[Pattern] = None


Node = Union[Literal, Compare, BoolOp, Not, StringFunc]


# --------------------------------------------------------------------------- #
# Tokenizer                                                                   #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


_TOKEN_RE = re.compile(
    r"""
    (?P<SKIP>\s+)
  | (?P<NUMBER>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<STRING>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<OP>==|!=|<=|>=|<|>|&&|\|\||!)
  | (?P<LPAREN>\()
  | (?P<RPAREN>\))
  | (?P<COMMA>,)
  | (?P<DOT>\.)
  | (?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<MISMATCH>.)
    """,
    re.VERBOSE,
)

_ESCAPES = {'\\"': '"', "\\'": "'", "\\\\": "\\"}


def _unquote(text: str) -> str:
    # Only quotes and backslashes are unescaped so regex escapes survive
    body = text[1:-1]
    return re.sub(r"\\[\\\"']", lambda m: _ESCAPES[m.group(0)], body)


def tokenize(text: str) -> List[Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        value = match.group()
        if kind == "SKIP":
            continue
        if kind == "MISMATCH":
            if value in "\"'":
                raise FilterCompileError("unterminated string", match.start())
            raise FilterCompileError(f"unexpected character {value!r}", match.start())
        tokens.append(Token(kind, value, match.start()))
    tokens.append(Token("EOF", "", len(text)))
    return tokens


# --------------------------------------------------------------------------- #
# Parser + type checker                                                       #
# --------------------------------------------------------------------------- #
class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != "EOF":
            self.index += 1
        return token

    def at_keyword(self, *words: str) -> bool:
        token = self.current
        return token.kind == "IDENT" and token.text.lower() in words

    def at_op(self, *ops: str) -> bool:
        return self.current.kind == "OP" and self.current.text in ops

    def expect(self, kind: str, what: str) -> Token:
        token = self.current
        if token.kind != kind:
            raise FilterCompileError(f"expected {what}, got {_describe(token)}", token.position)
        return self.advance()

    def descend(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FilterCompileError("expression nested too deeply", token.position)

    def parse(self) -> Node:
        node = self.parse_or()
        if self.current.kind != "EOF":
            raise FilterCompileError(f"unexpected {_describe(self.current)}", self.current.position)
        return node

    def parse_or(self) -> Node:
        operands = [self.parse_and()]
        while self.at_keyword("or") or self.at_op("||"):
            self.advance()
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def parse_and(self) -> Node:
        operands = [self.parse_not()]
        while self.at_keyword("and") or self.at_op("&&"):
            self.advance()
            operands.append(self.parse_not())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def parse_not(self) -> Node:
        if self.at_keyword("not") or self.at_op("!"):
            self.descend(self.advance())
            node = Not(self.parse_not())
            self.depth -= 1
            return node
        return self.parse_primary()

    def parse_primary(self) -> Node:
        token = self.current
        if token.kind == "LPAREN":
            self.descend(self.advance())
            node = self.parse_or()
            self.expect("RPAREN", "')'")
            self.depth -= 1
            return node
        if self.at_keyword("true", "false"):
            self.advance()
            return Literal(token.text.lower() == "true")
        if (
            token.kind == "IDENT"
            and token.text.lower() in FUNCTIONS
            and self.tokens[self.index + 1].kind == "LPAREN"
        ):
            return self.parse_call()
        return self.parse_comparison()

    def parse_call(self) -> StringFunc:
        name_token = self.advance()
        func = name_token.text.lower()
        self.expect("LPAREN", "'('")
        subject_token = self.current
        subject = self.parse_operand()
        self.expect("COMMA", "','")
        argument_token = self.expect("STRING", "a string argument")
        self.expect("RPAREN", "')'")
        return _build_call(func, subject, subject_token, _unquote(argument_token.text), argument_token)

    def parse_comparison(self) -> Node:
        left_token = self.current
        left = self.parse_operand()

        # infix form: name contains "x"
        if self.at_keyword(*FUNCTIONS):
            func = self.advance().text.lower()
            argument_token = self.expect("STRING", "a string argument")
            return _build_call(func, left, left_token, _unquote(argument_token.text), argument_token)

        op_token = self.current
        if op_token.kind != "OP" or op_token.text not in COMPARISONS:
            raise FilterCompileError(
                f"expected a comparison after {left_token.text!r}, got {_describe(op_token)}",
                op_token.position,
            )
        self.advance()
        right_token = self.current
        right = self.parse_operand()
        _check_comparison(op_token, left, left_token, right, right_token)
        left = _health_literal(left, right, left_token)
        right = _health_literal(right, left, right_token)
        return Compare(op_token.text, left, right)

    def parse_operand(self) -> Union[FieldRef, Literal]:
        token = self.current
        if token.kind == "NUMBER":
            self.advance()
            if any(c in token.text for c in ".eE"):
                return Literal(float(token.text))
            return Literal(int(token.text))
        if token.kind == "STRING":
            self.advance()
            return Literal(_unquote(token.text))
        if token.kind == "DOT":
            self.advance()
            token = self.expect("IDENT", "a field name after '.'")
            return _field(token)
        if token.kind == "IDENT" and token.text.lower() not in KEYWORDS:
            self.advance()
            return _field(token)
        raise FilterCompileError(f"expected a field or value, got {_describe(token)}", token.position)


def _describe(token: Token) -> str:
    if token.kind == "EOF":
        return "end of expression"
    return repr(token.text)


def _field(token: Token) -> FieldRef:
    if token.text not in FIELD_TYPES:
        known = ", ".join(sorted(FIELD_TYPES))
        raise FilterCompileError(f"unknown field {token.text!r} (known: {known})", token.position)
    return FieldRef(token.text)


def type_of(operand: Union[FieldRef, Literal]) -> str:
    if isinstance(operand, FieldRef):
        return FIELD_TYPES[operand.name]
    if isinstance(operand.value, bool):
        return BOOL
    if isinstance(operand.value, str):
        return STR
    return NUM


def _check_comparison(op_token: Token, left, left_token: Token, right, right_token: Token) -> None:
    left_type, right_type = type_of(left), type_of(right)
    op = op_token.text
    if op in ORDERING:
        for operand_type, token in ((left_type, left_token), (right_type, right_token)):
            if operand_type != NUM:
                raise FilterCompileError(
                    f"operator {op!r} needs numbers, {token.text!r} is a {operand_type}",
                    token.position,
                )
    elif left_type != right_type:
        raise FilterCompileError(
            f"cannot compare {left_type} {left_token.text!r} with {right_type} {right_token.text!r}",
            op_token.position,
        )


def _health_literal(operand, other, token: Token):
    """Health compares as its lowercase name; normalize and check literals against it."""
    if not (isinstance(operand, Literal) and isinstance(other, FieldRef) and other.name == "health"):
        return operand
    value = operand.value.lower()
    if value not in HEALTH_VALUES:
        raise FilterCompileError(
            f"unknown health {operand.value!r} (known: {', '.join(HEALTH_VALUES)})", token.position
        )
    return Literal(value)


def _build_call(func: str, subject, subject_token: Token, argument: str, argument_token: Token) -> StringFunc:
    if type_of(subject) != STR:
        raise FilterCompileError(
            f"{func}() needs a string, {subject_token.text!r} is a {type_of(subject)}",
            subject_token.position,
        )
    pattern = None
    if func == "matches":
        try:
            pattern = re.compile(argument)
        except re.error as exc:
            raise FilterCompileError(f"invalid regex {argument!r}: {exc}", argument_token.position)
    return StringFunc(func, subject, argument, pattern)


# --------------------------------------------------------------------------- #
# Evaluation                                                                  #
# --------------------------------------------------------------------------- #
def field_value(record: Any, name: str) -> Any:
    value = getattr(record, name)
    if isinstance(value, Health):
        return value.value
    return value


def _operand_value(operand: Union[FieldRef, Literal], record: Any) -> Any:
    if isinstance(operand, FieldRef):
        return field_value(record, operand.name)
    return operand.value


def evaluate(node: Node, record: Any) -> bool:
    """Evaluate a compiled tree against one record. Pure, no side effects."""
    if isinstance(node, Literal):
        return bool(node.value)
    if isinstance(node, Compare):
        left = _operand_value(node.left, record)
        right = _operand_value(node.right, record)
        return COMPARISONS[node.op](left, right)
    if isinstance(node, BoolOp):
        if node.op == "and":
            return all(evaluate(operand, record) for operand in node.operands)
        return any(evaluate(operand, record) for operand in node.operands)
    if isinstance(node, Not):
        return not evaluate(node.operand, record)
    if isinstance(node, StringFunc):
        subject = str(_operand_value(node.subject, record))
        if node.func == "contains":
            return node.argument in subject
        if node.func == "startswith":
            return subject.startswith(node.argument)
        if node.func == "endswith":
            return subject.endswith(node.argument)
        return node.pattern.search(subject) is not None
    raise TypeError(f"not a filter node: {node!r}")


class Predicate:
    """A compiled filter expression."""

    def __init__(self, source: str, root: Node):
        self.source = source
        self.root = root

    def __call__(self, record: Any) -> bool:
        return evaluate(self.root, record)

    def __repr__(self) -> str:
        return f"Predicate({self.source!r})"


def compile_filter(text: str) -> Optional[Predicate]:
    """
    Compile ``text``. Returns None for an empty expression (match all).
    Raises FilterCompileError.
    """
    if not text.strip():
        return None
    root = _Parser(tokenize(text)).parse()
    return Predicate(text, root)


# --------------------------------------------------------------------------- #
# Interactive filter state                                                    #
# --------------------------------------------------------------------------- #
class FilterState:
    """
    Raw text, edit mode and the last successfully compiled predicate.

    A failed compile only sets ``error``; matching keeps using whatever
    compiled last (or matches everything if nothing did).
    """

    def __init__(self):
        self.text = ""
        self.editing = False
        self.error: Optional[str] = None
        self._predicate: Optional[Predicate] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def active_source(self) -> str:
        return self._predicate.source if self._predicate else ""

    def enter(self) -> None:
        self.editing = True

    def exit(self) -> None:
        self.editing = False

    def clear(self) -> None:
        self.text = ""
        self.error = None
        self._predicate = None
        self.editing = False

    def set_text(self, text: str) -> bool:
        """Replace the text and recompile. Returns True if it compiled."""
        self.text = text
        return self.recompile()

    def recompile(self) -> bool:
        try:
            self._predicate = compile_filter(self.text)
        except FilterCompileError as exc:
            logger.debug("Filter %r does not compile: %s", self.text, exc)
            self.error = str(exc)
            return False
        self.error = None
        return True

    def matches(self, record: Any) -> bool:
        if self._predicate is None:
            return True
        return self._predicate(record)
