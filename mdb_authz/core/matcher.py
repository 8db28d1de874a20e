"""
Matcher compiler and evaluator.

The ``[matchers]`` expression is compiled once per model load into a tree
of typed nodes and evaluated by recursive descent for each (request, policy
row) pair. Nothing is re-parsed at enforcement time.

Grammar, from lowest to highest precedence::

    or      := and ("||" and)*
    and     := unary ("&&" unary)*
    unary   := "!" unary | compare
    compare := operand ("==" operand)?
    operand := "(" or ")" | STRING | IDENT "." IDENT | IDENT "(" args ")"

``r.<field>`` and ``p.<field>`` references and quoted literals are string
valued. ``==`` comparisons and relation calls are boolean valued. Mixing the
two kinds is rejected at compile time.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import NamedTuple, Protocol

from ..constants import MATCHER_SECTION, POLICY_KEY, REQUEST_KEY
from ..exceptions import ModelSyntaxError, UnknownField


class RelationLookup(Protocol):
    def has_relation(
        self, name: str, source: str, target: str, domain: str | None = None
    ) -> bool: ...


class Env(NamedTuple):
    request: Sequence[str]
    policy: Sequence[str]
    roles: RelationLookup


# ============================================================================
# NODES
# ============================================================================


@dataclass(frozen=True)
class FieldRef:
    source: str
    name: str
    index: int
    is_boolean = False

    def eval(self, env: Env) -> str:
        row = env.request if self.source == REQUEST_KEY else env.policy
        return row[self.index]


@dataclass(frozen=True)
class Literal:
    value: str
    is_boolean = False

    def eval(self, env: Env) -> str:
        return self.value


@dataclass(frozen=True)
class Compare:
    left: FieldRef | Literal
    right: FieldRef | Literal
    is_boolean = True

    def eval(self, env: Env) -> bool:
        return self.left.eval(env) == self.right.eval(env)


@dataclass(frozen=True)
class Not:
    operand: Node
    is_boolean = True

    def eval(self, env: Env) -> bool:
        return not self.operand.eval(env)


@dataclass(frozen=True)
class And:
    left: Node
    right: Node
    is_boolean = True

    def eval(self, env: Env) -> bool:
        return self.left.eval(env) and self.right.eval(env)


@dataclass(frozen=True)
class Or:
    left: Node
    right: Node
    is_boolean = True

    def eval(self, env: Env) -> bool:
        return self.left.eval(env) or self.right.eval(env)


@dataclass(frozen=True)
class RelationCall:
    name: str
    args: tuple[FieldRef | Literal, ...]
    is_boolean = True

    def eval(self, env: Env) -> bool:
        values = [arg.eval(env) for arg in self.args]
        domain = values[2] if len(values) == 3 else None
        return env.roles.has_relation(self.name, values[0], values[1], domain)


Node = FieldRef | Literal | Compare | Not | And | Or | RelationCall


@dataclass(frozen=True)
class CompiledMatcher:
    expression: str
    root: Node
    relations: frozenset[str]


# ============================================================================
# TOKENIZER
# ============================================================================


class Token(NamedTuple):
    kind: str
    text: str
    pos: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"[^"]*"|'[^']*')
  | (?P<op>==|&&|\|\||[!().,])
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)


def tokenize(expr: str) -> list[Token]:
    """
    Split a matcher expression into tokens.

    Raises:
        ModelSyntaxError: On any character outside the grammar
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(expr):
        match = _TOKEN_RE.match(expr, pos)
        if match is None:
            raise ModelSyntaxError(
                MATCHER_SECTION, f"unexpected character {expr[pos]!r} at position {pos}"
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token("end", "", len(expr)))
    return tokens


# ============================================================================
# PARSER
# ============================================================================


class _Parser:
    def __init__(
        self,
        expr: str,
        request_def: Sequence[str],
        policy_def: Sequence[str],
        role_defs: Mapping[str, int],
    ):
        self._tokens = tokenize(expr)
        self._pos = 0
        self._defs = {REQUEST_KEY: list(request_def), POLICY_KEY: list(policy_def)}
        self._role_defs = role_defs
        self.relations: set[str] = set()

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _next(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _error(self, reason: str, token: Token | None = None) -> ModelSyntaxError:
        token = token or self._peek()
        where = "end of expression" if token.kind == "end" else f"position {token.pos}"
        return ModelSyntaxError(MATCHER_SECTION, f"{reason} at {where}")

    def _expect(self, text: str) -> Token:
        token = self._next()
        if token.kind != "op" or token.text != text:
            raise self._error(f"expected '{text}'", token)
        return token

    def _accept(self, text: str) -> bool:
        token = self._peek()
        if token.kind == "op" and token.text == text:
            self._pos += 1
            return True
        return False

    def _boolean(self, node: Node, token: Token) -> Node:
        if not node.is_boolean:
            raise self._error("expected a comparison or relation call", token)
        return node

    def parse(self) -> Node:
        start = self._peek()
        node = self._boolean(self._or(), start)
        if self._peek().kind != "end":
            raise self._error(f"unexpected '{self._peek().text}'")
        return node

    def _or(self) -> Node:
        start = self._peek()
        node = self._and()
        while self._accept("||"):
            right_start = self._peek()
            right = self._boolean(self._and(), right_start)
            node = Or(self._boolean(node, start), right)
        return node

    def _and(self) -> Node:
        start = self._peek()
        node = self._unary()
        while self._accept("&&"):
            right_start = self._peek()
            right = self._boolean(self._unary(), right_start)
            node = And(self._boolean(node, start), right)
        return node

    def _unary(self) -> Node:
        if self._accept("!"):
            start = self._peek()
            return Not(self._boolean(self._unary(), start))
        return self._compare()

    def _compare(self) -> Node:
        start = self._peek()
        left = self._operand()
        if not self._accept("=="):
            return left
        right_start = self._peek()
        right = self._operand()
        if left.is_boolean:
            raise self._error("'==' compares fields or literals", start)
        if right.is_boolean:
            raise self._error("'==' compares fields or literals", right_start)
        return Compare(left, right)

    def _operand(self) -> Node:
        token = self._next()
        if token.kind == "op" and token.text == "(":
            node = self._or()
            self._expect(")")
            return node
        if token.kind == "string":
            return Literal(token.text[1:-1])
        if token.kind == "ident":
            if self._accept("."):
                attr = self._next()
                if attr.kind != "ident":
                    raise self._error("expected a field name", attr)
                return self._field(token.text, attr.text)
            if self._accept("("):
                return self._call(token)
            raise self._error(f"bare identifier '{token.text}'", token)
        raise self._error(
            "unexpected end of expression" if token.kind == "end" else f"unexpected '{token.text}'",
            token,
        )

    def _field(self, source: str, name: str) -> FieldRef:
        fields = self._defs.get(source)
        if fields is None or name not in fields:
            raise UnknownField(f"{source}.{name}", source)
        return FieldRef(source, name, fields.index(name))

    def _call(self, name_token: Token) -> RelationCall:
        name = name_token.text
        arity = self._role_defs.get(name)
        if arity is None:
            raise self._error(f"unknown function '{name}'", name_token)
        args: list[FieldRef | Literal] = []
        if not self._accept(")"):
            while True:
                arg_start = self._peek()
                arg = self._operand()
                if arg.is_boolean:
                    raise self._error("relation arguments must be fields or literals", arg_start)
                args.append(arg)
                if self._accept(")"):
                    break
                self._expect(",")
        if len(args) != arity:
            raise self._error(
                f"'{name}' takes {arity} arguments, got {len(args)}", name_token
            )
        self.relations.add(name)
        return RelationCall(name, tuple(args))


def compile_matcher(
    expr: str,
    request_def: Sequence[str],
    policy_def: Sequence[str],
    role_defs: Mapping[str, int],
) -> CompiledMatcher:
    """
    Compile a matcher expression against the model's definitions.

    Raises:
        ModelSyntaxError: If the expression does not follow the grammar
        UnknownField: If it references an undeclared r./p. field
    """
    if not expr.strip():
        raise ModelSyntaxError(MATCHER_SECTION, "empty matcher expression")
    parser = _Parser(expr, request_def, policy_def, role_defs)
    root = parser.parse()
    return CompiledMatcher(expr, root, frozenset(parser.relations))


def evaluate(
    compiled: CompiledMatcher,
    request: Sequence[str],
    policy_row: Sequence[str],
    roles: RelationLookup,
) -> bool:
    return bool(compiled.root.eval(Env(request, policy_row, roles)))
