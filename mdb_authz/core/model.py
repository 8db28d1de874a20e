"""
Model loader.

Parses the declarative model text into a typed, immutable Model::

    [request_definition]
    r = sub, obj, act, dom      # trailing comments are allowed

    [policy_definition]
    p = sub, obj, act, dom

    [role_definition]
    g = _, _, _
    g2 = _, _

    [policy_effect]
    e = some(where (p.eft == allow))

    [matchers]
    m = (r.sub == p.sub && r.obj == p.obj && r.act == p.act && r.dom == p.dom)
        || (g(r.sub, p.sub, r.dom) && r.obj == p.obj && r.act == p.act)

Values continue onto indented lines or after a trailing backslash. The
effect expression and the matcher are resolved while loading, so a model
that parses is ready to enforce.
"""

from __future__ import annotations

import configparser
import logging
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from ..constants import (EFFECT_FIELD, EFFECT_KEY, EFFECT_SECTION, MATCHER_KEY,
                         MATCHER_SECTION, MAX_RULE_FIELDS, POLICY_KEY,
                         POLICY_SECTION, RELATION_ARITIES, REQUEST_KEY,
                         REQUEST_SECTION, REQUIRED_SECTIONS, ROLE_SECTION)
from ..exceptions import ModelSyntaxError
from .effect import EffectStrategy, get_effect
from .matcher import CompiledMatcher, compile_matcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Model:
    """A parsed authorization model."""

    request_def: tuple[str, ...]
    policy_def: tuple[str, ...]
    role_defs: Mapping[str, int]
    effect_expr: str
    matcher_expr: str
    matcher: CompiledMatcher = field(repr=False, compare=False)
    effect: EffectStrategy = field(repr=False, compare=False)

    @property
    def effect_index(self) -> int | None:
        """Position of the ``eft`` policy field, or None for implicit allow rows."""
        if EFFECT_FIELD in self.policy_def:
            return self.policy_def.index(EFFECT_FIELD)
        return None

    def relation_arity(self, name: str) -> int | None:
        return self.role_defs.get(name)


def _strip_comments(text: str) -> str:
    # "#" starts a comment anywhere on a line, with or without whitespace before it
    return "\n".join(line.split("#", 1)[0].rstrip() for line in text.splitlines())


def _join_backslash_continuations(text: str) -> str:
    lines: list[str] = []
    pending = ""
    for line in text.splitlines():
        stripped = line.rstrip()
        if stripped.endswith("\\"):
            pending += stripped[:-1] + " "
            continue
        lines.append(pending + line if pending else line)
        pending = ""
    if pending:
        lines.append(pending)
    return "\n".join(lines)


def _read_sections(text: str) -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        delimiters=("=",),
        comment_prefixes=("#",),
        inline_comment_prefixes=("#",),
        interpolation=None,
        strict=True,
        default_section="__default__",
    )
    parser.optionxform = str  # keep key case
    try:
        parser.read_string(_join_backslash_continuations(_strip_comments(textwrap.dedent(text))))
    except configparser.Error as e:
        section = getattr(e, "section", None) or "model"
        raise ModelSyntaxError(section, e.message) from e
    return parser


def _value(parser: configparser.ConfigParser, section: str, key: str) -> str:
    if not parser.has_section(section):
        raise ModelSyntaxError(section, "section is missing")
    keys = list(parser[section])
    if key not in keys:
        raise ModelSyntaxError(section, f"missing '{key} = ...' assignment")
    extra = [k for k in keys if k != key]
    if extra:
        raise ModelSyntaxError(section, f"unexpected assignment(s): {', '.join(extra)}")
    raw = parser[section][key]
    value = " ".join(line.strip() for line in raw.splitlines() if line.strip())
    if not value:
        raise ModelSyntaxError(section, f"'{key}' is empty")
    return value


def _field_list(section: str, key: str, value: str) -> tuple[str, ...]:
    fields = tuple(part.strip() for part in value.split(","))
    for name in fields:
        if not name.isidentifier():
            raise ModelSyntaxError(section, f"invalid field name '{name}' in '{key}'")
    if len(set(fields)) != len(fields):
        raise ModelSyntaxError(section, f"duplicate field in '{key}'")
    if len(fields) > MAX_RULE_FIELDS:
        raise ModelSyntaxError(
            section, f"'{key}' declares {len(fields)} fields, at most {MAX_RULE_FIELDS} allowed"
        )
    return fields


def _role_defs(parser: configparser.ConfigParser) -> dict[str, int]:
    if not parser.has_section(ROLE_SECTION):
        return {}
    role_defs: dict[str, int] = {}
    for name, raw in parser[ROLE_SECTION].items():
        if not name.isidentifier() or name in (REQUEST_KEY, POLICY_KEY):
            raise ModelSyntaxError(ROLE_SECTION, f"invalid relation name '{name}'")
        parts = [part.strip() for part in " ".join(raw.split()).split(",")]
        if any(part != "_" for part in parts):
            raise ModelSyntaxError(ROLE_SECTION, f"'{name}' must be a list of '_' placeholders")
        if len(parts) not in RELATION_ARITIES:
            raise ModelSyntaxError(
                ROLE_SECTION, f"'{name}' has arity {len(parts)}, expected 2 or 3"
            )
        role_defs[name] = len(parts)
    return role_defs


def parse_model(text: str) -> Model:
    """
    Parse model definition text.

    Args:
        text: Model text with the five bracketed sections

    Returns:
        The parsed Model with its matcher compiled and effect resolved

    Raises:
        ModelSyntaxError: If a section is missing or malformed
        UnknownField: If the matcher references an undeclared field
    """
    parser = _read_sections(text)
    for section in REQUIRED_SECTIONS:
        if not parser.has_section(section):
            raise ModelSyntaxError(section, "section is missing")

    request_def = _field_list(
        REQUEST_SECTION, REQUEST_KEY, _value(parser, REQUEST_SECTION, REQUEST_KEY)
    )
    policy_def = _field_list(
        POLICY_SECTION, POLICY_KEY, _value(parser, POLICY_SECTION, POLICY_KEY)
    )
    role_defs = _role_defs(parser)
    effect_expr = _value(parser, EFFECT_SECTION, EFFECT_KEY)
    matcher_expr = _value(parser, MATCHER_SECTION, MATCHER_KEY)

    effect = get_effect(effect_expr)
    matcher = compile_matcher(matcher_expr, request_def, policy_def, role_defs)

    model = Model(
        request_def=request_def,
        policy_def=policy_def,
        role_defs=MappingProxyType(role_defs),
        effect_expr=effect_expr,
        matcher_expr=matcher_expr,
        matcher=matcher,
        effect=effect,
    )
    logger.debug(
        f"Parsed model: r={','.join(request_def)} p={','.join(policy_def)} "
        f"relations={list(role_defs)}"
    )
    return model


def load_model_from_file(path: str | Path) -> Model:
    """Read and parse a model ``.conf`` file."""
    return parse_model(Path(path).read_text(encoding="utf-8"))
