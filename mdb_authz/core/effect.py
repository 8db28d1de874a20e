"""
Effect combinators.

An effect strategy reduces the effects of the policy rows whose matcher
evaluated true into a single allow/deny decision. Strategies are looked up
by the model's ``[policy_effect]`` expression, compared with all whitespace
removed, so new forms can be registered without touching the enforcer.

Strategies receive an iterable that is produced lazily; a strategy that
returns early stops matcher evaluation for the remaining rows.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ..constants import EFFECT_ALLOW, EFFECT_DENY, EFFECT_SECTION
from ..exceptions import ModelSyntaxError

EffectStrategy = Callable[[Iterable[str]], bool]

ALLOW_OVERRIDE = "some(where (p.eft == allow))"
DENY_OVERRIDE = "!some(where (p.eft == deny))"
ALLOW_AND_DENY = "some(where (p.eft == allow)) && !some(where (p.eft == deny))"


def allow_override(effects: Iterable[str]) -> bool:
    """Allow if any matched row allows. No matched row means deny."""
    return any(effect == EFFECT_ALLOW for effect in effects)


def deny_override(effects: Iterable[str]) -> bool:
    """Allow unless a matched row denies. No matched row means allow."""
    return all(effect != EFFECT_DENY for effect in effects)


def allow_and_deny(effects: Iterable[str]) -> bool:
    """Allow if some matched row allows and none denies."""
    allowed = False
    for effect in effects:
        if effect == EFFECT_DENY:
            return False
        if effect == EFFECT_ALLOW:
            allowed = True
    return allowed


def combine(match_results: Iterable[bool]) -> bool:
    """
    Allow-override over plain matcher results for rows that are all
    implicit allow rows: the logical OR, default deny.
    """
    return allow_override(EFFECT_ALLOW for matched in match_results if matched)


def _normalize(expr: str) -> str:
    return "".join(expr.split())


_STRATEGIES: dict[str, EffectStrategy] = {
    _normalize(ALLOW_OVERRIDE): allow_override,
    _normalize(DENY_OVERRIDE): deny_override,
    _normalize(ALLOW_AND_DENY): allow_and_deny,
}


def register_effect(expr: str, strategy: EffectStrategy) -> None:
    """Register a strategy for an additional effect expression."""
    _STRATEGIES[_normalize(expr)] = strategy


def get_effect(expr: str) -> EffectStrategy:
    """
    Resolve the strategy for an effect expression.

    Raises:
        ModelSyntaxError: If the expression is not a supported form
    """
    strategy = _STRATEGIES.get(_normalize(expr))
    if strategy is None:
        raise ModelSyntaxError(EFFECT_SECTION, f"unsupported effect expression '{expr}'")
    return strategy
