"""
Core policy engine.

Model parsing, rule storage, role resolution, matcher evaluation, effect
combination and the Enforcer that ties them together.
"""

from .effect import ALLOW_AND_DENY, ALLOW_OVERRIDE, DENY_OVERRIDE, get_effect, register_effect
from .enforcer import Enforcer, EnforcerState
from .matcher import CompiledMatcher, compile_matcher, evaluate
from .model import Model, load_model_from_file, parse_model
from .roles import RoleGraph, RoleResolver
from .store import PolicyRule, RuleStore

__all__ = [
    # Enforcer
    "Enforcer",
    "EnforcerState",
    # Model
    "Model",
    "parse_model",
    "load_model_from_file",
    # Matcher
    "CompiledMatcher",
    "compile_matcher",
    "evaluate",
    # Effect
    "ALLOW_OVERRIDE",
    "DENY_OVERRIDE",
    "ALLOW_AND_DENY",
    "get_effect",
    "register_effect",
    # Rules and roles
    "PolicyRule",
    "RuleStore",
    "RoleGraph",
    "RoleResolver",
]
