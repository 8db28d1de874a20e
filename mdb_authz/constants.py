"""
Constants for MDB_AUTHZ.

Shared names and defaults used across the engine, adapters and provider.
"""

from typing import Final

# ============================================================================
# MODEL CONSTANTS
# ============================================================================

REQUEST_SECTION: Final[str] = "request_definition"
POLICY_SECTION: Final[str] = "policy_definition"
ROLE_SECTION: Final[str] = "role_definition"
EFFECT_SECTION: Final[str] = "policy_effect"
MATCHER_SECTION: Final[str] = "matchers"

REQUIRED_SECTIONS: Final[tuple[str, ...]] = (
    REQUEST_SECTION,
    POLICY_SECTION,
    EFFECT_SECTION,
    MATCHER_SECTION,
)
"""Sections every model must define. [role_definition] is optional (ACL models)."""

REQUEST_KEY: Final[str] = "r"
POLICY_KEY: Final[str] = "p"
EFFECT_KEY: Final[str] = "e"
MATCHER_KEY: Final[str] = "m"

DEFAULT_GROUPING_PTYPE: Final[str] = "g"
"""Relation name used by the unnamed grouping helpers."""

EFFECT_FIELD: Final[str] = "eft"
"""Policy field that carries a row's effect when the policy definition declares it."""

EFFECT_ALLOW: Final[str] = "allow"
EFFECT_DENY: Final[str] = "deny"

MAX_RULE_FIELDS: Final[int] = 6
"""Rules persist as v0..v5, so no definition may declare more than six fields."""

RELATION_ARITIES: Final[tuple[int, ...]] = (2, 3)
"""Allowed relation arities: (from, to) or (from, to, domain)."""

DOMAIN_FIELD: Final[str] = "dom"
"""Request field the provider reports as the domain in log context."""

# ============================================================================
# PROVIDER CONSTANTS
# ============================================================================

AUTHZ_CACHE_TTL: Final[int] = 300
"""Default authorization decision cache TTL (seconds)."""

MAX_CACHE_SIZE: Final[int] = 1000
"""Maximum size of the decision cache before eviction."""

# ============================================================================
# PERSISTENCE CONSTANTS
# ============================================================================

DEFAULT_POLICIES_COLLECTION: Final[str] = "authz_policies"
"""Default MongoDB collection that stores rule documents."""

RULE_VALUE_KEYS: Final[tuple[str, ...]] = ("v0", "v1", "v2", "v3", "v4", "v5")
"""Document keys holding rule values, in positional order."""
