"""
Rule document schema.

Rules persist as flat documents ``{ptype, v0..v5}``; unused trailing
positions are omitted. Documents read back from storage are validated here
before they reach the engine.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..constants import RULE_VALUE_KEYS
from ..core.store import PolicyRule


class RuleDocument(BaseModel):
    """Stored form of a PolicyRule."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    ptype: str = Field(..., min_length=1, description="Rule type (p, g, g2, ...)")
    v0: str | None = None
    v1: str | None = None
    v2: str | None = None
    v3: str | None = None
    v4: str | None = None
    v5: str | None = None

    @classmethod
    def from_rule(cls, rule: PolicyRule) -> RuleDocument:
        if len(rule.values) > len(RULE_VALUE_KEYS):
            raise ValueError(
                f"rule has {len(rule.values)} values, at most {len(RULE_VALUE_KEYS)} can be stored"
            )
        return cls(ptype=rule.ptype, **dict(zip(RULE_VALUE_KEYS, rule.values)))

    def to_rule(self) -> PolicyRule:
        values: list[str] = []
        for key in RULE_VALUE_KEYS:
            value = getattr(self, key)
            if value is None:
                break
            values.append(value)
        return PolicyRule(self.ptype, tuple(values))

    def to_document(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)

    def to_filter(self) -> dict[str, str | None]:
        """Exact-match filter: unused positions must be absent (None matches missing)."""
        return self.model_dump()
