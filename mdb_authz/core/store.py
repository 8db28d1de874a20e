"""
In-memory rule store.

Holds policy rows and relation rows keyed by ptype. Each ptype keeps its
rows in an insertion-ordered dict used as an ordered set, so duplicate
inserts are no-ops and queries come back in stable insertion order.

The store has no locking; the Enforcer is the serialization point.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class PolicyRule:
    """
    A stored rule: a ptype plus up to six positional string values.

    Iterating a rule yields its values, so ``sub, obj, act, dom = rule``
    unpacks a four-field policy row.
    """

    ptype: str
    values: tuple[str, ...]

    @classmethod
    def of(cls, ptype: str, *values: str) -> PolicyRule:
        return cls(ptype, tuple(values))

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> str:
        return self.values[index]

    def matches(self, filters: Mapping[int, str]) -> bool:
        """True when every filtered position holds the given value."""
        for index, value in filters.items():
            if index >= len(self.values) or self.values[index] != value:
                return False
        return True

    def to_list(self) -> list[str]:
        return [self.ptype, *self.values]


class RuleStore:
    """Ordered-set table of rules, one table per ptype."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[tuple[str, ...], PolicyRule]] = {}

    def add(self, rule: PolicyRule) -> bool:
        """Insert a rule. Returns False if an identical rule already exists."""
        table = self._tables.setdefault(rule.ptype, {})
        if rule.values in table:
            return False
        table[rule.values] = rule
        return True

    def add_many(self, rules: Iterable[PolicyRule]) -> list[PolicyRule]:
        """Insert rules, returning only the ones that were not already stored."""
        return [rule for rule in rules if self.add(rule)]

    def remove(self, rule: PolicyRule) -> bool:
        """Delete a rule. Returns False if it was not stored."""
        table = self._tables.get(rule.ptype)
        if not table or rule.values not in table:
            return False
        del table[rule.values]
        return True

    def remove_filtered(self, ptype: str, filters: Mapping[int, str]) -> list[PolicyRule]:
        """Delete and return every rule of ``ptype`` matching ``filters``."""
        removed = self.query(ptype, filters)
        table = self._tables.get(ptype, {})
        for rule in removed:
            del table[rule.values]
        return removed

    def has(self, rule: PolicyRule) -> bool:
        return rule.values in self._tables.get(rule.ptype, {})

    def query(self, ptype: str, filters: Mapping[int, str] | None = None) -> list[PolicyRule]:
        """
        Return rules of ``ptype`` whose values equal ``filters`` at the given
        positions. Positions absent from ``filters`` are wildcards.
        """
        table = self._tables.get(ptype)
        if not table:
            return []
        if not filters:
            return list(table.values())
        return [rule for rule in table.values() if rule.matches(filters)]

    def rules(self, ptype: str) -> list[PolicyRule]:
        return list(self._tables.get(ptype, {}).values())

    def ptypes(self) -> list[str]:
        return [ptype for ptype, table in self._tables.items() if table]

    def all(self) -> list[PolicyRule]:
        return [rule for table in self._tables.values() for rule in table.values()]

    def replace_all(self, rules: Iterable[PolicyRule]) -> None:
        """Swap the whole contents for ``rules`` (duplicates collapse)."""
        tables: dict[str, dict[tuple[str, ...], PolicyRule]] = {}
        for rule in rules:
            tables.setdefault(rule.ptype, {}).setdefault(rule.values, rule)
        self._tables = tables

    def clear(self) -> None:
        self._tables = {}

    def __len__(self) -> int:
        return sum(len(table) for table in self._tables.values())

    def __contains__(self, rule: object) -> bool:
        return isinstance(rule, PolicyRule) and self.has(rule)
