"""
Abstract Adapter Interface

An adapter persists rule rows for an Enforcer. The engine only needs
"load everything" and "save everything"; adapters that can write single
rows advertise it through ``supports_incremental``.

Adapters report failures by raising PersistenceError. Retry and timeout
policy, if any, belongs to the adapter.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..core.store import PolicyRule
from ..exceptions import PersistenceError


class Adapter(ABC):
    """
    Storage backend for rule rows.

    Example:
        class FileAdapter(Adapter):
            async def load_all_rules(self) -> list[PolicyRule]:
                ...

            async def save_all_rules(self, rules: Sequence[PolicyRule]) -> None:
                ...
    """

    supports_incremental: bool = False

    @abstractmethod
    async def load_all_rules(self) -> list[PolicyRule]:
        """
        Load every persisted rule.

        Returns:
            List of rules in storage order

        Raises:
            PersistenceError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save_all_rules(self, rules: Sequence[PolicyRule]) -> None:
        """
        Replace the persisted rule set with ``rules``.

        The write must succeed or fail as a whole.

        Raises:
            PersistenceError: If the backend cannot be written
        """
        pass

    async def add_rule(self, rule: PolicyRule) -> None:
        """Persist a single rule (incremental adapters only)."""
        raise PersistenceError(
            "Adapter does not support incremental writes",
            operation="add",
            adapter=type(self).__name__,
        )

    async def remove_rule(self, rule: PolicyRule) -> bool:
        """Delete a single persisted rule (incremental adapters only)."""
        raise PersistenceError(
            "Adapter does not support incremental writes",
            operation="remove",
            adapter=type(self).__name__,
        )


class MemoryAdapter(Adapter):
    """
    In-memory adapter, useful for unit tests and ephemeral enforcers.

    Several enforcers sharing one MemoryAdapter behave like several
    processes over one persisted rule set: each only sees another's
    changes after that one saves and this one loads.
    """

    supports_incremental = True

    def __init__(self, rules: Sequence[PolicyRule] | None = None):
        self._rules: list[PolicyRule] = list(rules or [])

    @property
    def rules(self) -> list[PolicyRule]:
        return list(self._rules)

    async def load_all_rules(self) -> list[PolicyRule]:
        return list(self._rules)

    async def save_all_rules(self, rules: Sequence[PolicyRule]) -> None:
        self._rules = list(rules)

    async def add_rule(self, rule: PolicyRule) -> None:
        if rule not in self._rules:
            self._rules.append(rule)

    async def remove_rule(self, rule: PolicyRule) -> bool:
        if rule not in self._rules:
            return False
        self._rules.remove(rule)
        return True

    def clear(self) -> None:
        """Drop every stored rule (useful for test setup)."""
        self._rules.clear()
