"""
Role resolution.

Each relation declared in ``[role_definition]`` gets its own RoleGraph. A
graph is partitioned by domain: arity-3 relations take the domain from the
third value of a row, arity-2 relations put every edge in one implicit
domain. An edge ``a -> b`` means "a is granted role/membership b".

Graphs may contain cycles; traversal keeps a visited set.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Hashable, Iterable, Mapping

from ..constants import ROLE_SECTION
from ..exceptions import ShapeMismatch, UnknownField
from .store import RuleStore

logger = logging.getLogger(__name__)

# Key for arity-2 edges and for domain-less queries. Never equal to a stored domain string.
_IMPLICIT_DOMAIN = object()


class RoleGraph:
    """Directed edges of one relation, grouped by domain."""

    def __init__(self) -> None:
        self._domains: dict[Hashable, dict[str, set[str]]] = {}

    def add_link(self, source: str, target: str, domain: Hashable = _IMPLICIT_DOMAIN) -> None:
        self._domains.setdefault(domain, {}).setdefault(source, set()).add(target)

    def delete_link(self, source: str, target: str, domain: Hashable = _IMPLICIT_DOMAIN) -> bool:
        edges = self._domains.get(domain, {})
        targets = edges.get(source)
        if not targets or target not in targets:
            return False
        targets.discard(target)
        if not targets:
            del edges[source]
        return True

    def has_link(self, source: str, target: str, domain: Hashable = _IMPLICIT_DOMAIN) -> bool:
        """
        Breadth-first search from ``source`` for ``target``.

        Only paths of at least one edge count, so ``has_link(a, a)`` is
        True only when ``a`` lies on a cycle. O(V+E) per call.
        """
        edges = self._domains.get(domain)
        if not edges:
            return False
        visited = {source}
        queue = deque([source])
        while queue:
            for nxt in edges.get(queue.popleft(), ()):
                if nxt == target:
                    return True
                if nxt not in visited:
                    visited.add(nxt)
                    queue.append(nxt)
        return False

    def direct_targets(self, source: str, domain: Hashable = _IMPLICIT_DOMAIN) -> list[str]:
        return sorted(self._domains.get(domain, {}).get(source, ()))

    def reachable(self, source: str, domain: Hashable = _IMPLICIT_DOMAIN) -> list[str]:
        """Every node reachable from ``source`` in BFS order."""
        edges = self._domains.get(domain, {})
        visited = {source}
        order: list[str] = []
        queue = deque([source])
        while queue:
            for nxt in sorted(edges.get(queue.popleft(), ())):
                if nxt not in visited:
                    visited.add(nxt)
                    order.append(nxt)
                    queue.append(nxt)
        return order

    def direct_sources(self, target: str, domain: Hashable = _IMPLICIT_DOMAIN) -> list[str]:
        edges = self._domains.get(domain, {})
        return sorted(source for source, targets in edges.items() if target in targets)

    def clear(self) -> None:
        self._domains.clear()


class RoleResolver:
    """
    Answers relation queries for every relation a model declares.

    The resolver does not own rules. The Enforcer keeps it in lock-step with
    the RuleStore by calling ``add_link``/``delete_link`` on each relation-row
    mutation and ``rebuild`` after a bulk load.
    """

    def __init__(self, role_defs: Mapping[str, int]):
        self._arities = dict(role_defs)
        self._graphs = {name: RoleGraph() for name in role_defs}

    @property
    def relations(self) -> list[str]:
        return list(self._graphs)

    def _graph(self, name: str) -> RoleGraph:
        graph = self._graphs.get(name)
        if graph is None:
            raise UnknownField(name, ROLE_SECTION)
        return graph

    def _domain(self, name: str, domain: str | None) -> Hashable:
        if self._arities[name] == 2 or domain is None:
            return _IMPLICIT_DOMAIN
        return domain

    def _split(self, name: str, values: Iterable[str]) -> tuple[str, str, Hashable]:
        fields = tuple(values)
        arity = self._arities[name]
        if len(fields) != arity:
            raise ShapeMismatch(name, arity, len(fields))
        domain = fields[2] if arity == 3 else _IMPLICIT_DOMAIN
        return fields[0], fields[1], domain

    def add_link(self, name: str, values: Iterable[str]) -> None:
        graph = self._graph(name)
        source, target, domain = self._split(name, values)
        graph.add_link(source, target, domain)

    def delete_link(self, name: str, values: Iterable[str]) -> bool:
        graph = self._graph(name)
        source, target, domain = self._split(name, values)
        return graph.delete_link(source, target, domain)

    def rebuild(self, store: RuleStore) -> None:
        """Recreate every graph from the relation rows currently in ``store``."""
        for name, graph in self._graphs.items():
            graph.clear()
            rows = store.rules(name)
            for rule in rows:
                source, target, domain = self._split(name, rule.values)
                graph.add_link(source, target, domain)
            logger.debug(f"Rebuilt relation '{name}' from {len(rows)} rows")

    def has_relation(self, name: str, source: str, target: str, domain: str | None = None) -> bool:
        graph = self._graph(name)
        return graph.has_link(source, target, self._domain(name, domain))

    def get_roles(self, name: str, source: str, domain: str | None = None) -> list[str]:
        return self._graph(name).direct_targets(source, self._domain(name, domain))

    def get_implicit_roles(self, name: str, source: str, domain: str | None = None) -> list[str]:
        return self._graph(name).reachable(source, self._domain(name, domain))

    def get_users(self, name: str, target: str, domain: str | None = None) -> list[str]:
        return self._graph(name).direct_sources(target, self._domain(name, domain))
