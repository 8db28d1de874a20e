"""
Enforcer

Orchestrates the model, the rule store, the role resolver, the compiled
matcher and the effect strategy, and talks to a persistence Adapter.

An Enforcer is UNINITIALIZED until both a model and an adapter are
attached; every operation then requires READY. There is no internal
locking: concurrent ``enforce`` calls are safe only while nothing mutates
the enforcer, and mutations must be serialized by the caller.

Mutations stay in memory until ``save_policy``. Other Enforcer instances
over the same adapter see them only after they call ``load_policy``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Sequence
from enum import Enum
from typing import TYPE_CHECKING

from ..constants import DEFAULT_GROUPING_PTYPE, EFFECT_ALLOW, EFFECT_DENY, POLICY_KEY, REQUEST_KEY
from ..exceptions import NotInitialized, PersistenceError, ShapeMismatch, UnknownField
from ..observability.logging import get_logger as get_contextual_logger
from ..observability.logging import log_operation
from ..observability.metrics import get_metrics_collector, timed_operation
from .matcher import evaluate
from .model import Model
from .roles import RoleResolver
from .store import PolicyRule, RuleStore

if TYPE_CHECKING:
    from ..adapters.base import Adapter

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class EnforcerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class Enforcer:
    """
    Policy enforcement point.

    Example:
        enforcer = await Enforcer.create(RBAC_WITH_DOMAINS_MODEL, MemoryAdapter())
        enforcer.add_policy("alice", "doc1", "read", "Motion")
        enforcer.enforce("alice", "doc1", "read", "Motion")  # True
        await enforcer.save_policy()
    """

    def __init__(self, model: Model | str | None = None, adapter: Adapter | None = None):
        """
        Args:
            model: Parsed Model, model text, built-in model name, or model file path
            adapter: Persistence adapter
        """
        self._model: Model | None = None
        self._adapter: Adapter | None = None
        self._store = RuleStore()
        self._roles = RoleResolver({})
        if model is not None:
            self.set_model(model)
        if adapter is not None:
            self.set_adapter(adapter)

    @classmethod
    async def create(cls, model: Model | str, adapter: Adapter) -> Enforcer:
        """Build an enforcer and load its policy from ``adapter``."""
        enforcer = cls(model, adapter)
        await enforcer.load_policy()
        return enforcer

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EnforcerState:
        if self._model is None or self._adapter is None:
            return EnforcerState.UNINITIALIZED
        return EnforcerState.READY

    @property
    def model(self) -> Model | None:
        return self._model

    @property
    def adapter(self) -> Adapter | None:
        return self._adapter

    def set_model(self, model: Model | str) -> None:
        """
        Attach a model. In-memory rules are discarded because they were
        validated against the previous model; call ``load_policy`` next.
        """
        # Imported here: mdb_authz.models imports mdb_authz.core
        from ..models import load_model

        self._model = load_model(model)
        self._store = RuleStore()
        self._roles = RoleResolver(self._model.role_defs)
        logger.info(
            f"Model attached: r={','.join(self._model.request_def)} "
            f"relations={list(self._model.role_defs)}"
        )

    def set_adapter(self, adapter: Adapter) -> None:
        self._adapter = adapter
        logger.debug(f"Adapter attached: {type(adapter).__name__}")

    def _require_ready(self) -> Model:
        if self._model is None or self._adapter is None:
            missing = tuple(
                name
                for name, value in (("model", self._model), ("adapter", self._adapter))
                if value is None
            )
            raise NotInitialized(missing)
        return self._model

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _relation_arity(self, model: Model, name: str) -> int:
        arity = model.relation_arity(name)
        if arity is None:
            raise UnknownField(name, "role_definition")
        return arity

    def _make_rule(self, model: Model, ptype: str, values: Sequence[str]) -> PolicyRule:
        """Check a row against its definition and build the rule."""
        if ptype == POLICY_KEY:
            expected = len(model.policy_def)
        else:
            expected = self._relation_arity(model, ptype)
        if len(values) != expected:
            raise ShapeMismatch(ptype, expected, len(values))
        for value in values:
            if not isinstance(value, str):
                raise TypeError(f"rule values must be strings, got {type(value).__name__}")
        return PolicyRule(ptype, tuple(values))

    def _filters(
        self, model: Model, ptype: str, field_index: int, values: Sequence[str]
    ) -> dict[int, str]:
        width = len(model.policy_def) if ptype == POLICY_KEY else self._relation_arity(model, ptype)
        if field_index < 0 or field_index + len(values) > width:
            raise ShapeMismatch(ptype, width, field_index + len(values))
        # Empty strings are wildcards
        return {field_index + offset: value for offset, value in enumerate(values) if value != ""}

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    def _check_request(self, model: Model, request: Sequence[str]) -> tuple[str, ...]:
        if len(request) != len(model.request_def):
            raise ShapeMismatch(REQUEST_KEY, len(model.request_def), len(request))
        return tuple(request)

    def _effect_of(self, model: Model, rule: PolicyRule) -> str:
        index = model.effect_index
        return EFFECT_ALLOW if index is None else rule.values[index]

    def _matched(self, model: Model, request: tuple[str, ...]) -> Iterator[PolicyRule]:
        for rule in self._store.rules(POLICY_KEY):
            if evaluate(model.matcher, request, rule.values, self._roles):
                yield rule

    @timed_operation("authz.enforce")
    def enforce(self, *request: str) -> bool:
        """
        Decide whether a request is allowed.

        Args:
            *request: One value per request definition field

        Returns:
            True if the effect strategy allows the request

        Raises:
            ShapeMismatch: If the request arity differs from the request definition
        """
        model = self._require_ready()
        values = self._check_request(model, request)
        allowed = model.effect(
            self._effect_of(model, rule) for rule in self._matched(model, values)
        )
        get_metrics_collector().record_decision("authz.enforce", allowed)
        contextual_logger.debug(f"enforce{values} -> {allowed}")
        return allowed

    def enforce_ex(self, *request: str) -> tuple[bool, list[PolicyRule]]:
        """
        Like ``enforce`` but also return the matched policy rows whose
        effect agrees with the decision.
        """
        model = self._require_ready()
        values = self._check_request(model, request)
        matched = list(self._matched(model, values))
        effects = [self._effect_of(model, rule) for rule in matched]
        allowed = model.effect(effects)
        wanted = EFFECT_ALLOW if allowed else EFFECT_DENY
        explain = [rule for rule, effect in zip(matched, effects) if effect == wanted]
        return allowed, explain

    # ------------------------------------------------------------------
    # Policy rows
    # ------------------------------------------------------------------

    def add_policy(self, *fields: str) -> bool:
        """
        Add a permission row in memory. Not persisted until ``save_policy``.

        Returns:
            False if the identical row already exists
        """
        model = self._require_ready()
        return self._store.add(self._make_rule(model, POLICY_KEY, fields))

    def add_policies(self, rows: Iterable[Sequence[str]]) -> list[PolicyRule]:
        """Add several permission rows, returning those actually inserted."""
        model = self._require_ready()
        rules = [self._make_rule(model, POLICY_KEY, row) for row in rows]
        return self._store.add_many(rules)

    def remove_policy(self, *fields: str) -> bool:
        model = self._require_ready()
        return self._store.remove(self._make_rule(model, POLICY_KEY, fields))

    def remove_policies(self, rows: Iterable[Sequence[str]]) -> list[PolicyRule]:
        model = self._require_ready()
        rules = [self._make_rule(model, POLICY_KEY, row) for row in rows]
        return [rule for rule in rules if self._store.remove(rule)]

    def remove_filtered_policy(self, field_index: int, *values: str) -> list[PolicyRule]:
        model = self._require_ready()
        filters = self._filters(model, POLICY_KEY, field_index, values)
        return self._store.remove_filtered(POLICY_KEY, filters)

    def has_policy(self, *fields: str) -> bool:
        model = self._require_ready()
        return self._store.has(self._make_rule(model, POLICY_KEY, fields))

    def get_policy(self) -> list[PolicyRule]:
        self._require_ready()
        return self._store.rules(POLICY_KEY)

    def get_filtered_policy(self, field_index: int, *values: str) -> list[PolicyRule]:
        """
        Query permission rows by consecutive field values starting at
        ``field_index``. An empty string matches anything.
        """
        model = self._require_ready()
        return self._store.query(POLICY_KEY, self._filters(model, POLICY_KEY, field_index, values))

    # ------------------------------------------------------------------
    # Relation rows
    # ------------------------------------------------------------------

    def add_named_grouping_policy(self, ptype: str, *fields: str) -> bool:
        model = self._require_ready()
        rule = self._make_rule(model, ptype, fields)
        if not self._store.add(rule):
            return False
        self._roles.add_link(ptype, rule.values)
        return True

    def remove_named_grouping_policy(self, ptype: str, *fields: str) -> bool:
        model = self._require_ready()
        rule = self._make_rule(model, ptype, fields)
        if not self._store.remove(rule):
            return False
        self._roles.delete_link(ptype, rule.values)
        return True

    def remove_filtered_named_grouping_policy(
        self, ptype: str, field_index: int, *values: str
    ) -> list[PolicyRule]:
        model = self._require_ready()
        removed = self._store.remove_filtered(ptype, self._filters(model, ptype, field_index, values))
        for rule in removed:
            self._roles.delete_link(ptype, rule.values)
        return removed

    def get_named_grouping_policy(self, ptype: str) -> list[PolicyRule]:
        model = self._require_ready()
        self._relation_arity(model, ptype)
        return self._store.rules(ptype)

    def get_filtered_named_grouping_policy(
        self, ptype: str, field_index: int, *values: str
    ) -> list[PolicyRule]:
        model = self._require_ready()
        return self._store.query(ptype, self._filters(model, ptype, field_index, values))

    def has_named_grouping_policy(self, ptype: str, *fields: str) -> bool:
        model = self._require_ready()
        return self._store.has(self._make_rule(model, ptype, fields))

    def add_grouping_policy(self, *fields: str) -> bool:
        return self.add_named_grouping_policy(DEFAULT_GROUPING_PTYPE, *fields)

    def remove_grouping_policy(self, *fields: str) -> bool:
        return self.remove_named_grouping_policy(DEFAULT_GROUPING_PTYPE, *fields)

    def remove_filtered_grouping_policy(self, field_index: int, *values: str) -> list[PolicyRule]:
        return self.remove_filtered_named_grouping_policy(
            DEFAULT_GROUPING_PTYPE, field_index, *values
        )

    def get_grouping_policy(self) -> list[PolicyRule]:
        return self.get_named_grouping_policy(DEFAULT_GROUPING_PTYPE)

    def get_filtered_grouping_policy(self, field_index: int, *values: str) -> list[PolicyRule]:
        return self.get_filtered_named_grouping_policy(DEFAULT_GROUPING_PTYPE, field_index, *values)

    def has_grouping_policy(self, *fields: str) -> bool:
        return self.has_named_grouping_policy(DEFAULT_GROUPING_PTYPE, *fields)

    # ------------------------------------------------------------------
    # Role helpers (relation "g")
    # ------------------------------------------------------------------

    def role_rule(self, user: str, role: str, domain: str | None = None) -> PolicyRule:
        """Build the g row assigning ``role`` to ``user`` (domain only for arity-3 g)."""
        model = self._require_ready()
        if self._relation_arity(model, DEFAULT_GROUPING_PTYPE) == 3:
            if domain is None:
                raise ShapeMismatch(DEFAULT_GROUPING_PTYPE, 3, 2)
            return PolicyRule(DEFAULT_GROUPING_PTYPE, (user, role, domain))
        return PolicyRule(DEFAULT_GROUPING_PTYPE, (user, role))

    def add_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        return self.add_grouping_policy(*self.role_rule(user, role, domain))

    def delete_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        return self.remove_grouping_policy(*self.role_rule(user, role, domain))

    def has_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        """True if ``role`` is reachable from ``user`` through g rows."""
        self._require_ready()
        return self._roles.has_relation(DEFAULT_GROUPING_PTYPE, user, role, domain)

    def has_relation(self, name: str, source: str, target: str, domain: str | None = None) -> bool:
        self._require_ready()
        return self._roles.has_relation(name, source, target, domain)

    def get_roles_for_user(self, user: str, domain: str | None = None) -> list[str]:
        self._require_ready()
        return self._roles.get_roles(DEFAULT_GROUPING_PTYPE, user, domain)

    def get_implicit_roles_for_user(self, user: str, domain: str | None = None) -> list[str]:
        self._require_ready()
        return self._roles.get_implicit_roles(DEFAULT_GROUPING_PTYPE, user, domain)

    def get_users_for_role(self, role: str, domain: str | None = None) -> list[str]:
        self._require_ready()
        return self._roles.get_users(DEFAULT_GROUPING_PTYPE, role, domain)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _validate_loaded(self, model: Model, rule: PolicyRule) -> PolicyRule:
        try:
            return self._make_rule(model, rule.ptype, rule.values)
        except (ShapeMismatch, UnknownField, TypeError) as e:
            raise PersistenceError(
                f"Stored rule does not fit the model: {rule.to_list()}",
                operation="load",
                adapter=type(self._adapter).__name__,
            ) from e

    @timed_operation("authz.load_policy")
    async def load_policy(self) -> None:
        """
        Replace the in-memory rules with everything the adapter holds.

        Raises:
            PersistenceError: If the adapter fails or a stored row does not
                fit the model. In-memory state is left unchanged.
        """
        model = self._require_ready()
        start = time.perf_counter()
        try:
            loaded = await self._adapter.load_all_rules()
            rules = [self._validate_loaded(model, rule) for rule in loaded]
        except PersistenceError:
            log_operation(contextual_logger, "load_policy", level=logging.ERROR, success=False)
            raise
        except Exception as e:
            log_operation(contextual_logger, "load_policy", level=logging.ERROR, success=False)
            raise PersistenceError(
                f"Failed to load rules: {e}",
                operation="load",
                adapter=type(self._adapter).__name__,
            ) from e

        store = RuleStore()
        store.replace_all(rules)
        roles = RoleResolver(model.role_defs)
        roles.rebuild(store)
        self._store, self._roles = store, roles
        log_operation(
            contextual_logger,
            "load_policy",
            duration_ms=(time.perf_counter() - start) * 1000,
            rule_count=len(store),
        )

    @timed_operation("authz.save_policy")
    async def save_policy(self) -> None:
        """
        Push every in-memory rule to the adapter.

        Raises:
            PersistenceError: If the adapter write fails. In-memory state is
                never modified by a save.
        """
        self._require_ready()
        start = time.perf_counter()
        rules = self._store.all()
        try:
            await self._adapter.save_all_rules(rules)
        except PersistenceError:
            log_operation(contextual_logger, "save_policy", level=logging.ERROR, success=False)
            raise
        except Exception as e:
            log_operation(contextual_logger, "save_policy", level=logging.ERROR, success=False)
            raise PersistenceError(
                f"Failed to save rules: {e}",
                operation="save",
                adapter=type(self._adapter).__name__,
            ) from e
        log_operation(
            contextual_logger,
            "save_policy",
            duration_ms=(time.perf_counter() - start) * 1000,
            rule_count=len(rules),
        )

    def clear_policy(self) -> None:
        """Drop every in-memory rule (the adapter is untouched)."""
        model = self._require_ready()
        self._store = RuleStore()
        self._roles = RoleResolver(model.role_defs)
