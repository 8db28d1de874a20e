"""
Authorization Provider Interface

Defines the pluggable async Authorization (AuthZ) interface and its
implementation on top of an Enforcer.

This module is part of MDB_AUTHZ.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol

from .constants import AUTHZ_CACHE_TTL, DOMAIN_FIELD, MAX_CACHE_SIZE
from .core.enforcer import Enforcer
from .core.store import PolicyRule
from .exceptions import ShapeMismatch
from .observability import clear_enforcer_context, set_enforcer_context
from .observability import get_logger as get_contextual_logger

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class AuthorizationProvider(Protocol):
    """
    Defines the "contract" for any pluggable authorization provider.
    """

    async def check(self, *request: str) -> bool:
        """
        Checks if a request (subject, object, action[, domain]) is allowed.
        """
        ...


class EnforcerProvider:
    """
    Implements the AuthorizationProvider interface with an Enforcer.

    Decisions are cached per request for ``cache_ttl`` seconds. Every
    mutation made through the provider clears the cache; mutations made on
    the enforcer directly must be followed by ``clear_cache``.

    ``enforce`` never suspends, so on a single event loop a check cannot
    interleave with a mutation made through this provider.
    """

    def __init__(
        self,
        enforcer: Enforcer,
        cache_ttl: int = AUTHZ_CACHE_TTL,
        auto_save: bool = False,
    ):
        """
        Initializes the provider with a ready Enforcer.

        Args:
            enforcer: Enforcer with model and adapter attached
            cache_ttl: Decision cache TTL in seconds (0 disables caching)
            auto_save: Persist single-row mutations through an incremental adapter
        """
        self._enforcer = enforcer
        self._cache_ttl = cache_ttl
        self._auto_save = auto_save
        # Cache for authorization results: {request: (result, timestamp)}
        self._cache: dict[tuple[str, ...], tuple[bool, float]] = {}
        self._cache_lock = asyncio.Lock()
        adapter = enforcer.adapter
        if auto_save and adapter is not None and not adapter.supports_incremental:
            logger.warning(
                f"auto_save requested but {type(adapter).__name__} cannot write single rules; "
                "mutations stay in memory until save_policy"
            )
        logger.info("EnforcerProvider initialized with decision caching.")

    @property
    def enforcer(self) -> Enforcer:
        return self._enforcer

    def _request_domain(self, request: tuple[str, ...]) -> str | None:
        model = self._enforcer.model
        if model is None or DOMAIN_FIELD not in model.request_def:
            return None
        index = model.request_def.index(DOMAIN_FIELD)
        return request[index] if index < len(request) else None

    async def check(self, *request: str) -> bool:
        """
        Performs the authorization check. Malformed requests are logged and
        denied.
        """
        cache_key = tuple(request)
        current_time = time.time()

        if self._cache_ttl > 0:
            async with self._cache_lock:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    cached_result, cached_time = cached
                    if current_time - cached_time < self._cache_ttl:
                        logger.debug(f"Authorization cache HIT for {cache_key}")
                        return cached_result
                    del self._cache[cache_key]

        set_enforcer_context(
            domain=self._request_domain(request), subject=request[0] if request else None
        )
        try:
            result = self._enforcer.enforce(*request)
        except ShapeMismatch:
            contextual_logger.warning(
                f"Authorization check rejected malformed request {cache_key}", exc_info=True
            )
            return False
        finally:
            clear_enforcer_context()

        if self._cache_ttl > 0:
            async with self._cache_lock:
                self._cache[cache_key] = (result, current_time)
                if len(self._cache) > MAX_CACHE_SIZE:
                    # Remove oldest entry (simple FIFO eviction)
                    oldest_key = min(self._cache.items(), key=lambda item: item[1][1])[0]
                    del self._cache[oldest_key]

        return result

    async def clear_cache(self) -> None:
        """
        Clears the authorization cache. Useful when policies are updated.
        """
        async with self._cache_lock:
            self._cache.clear()
        logger.debug("Authorization cache cleared.")

    async def _persist(self, rule: PolicyRule, added: bool) -> None:
        adapter = self._enforcer.adapter
        if not self._auto_save or adapter is None or not adapter.supports_incremental:
            return
        if added:
            await adapter.add_rule(rule)
        else:
            await adapter.remove_rule(rule)

    async def add_policy(self, *params: str) -> bool:
        """Adds a permission row, clearing the cache when it is new."""
        result = self._enforcer.add_policy(*params)
        if result:
            await self.clear_cache()
            await self._persist(PolicyRule("p", tuple(params)), added=True)
        return result

    async def remove_policy(self, *params: str) -> bool:
        result = self._enforcer.remove_policy(*params)
        if result:
            await self.clear_cache()
            await self._persist(PolicyRule("p", tuple(params)), added=False)
        return result

    async def add_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        result = self._enforcer.add_role_for_user(user, role, domain)
        if result:
            await self.clear_cache()
            await self._persist(self._enforcer.role_rule(user, role, domain), added=True)
        return result

    async def remove_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        result = self._enforcer.delete_role_for_user(user, role, domain)
        if result:
            await self.clear_cache()
            await self._persist(self._enforcer.role_rule(user, role, domain), added=False)
        return result

    async def has_policy(self, *params: str) -> bool:
        return self._enforcer.has_policy(*params)

    async def has_role_for_user(self, user: str, role: str, domain: str | None = None) -> bool:
        return self._enforcer.has_role_for_user(user, role, domain)

    async def save_policy(self) -> None:
        await self._enforcer.save_policy()

    async def load_policy(self) -> None:
        """Reload rules from the adapter and drop cached decisions."""
        await self._enforcer.load_policy()
        await self.clear_cache()
