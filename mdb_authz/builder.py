"""
Policy Builder

Fluent helper for granting permissions to one subject inside one domain:

    await (
        PolicyBuilder.for_subject(enforcer, user, "Motion")
        .grant(Action.READ, "Employees")
        .grant(Action.DELETE, "Employees")
        .save()
    )

Actions may be enum members (rendered by ``.name``) or plain strings.
Subjects and resources may be strings or entities exposing an ``id``
attribute.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from .core.enforcer import Enforcer

logger = logging.getLogger(__name__)


def _action_name(action: Enum | str) -> str:
    return action.name if isinstance(action, Enum) else str(action)


def _ref(value: Any) -> str:
    if isinstance(value, str):
        return value
    value_id = getattr(value, "id", None)
    if value_id is None:
        raise TypeError(f"expected a string or an object with an 'id', got {type(value).__name__}")
    return str(value_id)


class PolicyBuilder:
    """Accumulates grants for a subject and domain on an Enforcer."""

    def __init__(self, enforcer: Enforcer, subject: str, domain: str):
        self._enforcer = enforcer
        self._subject = subject
        self._domain = domain

    @classmethod
    def for_subject(cls, enforcer: Enforcer, subject: Any, domain: str) -> PolicyBuilder:
        return cls(enforcer, _ref(subject), domain)

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def domain(self) -> str:
        return self._domain

    def grant(self, action: Enum | str, resource: Any) -> PolicyBuilder:
        """Add a ``(subject, resource, action, domain)`` permission row."""
        name, resource = _action_name(action), _ref(resource)
        if not self._enforcer.add_policy(self._subject, resource, name, self._domain):
            logger.debug(
                f"Grant already present: {self._subject} {name} {resource} in {self._domain}"
            )
        return self

    def grant_many(self, *grants: tuple[Enum | str, Any]) -> PolicyBuilder:
        for action, resource in grants:
            self.grant(action, resource)
        return self

    def verify(self, action: Enum | str, resource: Any) -> bool:
        return self._enforcer.enforce(
            self._subject, _ref(resource), _action_name(action), self._domain
        )

    async def save(self) -> PolicyBuilder:
        """Persist every in-memory rule of the enforcer."""
        await self._enforcer.save_policy()
        return self
