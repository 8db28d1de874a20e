"""
Unit tests for the fluent PolicyBuilder.
"""

from dataclasses import dataclass
from enum import Enum

import pytest

from mdb_authz.builder import PolicyBuilder
from mdb_authz.core.store import PolicyRule


class Action(Enum):
    READ = 1
    DELETE = 2


@dataclass
class Employee:
    id: int
    name: str


class TestPolicyBuilder:
    """Test grant/verify sugar over an Enforcer."""

    def test_grant_adds_domain_rows(self, domain_enforcer):
        builder = PolicyBuilder.for_subject(domain_enforcer, "alice", "Motion")

        result = builder.grant(Action.READ, "Employees").grant("export", "Reports")

        assert result is builder
        assert domain_enforcer.get_policy() == [
            PolicyRule.of("p", "alice", "Employees", "READ", "Motion"),
            PolicyRule.of("p", "alice", "Reports", "export", "Motion"),
        ]

    def test_grant_many(self, domain_enforcer):
        builder = PolicyBuilder.for_subject(domain_enforcer, "alice", "Motion")
        builder.grant_many((Action.READ, "Employees"), (Action.DELETE, "Employees"))

        assert builder.verify(Action.READ, "Employees") is True
        assert builder.verify(Action.DELETE, "Employees") is True
        assert builder.verify("export", "Employees") is False

    def test_entities_are_stringified_by_id(self, domain_enforcer):
        manager = Employee(id=7, name="Ada")
        report = Employee(id=42, name="Bob")

        builder = PolicyBuilder.for_subject(domain_enforcer, manager, "Motion")
        builder.grant(Action.READ, report)

        assert builder.subject == "7"
        assert builder.domain == "Motion"
        assert domain_enforcer.has_policy("7", "42", "READ", "Motion")
        assert builder.verify(Action.READ, report) is True

    def test_subject_without_id_is_rejected(self, domain_enforcer):
        with pytest.raises(TypeError):
            PolicyBuilder.for_subject(domain_enforcer, object(), "Motion")

    def test_grants_do_not_leak_across_domains(self, domain_enforcer):
        PolicyBuilder.for_subject(domain_enforcer, "alice", "Motion").grant(Action.READ, "alice")

        other = PolicyBuilder.for_subject(domain_enforcer, "alice", "OtherCo")
        assert other.verify(Action.READ, "alice") is False

    @pytest.mark.asyncio
    async def test_save_persists_rules(self, domain_enforcer, memory_adapter):
        builder = PolicyBuilder.for_subject(domain_enforcer, "alice", "Motion")

        await builder.grant(Action.READ, "Employees").save()

        assert memory_adapter.rules == [PolicyRule.of("p", "alice", "Employees", "READ", "Motion")]
