"""
Unit tests for PolicyRule and RuleStore.
"""

from mdb_authz.core.store import PolicyRule, RuleStore


def p(*values):
    return PolicyRule.of("p", *values)


def g(*values):
    return PolicyRule.of("g", *values)


class TestPolicyRule:
    """Test rule value semantics."""

    def test_equality_is_by_ptype_and_values(self):
        assert p("alice", "doc1", "read") == PolicyRule("p", ("alice", "doc1", "read"))
        assert p("alice", "doc1", "read") != g("alice", "doc1", "read")

    def test_rule_unpacks_like_a_tuple(self):
        sub, obj, act = p("alice", "doc1", "read")
        assert (sub, obj, act) == ("alice", "doc1", "read")
        assert len(p("a", "b")) == 2
        assert p("a", "b")[1] == "b"

    def test_matches_filters(self):
        rule = p("alice", "doc1", "read", "Motion")
        assert rule.matches({})
        assert rule.matches({0: "alice", 3: "Motion"})
        assert not rule.matches({1: "doc2"})
        assert not rule.matches({4: "x"})

    def test_to_list(self):
        assert g("alice", "admin").to_list() == ["g", "alice", "admin"]


class TestRuleStore:
    """Test ordered-set behaviour of the store."""

    def test_add_is_idempotent(self):
        store = RuleStore()
        assert store.add(p("alice", "doc1", "read")) is True
        assert store.add(p("alice", "doc1", "read")) is False
        assert len(store) == 1

    def test_remove_missing_returns_false(self):
        store = RuleStore()
        assert store.remove(p("alice", "doc1", "read")) is False

    def test_add_then_remove_restores_prior_state(self):
        store = RuleStore()
        store.add(p("bob", "doc2", "write"))
        before = store.all()

        store.add(p("alice", "doc1", "read"))
        store.remove(p("alice", "doc1", "read"))

        assert store.all() == before

    def test_query_preserves_insertion_order(self):
        store = RuleStore()
        rules = [p("c", "o", "a"), p("a", "o", "a"), p("b", "o", "a")]
        store.add_many(rules)
        assert store.query("p") == rules
        assert store.rules("p") == rules

    def test_query_with_filters(self):
        store = RuleStore()
        store.add_many([p("alice", "doc1", "read"), p("alice", "doc2", "read"), p("bob", "doc1", "read")])

        assert store.query("p", {0: "alice"}) == [p("alice", "doc1", "read"), p("alice", "doc2", "read")]
        assert store.query("p", {1: "doc1", 0: "bob"}) == [p("bob", "doc1", "read")]
        assert store.query("g") == []

    def test_add_many_returns_only_inserted(self):
        store = RuleStore()
        store.add(p("alice", "doc1", "read"))
        inserted = store.add_many([p("alice", "doc1", "read"), p("bob", "doc1", "read")])
        assert inserted == [p("bob", "doc1", "read")]

    def test_remove_filtered(self):
        store = RuleStore()
        store.add_many([g("alice", "admin"), g("bob", "admin"), g("alice", "dev")])

        removed = store.remove_filtered("g", {1: "admin"})

        assert removed == [g("alice", "admin"), g("bob", "admin")]
        assert store.rules("g") == [g("alice", "dev")]

    def test_tables_are_separated_by_ptype(self):
        store = RuleStore()
        store.add(p("alice", "admin"))
        store.add(g("alice", "admin"))
        assert store.ptypes() == ["p", "g"]
        assert store.has(g("alice", "admin"))
        assert g("alice", "admin") in store
        assert not store.has(PolicyRule.of("g2", "alice", "admin"))

    def test_replace_all_and_clear(self):
        store = RuleStore()
        store.add(p("old", "o", "a"))
        store.replace_all([p("new", "o", "a"), g("new", "admin"), p("new", "o", "a")])
        assert store.all() == [p("new", "o", "a"), g("new", "admin")]

        store.clear()
        assert len(store) == 0
        assert store.all() == []
