"""
Unit tests for model parsing and the built-in models.
"""

import pytest

from mdb_authz.core.effect import ALLOW_OVERRIDE
from mdb_authz.core.model import Model, load_model_from_file, parse_model
from mdb_authz.exceptions import ConfigurationError, ModelSyntaxError, UnknownField
from mdb_authz.models import BUILTIN_MODELS, get_model_text, load_model

MINIMAL_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = r.sub == p.sub && r.obj == p.obj && r.act == p.act
"""


def _without(section: str) -> str:
    """MINIMAL_MODEL with one section (header and assignment) removed."""
    lines = MINIMAL_MODEL.strip().splitlines()
    index = lines.index(f"[{section}]")
    return "\n".join(lines[:index] + lines[index + 2 :])


class TestParseModel:
    """Test parsing of valid model text."""

    def test_parses_definitions(self):
        model = parse_model(MINIMAL_MODEL)

        assert isinstance(model, Model)
        assert model.request_def == ("sub", "obj", "act")
        assert model.policy_def == ("sub", "obj", "act")
        assert dict(model.role_defs) == {}
        assert model.effect_expr == ALLOW_OVERRIDE
        assert model.effect_index is None

    def test_domain_model(self, domain_model_text):
        model = parse_model(domain_model_text)

        assert model.request_def == ("sub", "obj", "act", "dom")
        assert model.policy_def == ("sub", "obj", "act", "dom")
        assert dict(model.role_defs) == {"g": 3, "g2": 2}
        assert model.relation_arity("g") == 3
        assert model.relation_arity("g3") is None
        assert model.matcher.relations == frozenset({"g", "g2"})

    def test_multiline_matcher_is_joined(self, domain_model_text):
        model = parse_model(domain_model_text)
        assert "\n" not in model.matcher_expr
        assert model.matcher_expr.startswith("(r.sub == p.sub")
        assert "|| (g(r.sub, p.sub, r.dom)" in model.matcher_expr

    def test_backslash_continuation(self):
        text = MINIMAL_MODEL.replace(
            "m = r.sub == p.sub && r.obj == p.obj && r.act == p.act",
            "m = r.sub == p.sub && \\\n    r.obj == p.obj && r.act == p.act",
        )
        model = parse_model(text)
        assert model.matcher_expr.split() == "r.sub == p.sub && r.obj == p.obj && r.act == p.act".split()

    def test_comments_are_ignored(self):
        text = "# leading comment\n" + MINIMAL_MODEL.replace(
            "r = sub, obj, act", "r = sub, obj, act  # who, what, how"
        )
        assert parse_model(text).request_def == ("sub", "obj", "act")

    def test_comment_without_leading_space(self):
        text = MINIMAL_MODEL.replace("r = sub, obj, act", "r = sub, obj, act# who, what, how")
        assert parse_model(text).request_def == ("sub", "obj", "act")

    def test_comment_after_continuation_line(self):
        text = MINIMAL_MODEL.replace(
            "p = sub, obj, act", "p = sub, \\\n    obj, act#trailing"
        )
        assert parse_model(text).policy_def == ("sub", "obj", "act")

    def test_eft_field_sets_effect_index(self, deny_model_text):
        model = parse_model(deny_model_text)
        assert model.policy_def == ("sub", "obj", "act", "eft")
        assert model.effect_index == 3

    def test_model_is_immutable(self):
        model = parse_model(MINIMAL_MODEL)
        with pytest.raises(AttributeError):
            model.request_def = ("x",)
        with pytest.raises(TypeError):
            model.role_defs["g"] = 2

    def test_load_model_from_file(self, tmp_path):
        path = tmp_path / "acl.conf"
        path.write_text(MINIMAL_MODEL, encoding="utf-8")
        assert load_model_from_file(path).policy_def == ("sub", "obj", "act")


class TestParseModelErrors:
    """Test that malformed model text is rejected at load time."""

    @pytest.mark.parametrize(
        "section", ["request_definition", "policy_definition", "policy_effect", "matchers"]
    )
    def test_missing_required_section(self, section):
        with pytest.raises(ModelSyntaxError) as exc_info:
            parse_model(_without(section))
        assert exc_info.value.section == section

    def test_role_definition_is_optional(self):
        assert dict(parse_model(MINIMAL_MODEL).role_defs) == {}

    def test_unknown_request_field(self):
        text = MINIMAL_MODEL.replace("r.act == p.act", "r.tenant == p.act")
        with pytest.raises(UnknownField) as exc_info:
            parse_model(text)
        assert exc_info.value.field == "r.tenant"

    def test_unknown_policy_field(self):
        text = MINIMAL_MODEL.replace("r.act == p.act", "r.act == p.action")
        with pytest.raises(UnknownField):
            parse_model(text)

    def test_unknown_function(self):
        text = MINIMAL_MODEL.replace("r.act == p.act", "g(r.sub, p.sub)")
        with pytest.raises(ModelSyntaxError) as exc_info:
            parse_model(text)
        assert exc_info.value.section == "matchers"

    def test_unbalanced_parenthesis(self):
        text = MINIMAL_MODEL.replace("m = r.sub", "m = (r.sub")
        with pytest.raises(ModelSyntaxError):
            parse_model(text)

    def test_unsupported_effect(self):
        text = MINIMAL_MODEL.replace("some(where (p.eft == allow))", "priority(p.eft) || deny")
        with pytest.raises(ModelSyntaxError) as exc_info:
            parse_model(text)
        assert exc_info.value.section == "policy_effect"

    def test_too_many_fields(self):
        text = MINIMAL_MODEL.replace("p = sub, obj, act", "p = a, b, c, d, e, f, sub")
        with pytest.raises(ModelSyntaxError):
            parse_model(text)

    def test_duplicate_field(self):
        text = MINIMAL_MODEL.replace("r = sub, obj, act", "r = sub, obj, sub")
        with pytest.raises(ModelSyntaxError):
            parse_model(text)

    def test_bad_relation_arity(self):
        text = MINIMAL_MODEL + "\n[role_definition]\ng = _, _, _, _\n"
        with pytest.raises(ModelSyntaxError) as exc_info:
            parse_model(text)
        assert exc_info.value.section == "role_definition"

    def test_relation_placeholders_must_be_underscores(self):
        text = MINIMAL_MODEL + "\n[role_definition]\ng = user, role\n"
        with pytest.raises(ModelSyntaxError):
            parse_model(text)

    def test_extra_assignment_in_section(self):
        text = MINIMAL_MODEL.replace("r = sub, obj, act", "r = sub, obj, act\nr2 = sub")
        with pytest.raises(ModelSyntaxError):
            parse_model(text)

    def test_duplicate_section(self):
        with pytest.raises(ModelSyntaxError):
            parse_model(MINIMAL_MODEL + "\n[matchers]\nm = r.sub == p.sub\n")

    def test_text_before_first_section(self):
        with pytest.raises(ModelSyntaxError):
            parse_model("r = sub\n" + MINIMAL_MODEL)


class TestBuiltinModels:
    """Test the built-in model texts and name resolution."""

    @pytest.mark.parametrize("name", sorted(BUILTIN_MODELS))
    def test_builtin_models_parse(self, name):
        model = load_model(name)
        assert model.request_def

    def test_get_model_text_by_name(self):
        assert get_model_text("acl") == BUILTIN_MODELS["acl"]
        assert get_model_text() == BUILTIN_MODELS["rbac"]

    def test_get_model_text_from_file(self, tmp_path):
        path = tmp_path / "model.conf"
        path.write_text(MINIMAL_MODEL, encoding="utf-8")
        assert get_model_text(str(path)) == MINIMAL_MODEL

    def test_unknown_model_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_model_text("no_such_model")
        assert exc_info.value.config_key == "model"

    def test_load_model_accepts_text_and_instances(self):
        model = load_model(MINIMAL_MODEL)
        assert load_model(model) is model
