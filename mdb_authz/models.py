"""
Built-in Models

Ready-made model definitions and helpers to resolve a model from a name,
a ``.conf`` path, or literal model text.
"""

import logging
from pathlib import Path

from .core.model import Model, parse_model
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Simple ACL model (no roles): a subject acts on an object directly
SIMPLE_ACL_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = r.sub == p.sub && r.obj == p.obj && r.act == p.act
"""

# RBAC model: permissions granted to a subject directly or through any
# role reachable via g rows
DEFAULT_RBAC_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[role_definition]
g = _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = (r.sub == p.sub || g(r.sub, p.sub)) && r.obj == p.obj && r.act == p.act
"""

# RBAC with domains (tenants):
# - g(user, role, domain) assigns roles inside one domain
# - g2(resource, parent) is a resource hierarchy shared by every domain
RBAC_WITH_DOMAINS_MODEL = """
[request_definition]
r = sub, obj, act, dom   # dom = domain or team

[policy_definition]
p = sub, obj, act, dom

[role_definition]
g = _, _, _       # g(user, role, domain)
g2 = _, _         # g2(resource, parent)

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = (r.sub == p.sub && r.obj == p.obj && r.act == p.act && r.dom == p.dom)
    || (g(r.sub, p.sub, r.dom) && (r.obj == p.obj || g2(r.obj, p.obj)) && r.act == p.act)
"""

# RBAC with explicit deny rows: p.eft is "allow" or "deny"; any matching
# deny wins
RBAC_WITH_DENY_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act, eft

[role_definition]
g = _, _

[policy_effect]
e = some(where (p.eft == allow)) && !some(where (p.eft == deny))

[matchers]
m = (r.sub == p.sub || g(r.sub, p.sub)) && r.obj == p.obj && r.act == p.act
"""

BUILTIN_MODELS: dict[str, str] = {
    "acl": SIMPLE_ACL_MODEL,
    "rbac": DEFAULT_RBAC_MODEL,
    "rbac_with_domains": RBAC_WITH_DOMAINS_MODEL,
    "rbac_with_deny": RBAC_WITH_DENY_MODEL,
}


def get_model_text(model_type: str = "rbac") -> str:
    """
    Get model text by built-in name or file path.

    Args:
        model_type: Built-in name ("acl", "rbac", "rbac_with_domains",
            "rbac_with_deny") or path to a model file

    Returns:
        Model definition text

    Raises:
        ConfigurationError: If the name is unknown and no such file exists
    """
    if model_type in BUILTIN_MODELS:
        return BUILTIN_MODELS[model_type]

    model_path = Path(model_type)
    if not model_path.is_file():
        raise ConfigurationError(
            f"Unknown model '{model_type}': not a built-in model or an existing file",
            config_key="model",
            config_value=model_type,
        )
    logger.debug(f"Reading model file: {model_path}")
    return model_path.read_text(encoding="utf-8")


def load_model(model: Model | str) -> Model:
    """
    Resolve a Model from a Model instance, literal model text, a built-in
    name, or a file path.
    """
    if isinstance(model, Model):
        return model
    if "[" in model:
        return parse_model(model)
    return parse_model(get_model_text(model))
