"""
MDB_AUTHZ - MongoDB Authorization Engine

Model-driven access control (ACL, RBAC, RBAC with domains) with rules
persisted in MongoDB.
"""

# Persistence
from .adapters import Adapter, MemoryAdapter, MongoAdapter
# Convenience layers
from .builder import PolicyBuilder
from .config import EnforcerConfig
# Core engine
from .core import Enforcer, EnforcerState, Model, PolicyRule, parse_model
# Errors
from .exceptions import (AuthzError, ConfigurationError, ModelSyntaxError, NotInitialized,
                         PersistenceError, ShapeMismatch, UnknownField)
from .factory import create_mongo_enforcer, create_provider
from .models import (BUILTIN_MODELS, DEFAULT_RBAC_MODEL, RBAC_WITH_DENY_MODEL,
                     RBAC_WITH_DOMAINS_MODEL, SIMPLE_ACL_MODEL, load_model)
from .provider import AuthorizationProvider, EnforcerProvider

__version__ = "0.1.0"

__all__ = [
    # Core
    "Enforcer",
    "EnforcerState",
    "Model",
    "PolicyRule",
    "parse_model",
    "load_model",
    # Models
    "BUILTIN_MODELS",
    "SIMPLE_ACL_MODEL",
    "DEFAULT_RBAC_MODEL",
    "RBAC_WITH_DOMAINS_MODEL",
    "RBAC_WITH_DENY_MODEL",
    # Adapters
    "Adapter",
    "MemoryAdapter",
    "MongoAdapter",
    # Providers
    "AuthorizationProvider",
    "EnforcerProvider",
    "PolicyBuilder",
    # Configuration
    "EnforcerConfig",
    "create_mongo_enforcer",
    "create_provider",
    # Errors
    "AuthzError",
    "ModelSyntaxError",
    "ShapeMismatch",
    "UnknownField",
    "NotInitialized",
    "PersistenceError",
    "ConfigurationError",
]
