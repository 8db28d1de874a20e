"""
Configuration management for MDB_AUTHZ.

Environment-backed settings for building a MongoDB-backed enforcer. The
Enforcer itself never reads configuration; only the factory does.
"""

import os

from .constants import AUTHZ_CACHE_TTL, DEFAULT_POLICIES_COLLECTION
from .exceptions import ConfigurationError
from .models import BUILTIN_MODELS


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


class EnforcerConfig:
    """
    Enforcer configuration.

    Example:
        # Using environment variables
        config = EnforcerConfig()
        enforcer = await create_mongo_enforcer(config)

        # Or using direct parameters
        config = EnforcerConfig(
            model="rbac_with_domains",
            mongo_uri="mongodb://localhost:27017",
            db_name="my_db",
        )
    """

    def __init__(
        self,
        model: str | None = None,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        policies_collection: str | None = None,
        cache_ttl: int | None = None,
        use_transactions: bool | None = None,
        auto_save: bool | None = None,
    ):
        """
        Initialize configuration.

        Args:
            model: Built-in model name or model file path (defaults to AUTHZ_MODEL or "rbac")
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: Database name (defaults to DB_NAME env var)
            policies_collection: Rule collection (defaults to AUTHZ_POLICIES_COLLECTION)
            cache_ttl: Provider decision cache TTL in seconds (defaults to 300)
            use_transactions: Wrap full saves in a transaction (defaults to true)
            auto_save: Persist provider mutations immediately (defaults to false)
        """
        self.model = model or os.getenv("AUTHZ_MODEL", "rbac")
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", "")
        self.policies_collection = policies_collection or os.getenv(
            "AUTHZ_POLICIES_COLLECTION", DEFAULT_POLICIES_COLLECTION
        )
        if cache_ttl is None:
            raw_ttl = os.getenv("AUTHZ_CACHE_TTL", str(AUTHZ_CACHE_TTL))
            try:
                cache_ttl = int(raw_ttl)
            except ValueError as e:
                raise ConfigurationError(
                    f"AUTHZ_CACHE_TTL must be an integer, got {raw_ttl!r}",
                    config_key="AUTHZ_CACHE_TTL",
                    config_value=raw_ttl,
                ) from e
        self.cache_ttl = cache_ttl
        self.use_transactions = (
            _env_flag("AUTHZ_USE_TRANSACTIONS", True) if use_transactions is None else use_transactions
        )
        self.auto_save = _env_flag("AUTHZ_AUTO_SAVE", False) if auto_save is None else auto_save

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if not self.db_name:
            raise ConfigurationError(
                "db_name is required (set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if not self.policies_collection:
            raise ConfigurationError(
                "policies_collection must not be empty", config_key="policies_collection"
            )

        if self.cache_ttl < 0:
            raise ConfigurationError(
                f"cache_ttl must be >= 0, got {self.cache_ttl}",
                config_key="cache_ttl",
                config_value=self.cache_ttl,
            )

        if self.model not in BUILTIN_MODELS and not os.path.isfile(self.model):
            raise ConfigurationError(
                f"model must be one of {sorted(BUILTIN_MODELS)} or an existing file",
                config_key="model",
                config_value=self.model,
            )
