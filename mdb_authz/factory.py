"""
Enforcer Factory

Builds a MongoDB-backed Enforcer (and optionally a caching provider) from
an EnforcerConfig.

This module is part of MDB_AUTHZ.
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient

from .adapters.mongo import MongoAdapter
from .config import EnforcerConfig
from .core.enforcer import Enforcer
from .models import load_model
from .provider import EnforcerProvider

logger = logging.getLogger(__name__)


async def create_mongo_enforcer(
    config: EnforcerConfig | None = None,
    client: AsyncIOMotorClient | None = None,
) -> Enforcer:
    """
    Create an Enforcer whose rules live in a MongoDB collection.

    Args:
        config: Configuration (defaults to one read from the environment)
        client: Existing Motor client to reuse; a new one is created from
            ``config.mongo_uri`` otherwise

    Returns:
        Enforcer with its policy loaded

    Raises:
        ConfigurationError: If the configuration is invalid
        ModelSyntaxError: If the configured model does not parse
        PersistenceError: If the initial load fails
    """
    config = config or EnforcerConfig()
    config.validate()

    # Parse before connecting so a bad model never opens a client
    model = load_model(config.model)

    if client is None:
        logger.debug(f"Creating Motor client for URI: {config.mongo_uri[:50]}...")
        client = AsyncIOMotorClient(config.mongo_uri, appname="MDB_AUTHZ")

    collection = client[config.db_name][config.policies_collection]
    adapter = MongoAdapter(collection, client=client, use_transactions=config.use_transactions)
    await adapter.ensure_indexes()

    enforcer = await Enforcer.create(model, adapter)
    logger.info(
        f"Enforcer created with model '{config.model}' and "
        f"policies collection '{config.db_name}.{config.policies_collection}'"
    )
    return enforcer


async def create_provider(
    config: EnforcerConfig | None = None,
    client: AsyncIOMotorClient | None = None,
) -> EnforcerProvider:
    """Create a caching EnforcerProvider over a MongoDB-backed Enforcer."""
    config = config or EnforcerConfig()
    enforcer = await create_mongo_enforcer(config, client=client)
    return EnforcerProvider(enforcer, cache_ttl=config.cache_ttl, auto_save=config.auto_save)
