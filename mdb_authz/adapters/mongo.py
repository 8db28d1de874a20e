"""
MongoDB Adapter Implementation

Persists rule rows in a Motor collection, one document per rule. Full
saves replace the collection contents inside a transaction when a client
is available, so a failed save leaves the previous rule set in place.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from ..core.store import PolicyRule
from ..exceptions import PersistenceError
from .base import Adapter
from .documents import RuleDocument

logger = logging.getLogger(__name__)


class MongoAdapter(Adapter):
    """
    MongoDB implementation of the Adapter interface.

    Example:
        client = AsyncIOMotorClient(mongo_uri)
        adapter = MongoAdapter(client[db_name]["authz_policies"], client=client)
        enforcer = await Enforcer.create(RBAC_WITH_DOMAINS_MODEL, adapter)
    """

    supports_incremental = True

    def __init__(
        self,
        collection: Any,  # AsyncIOMotorCollection
        client: Any | None = None,  # AsyncIOMotorClient
        use_transactions: bool = True,
    ):
        """
        Initialize the MongoDB adapter.

        Args:
            collection: Motor collection holding rule documents
            client: Motor client used to open transaction sessions
            use_transactions: Replace the rule set inside a transaction
                (requires a replica set or sharded cluster)
        """
        self._collection = collection
        self._client = client
        self._use_transactions = use_transactions

    def _error(self, message: str, operation: str) -> PersistenceError:
        return PersistenceError(
            message,
            operation=operation,
            adapter=type(self).__name__,
            context={"collection": getattr(self._collection, "name", None)},
        )

    async def ensure_indexes(self) -> None:
        """Create the ptype index used by filtered loads and deletes."""
        try:
            await self._collection.create_index("ptype")
        except PyMongoError as e:
            raise self._error(f"Failed to create rule indexes: {e}", "index") from e

    async def load_all_rules(self) -> list[PolicyRule]:
        try:
            cursor = self._collection.find({}, projection={"_id": 0})
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.exception("Failed to read rule documents")
            raise self._error(f"Failed to load rules: {e}", "load") from e

        try:
            rules = [RuleDocument.model_validate(doc).to_rule() for doc in docs]
        except ValidationError as e:
            raise self._error(f"Malformed rule document: {e}", "load") from e

        logger.debug(f"Loaded {len(rules)} rule documents")
        return rules

    async def save_all_rules(self, rules: Sequence[PolicyRule]) -> None:
        try:
            docs = [RuleDocument.from_rule(rule).to_document() for rule in rules]
        except (ValueError, ValidationError) as e:
            raise self._error(f"Rule cannot be stored: {e}", "save") from e

        try:
            if self._use_transactions and self._client is not None:
                async with await self._client.start_session() as session:
                    async with session.start_transaction():
                        await self._replace(docs, session)
            else:
                await self._replace(docs, None)
        except PyMongoError as e:
            logger.exception("Failed to write rule documents")
            raise self._error(f"Failed to save rules: {e}", "save") from e

        logger.debug(f"Saved {len(docs)} rule documents")

    async def _replace(self, docs: list[dict[str, str]], session: Any) -> None:
        await self._collection.delete_many({}, session=session)
        if docs:
            await self._collection.insert_many(docs, session=session)

    async def add_rule(self, rule: PolicyRule) -> None:
        document = RuleDocument.from_rule(rule)
        try:
            # Upsert keeps the collection free of duplicate rows
            await self._collection.replace_one(
                document.to_filter(), document.to_document(), upsert=True
            )
        except PyMongoError as e:
            raise self._error(f"Failed to add rule: {e}", "add") from e

    async def remove_rule(self, rule: PolicyRule) -> bool:
        document = RuleDocument.from_rule(rule)
        try:
            result = await self._collection.delete_one(document.to_filter())
        except PyMongoError as e:
            raise self._error(f"Failed to remove rule: {e}", "remove") from e
        return result.deleted_count > 0
