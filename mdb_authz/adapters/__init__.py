"""
Persistence adapters.

An Adapter loads and saves the complete rule set; incremental adapters
can also write single rows.
"""

from .base import Adapter, MemoryAdapter
from .documents import RuleDocument
from .mongo import MongoAdapter

__all__ = [
    "Adapter",
    "MemoryAdapter",
    "MongoAdapter",
    "RuleDocument",
]
