"""Key-value store adapters."""

from .base import AbstractStore
from .memory_store import MemoryStore
from .redis_store import RedisStore
from .factory import StoreFactory, validate_read_stores

__all__ = [
    "AbstractStore",
    "MemoryStore",
    "RedisStore",
    "StoreFactory",
    "validate_read_stores",
]
