"""Construction and validation of the stores a run drives."""

from typing import List, Optional

from ..core.config import BenchConfig, StoreBackend
from ..core.errors import ConnectivityError
from ..utils.logging import LoggerMixin
from .base import AbstractStore
from .memory_store import MemoryStore
from .redis_store import RedisStore


READ_PING_TIMEOUT_SECONDS = 3.0


class StoreFactory(LoggerMixin):
    """Creates the write store and the validated set of read stores.

    The memory backend hands out one shared in-process store for every
    address, so reads observe the writes of the same run.
    """

    def __init__(self, config: BenchConfig):
        super().__init__()
        self.config = config
        self._memory_store: Optional[MemoryStore] = None

    def _shared_memory_store(self) -> MemoryStore:
        if self._memory_store is None:
            self._memory_store = MemoryStore()
        return self._memory_store

    def create_write_store(self) -> AbstractStore:
        if self.config.backend == StoreBackend.MEMORY.value:
            return self._shared_memory_store()
        return RedisStore(
            self.config.redis_addrs,
            password=self.config.password,
            db=self.config.db
        )

    def create_read_store(self, addr: str) -> AbstractStore:
        if self.config.backend == StoreBackend.MEMORY.value:
            return self._shared_memory_store()
        return RedisStore(
            [addr],
            password=self.config.password,
            db=self.config.db,
            connect_timeout=READ_PING_TIMEOUT_SECONDS
        )

    def create_read_stores(self) -> List[AbstractStore]:
        """Create one store per read address, keeping those that answer a ping.

        Stores already created are closed when a later address fails to build.
        """
        addrs = self.config.effective_read_addrs
        usable: List[AbstractStore] = []
        try:
            for addr in addrs:
                store = self.create_read_store(addr)
                if _is_live(store, self.logger):
                    usable.append(store)
        except Exception:
            _close_all(usable)
            raise
        return _require_usable(usable, len(addrs), self.logger)


def _is_live(store: AbstractStore, logger) -> bool:
    """Ping a store; close and report it when it is unusable."""
    try:
        store.ping()
    except Exception as e:
        logger.warning(f"Read endpoint {store.address} failed liveness check, excluding it: {e}")
        store.close()
        return False
    return True


def _close_all(stores: List[AbstractStore]) -> None:
    for store in stores:
        store.close()


def _require_usable(usable: List[AbstractStore], candidate_count: int, logger) -> List[AbstractStore]:
    if not usable:
        raise ConnectivityError("no usable read endpoint: every configured endpoint failed its ping")
    logger.info(f"Using {len(usable)}/{candidate_count} read endpoints")
    return usable


def validate_read_stores(candidates: List[AbstractStore], logger) -> List[AbstractStore]:
    """Drop endpoints failing a liveness ping.

    Raises:
        ConnectivityError: no endpoint is usable
    """
    usable = [store for store in candidates if _is_live(store, logger)]
    return _require_usable(usable, len(candidates), logger)
