"""In-process store used for dry runs and tests."""

import threading
from typing import Dict, Optional

from ..core.errors import ConnectivityError, KeyNotFoundError
from .base import AbstractStore, Value


class MemoryStore(AbstractStore):
    """Thread-safe dict-backed store."""

    def __init__(self, name: str = "memory", reachable: bool = True):
        self._name = name
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.reachable = reachable
        self.closed = False

    @property
    def address(self) -> str:
        return self._name

    def set(self, key: str, value: Value) -> None:
        if isinstance(value, str):
            value = value.encode('utf-8')
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> bytes:
        with self._lock:
            value: Optional[bytes] = self._data.get(key)
        if value is None:
            raise KeyNotFoundError(key)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def ping(self) -> None:
        if not self.reachable:
            raise ConnectivityError(f"{self._name} is unreachable")

    def close(self) -> None:
        self.closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data
