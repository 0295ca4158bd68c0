"""Abstract key-value store interface driven by the load driver."""

from abc import ABC, abstractmethod
from typing import Union


Value = Union[str, bytes]


class AbstractStore(ABC):
    """Key-value store interface.

    Implementations must be safe for concurrent use by many worker threads.
    """

    @abstractmethod
    def set(self, key: str, value: Value) -> None:
        """Store a value under key."""
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Fetch the value stored under key.

        Raises:
            KeyNotFoundError: the key does not exist
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; removing a missing key is not an error."""
        pass

    @abstractmethod
    def ping(self) -> None:
        """Liveness check, raises when the endpoint is unusable."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release client resources."""
        pass

    @property
    @abstractmethod
    def address(self) -> str:
        """Endpoint description for logs."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
