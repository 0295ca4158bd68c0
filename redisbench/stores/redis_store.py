"""Redis store adapter built on redis-py."""

from typing import List, Optional

import redis
from redis.cluster import ClusterNode, RedisCluster

from ..core.errors import ConfigError, KeyNotFoundError
from ..utils.logging import LoggerMixin
from .base import AbstractStore, Value


def parse_addr(addr: str, default_port: int = 6379) -> ClusterNode:
    host, sep, port = addr.rpartition(':')
    if not sep:
        return ClusterNode(addr, default_port)
    if not port.isdigit():
        raise ConfigError(f"invalid redis address: {addr}")
    return ClusterNode(host, int(port))


class RedisStore(LoggerMixin, AbstractStore):
    """Redis client shared by every worker thread.

    A single address yields a plain client; several addresses are treated as
    the startup nodes of a Redis Cluster.
    """

    def __init__(
        self,
        addrs: List[str],
        password: Optional[str] = None,
        db: int = 0,
        connect_timeout: Optional[float] = None
    ):
        super().__init__()
        if not addrs:
            raise ConfigError("RedisStore needs at least one address")
        self._addrs = list(addrs)

        nodes = [parse_addr(addr) for addr in self._addrs]
        if len(nodes) == 1:
            self._client = redis.Redis(
                host=nodes[0].host,
                port=nodes[0].port,
                password=password,
                db=db,
                socket_connect_timeout=connect_timeout
            )
        else:
            self._client = RedisCluster(
                startup_nodes=nodes,
                password=password,
                socket_connect_timeout=connect_timeout
            )

    @property
    def address(self) -> str:
        return ",".join(self._addrs)

    def set(self, key: str, value: Value) -> None:
        self._client.set(key, value)

    def get(self, key: str) -> bytes:
        value = self._client.get(key)
        if value is None:
            raise KeyNotFoundError(key)
        return value

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def ping(self) -> None:
        self._client.ping()

    def close(self) -> None:
        self.logger.debug(f"Closing redis client {self.address}")
        self._client.close()
