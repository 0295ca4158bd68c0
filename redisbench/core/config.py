"""Configuration management for redisbench."""

import os
import yaml
from typing import Dict, List, Optional, Any, Union
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum

from .errors import ConfigError


class StoreBackend(str, Enum):
    """Store backends the load driver can target."""
    REDIS = "redis"
    MEMORY = "memory"


def _split_addrs(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [addr.strip() for addr in value.split(',') if addr.strip()]
    return value


class BenchConfig(BaseModel):
    """Benchmark configuration."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    # Store settings
    redis_addrs: List[str] = Field(alias="redisAddrs", default_factory=lambda: ["127.0.0.1:6379"])
    read_addrs: List[str] = Field(alias="readAddrs", default_factory=list,
                                  description="Read endpoints, defaults to redis_addrs")
    password: Optional[str] = Field(default=None)
    db: int = Field(default=0, ge=0)
    backend: StoreBackend = Field(default=StoreBackend.REDIS)

    # Load settings
    client_num: int = Field(alias="clientNum", default=500, ge=1, description="Concurrent workers")
    test_times: int = Field(alias="testTimes", default=1000, ge=1, description="Operations per worker")
    data_size: int = Field(alias="dataSize", default=1000, ge=1, description="Payload size in bytes")
    wait_time: float = Field(alias="waitTime", default=0, ge=0, description="Seconds between write and read")
    key_prefix: str = Field(alias="keyPrefix", default="benchmark-set", min_length=1)

    # Multi-node settings
    peers: List[str] = Field(alias="multiAddrs", default_factory=list, description="Ordered peer set")
    node_addr: Optional[str] = Field(alias="nodeAddr", default=None, description="This node's peer address")
    rpc_bind_host: str = Field(alias="rpcBindHost", default="0.0.0.0")
    settle_timeout: float = Field(alias="settleTimeout", default=0, ge=0,
                                  description="Master settlement deadline in seconds, 0 waits forever")
    master_wait_timeout: float = Field(alias="masterWaitTimeout", default=30, ge=0)

    # Output settings
    sample_dir: str = Field(alias="sampleDir", default="temp")
    cleanup_enabled: bool = Field(alias="cleanupEnabled", default=True)

    # Logging settings
    log_level: str = Field(alias="logLevel", default="INFO")
    log_file: Optional[str] = Field(alias="logFile", default=None)

    @field_validator('redis_addrs', 'read_addrs', 'peers', mode='before')
    @classmethod
    def parse_addr_list(cls, v):
        """Accept comma separated address strings."""
        return _split_addrs(v)

    @field_validator('redis_addrs')
    @classmethod
    def require_store_addr(cls, v):
        if not v:
            raise ValueError("at least one store address is required")
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def effective_read_addrs(self) -> List[str]:
        return self.read_addrs or self.redis_addrs

    @property
    def is_multi_node(self) -> bool:
        return bool(self.peers)

    @property
    def total_operations(self) -> int:
        return self.client_num * self.test_times

    @property
    def total_bytes(self) -> int:
        return self.client_num * self.test_times * self.data_size

    def validate_topology(self) -> None:
        """Check the peer set is usable for a multi-node run."""
        if not self.peers:
            return
        if len(set(self.peers)) != len(self.peers):
            raise ConfigError(f"duplicate addresses in peer set: {self.peers}")
        if not self.node_addr:
            raise ConfigError("node_addr is required when peers are configured")
        if self.node_addr not in self.peers:
            raise ConfigError(f"node_addr {self.node_addr} is not in peer set {self.peers}")
        for addr in self.peers:
            _, _, port = addr.rpartition(':')
            if not port.isdigit():
                raise ConfigError(f"peer address must be host:port, got {addr}")


class ConfigLoader:
    """Configuration loader utility."""

    @staticmethod
    def load(file_path: Union[str, Path]) -> BenchConfig:
        """Load benchmark configuration from YAML file."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load config {file_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{file_path}: expected a mapping at the top level")
        return BenchConfig(**data)

    @staticmethod
    def save(config: BenchConfig, file_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        with open(file_path, 'w', encoding='utf-8') as f:
            data = config.model_dump(mode='json', by_alias=True, exclude_none=True)
            yaml.safe_dump(data, f, default_flow_style=False, indent=2)


ENV_PREFIX = "REDISBENCH_"

_ENV_FIELDS: Dict[str, str] = {
    'REDIS_ADDRS': 'redis_addrs',
    'READ_ADDRS': 'read_addrs',
    'PASSWORD': 'password',
    'PEERS': 'peers',
    'NODE_ADDR': 'node_addr',
    'SETTLE_TIMEOUT': 'settle_timeout',
    'SAMPLE_DIR': 'sample_dir',
    'LOG_LEVEL': 'log_level',
    'LOG_FILE': 'log_file',
}


def load_env_config() -> BenchConfig:
    """Load configuration from REDISBENCH_* environment variables.

    Only variables that are set count as explicitly provided, so the result
    can be layered over a file config with :func:`merge_configs`.
    """
    values = {}
    for suffix, field_name in _ENV_FIELDS.items():
        raw = os.getenv(f"{ENV_PREFIX}{suffix}")
        if raw is not None:
            values[field_name] = raw
    return BenchConfig(**values)


def merge_configs(base: BenchConfig, override: BenchConfig) -> BenchConfig:
    """Merge two configurations, with explicitly set override fields taking precedence."""
    base_dict = base.model_dump()
    base_dict.update(override.model_dump(exclude_unset=True))
    return BenchConfig(**base_dict)
