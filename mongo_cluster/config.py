from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from mongo_cluster.exceptions import ConfigurationError
from mongo_cluster.models.cluster import ClusterOptions


class Settings(BaseSettings):
    """Application configuration"""

    # Application
    app_name: str = "mongo-cluster"
    app_version: str = "0.1.0"
    debug: bool = False

    # MongoDB binaries
    mongodb_host: str = "127.0.0.1"
    mongod_binary: str = "mongod"
    mongos_binary: str = "mongos"

    # Cluster defaults
    default_port: int = 26000
    default_shard_count: int = 1
    default_config_server_count: int = 1
    default_repl_member_count: int = 3
    default_replica_set_name: str = "test"
    data_dir: str = "./data"
    log_dir: str = "./logs"

    # Connections
    server_selection_timeout_ms: int = 1000
    connect_timeout_ms: int = 1000

    # Readiness and election polling
    probe_interval_seconds: float = 1.0
    ready_timeout_seconds: Optional[float] = None
    primary_timeout_seconds: Optional[float] = None
    fail_on_node_exit: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "MONGO_CLUSTER_"
        case_sensitive = False


# Global settings instance
settings = Settings()


def load_cluster_options(
    port: Optional[int] = None,
    sharded: bool = False,
    shard_count: Optional[int] = None,
    config_server_count: Optional[int] = None,
    replicated: bool = False,
    repl_member_count: Optional[int] = None,
    replica_set_name: Optional[str] = None,
    data_dir: Optional[str] = None,
    log_dir: Optional[str] = None,
    settings: Settings = settings,
) -> ClusterOptions:
    """
    Build ClusterOptions from explicit overrides and settings defaults

    Counts only apply to the feature that enables them, so passing one
    without its feature flag is rejected rather than ignored.

    Raises:
        ConfigurationError: If options conflict or fail validation
    """
    if not sharded:
        if shard_count is not None:
            raise ConfigurationError("--shard-count requires --sharded")
        if config_server_count is not None:
            raise ConfigurationError("--config-server-count requires --sharded")
    if not replicated:
        if repl_member_count is not None:
            raise ConfigurationError("--repl-member-count requires --replicated")
        if replica_set_name is not None:
            raise ConfigurationError("--repl-set-name requires --replicated")

    try:
        return ClusterOptions(
            port=settings.default_port if port is None else port,
            sharded=sharded,
            shard_count=settings.default_shard_count if shard_count is None else shard_count,
            config_server_count=(
                settings.default_config_server_count
                if config_server_count is None else config_server_count
            ),
            replicated=replicated,
            repl_member_count=(
                settings.default_repl_member_count
                if repl_member_count is None else repl_member_count
            ),
            replica_set_name=(
                settings.default_replica_set_name
                if replica_set_name is None else replica_set_name
            ),
            data_dir=Path(data_dir or settings.data_dir).resolve(),
            log_dir=Path(log_dir or settings.log_dir).resolve(),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid cluster options: {e}") from e
