"""
Tests for option resolution and validation.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from mongo_cluster.config import load_cluster_options
from mongo_cluster.exceptions import ConfigurationError
from mongo_cluster.models.cluster import ClusterOptions

from .conftest import make_settings


class TestLoadClusterOptions:

    def test_defaults_come_from_settings(self):
        options = load_cluster_options(settings=make_settings())

        assert options.port == 26000
        assert options.sharded is False
        assert options.replicated is False
        assert options.shard_count == 1
        assert options.config_server_count == 1
        assert options.repl_member_count == 3
        assert options.replica_set_name == "test"

    def test_directories_are_absolute(self):
        options = load_cluster_options(data_dir="relative/data", log_dir="relative/logs")

        assert options.data_dir.is_absolute()
        assert options.log_dir.is_absolute()
        assert options.data_dir == Path("relative/data").resolve()

    def test_overrides_win(self):
        options = load_cluster_options(
            port=27000,
            sharded=True,
            shard_count=2,
            config_server_count=3,
            replicated=True,
            repl_member_count=5,
            replica_set_name="rs",
            settings=make_settings(),
        )

        assert options.port == 27000
        assert options.shard_count == 2
        assert options.config_server_count == 3
        assert options.repl_member_count == 5
        assert options.replica_set_name == "rs"

    @pytest.mark.parametrize("kwargs", [
        {"shard_count": 2},
        {"config_server_count": 2},
        {"repl_member_count": 5},
        {"replica_set_name": "rs0"},
    ])
    def test_count_without_feature_flag_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            load_cluster_options(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"sharded": True, "shard_count": 0},
        {"sharded": True, "config_server_count": 0},
        {"replicated": True, "repl_member_count": 0},
        {"replicated": True, "replica_set_name": ""},
        {"port": 80},
    ])
    def test_invalid_values_become_configuration_errors(self, kwargs):
        with pytest.raises(ConfigurationError) as exc_info:
            load_cluster_options(**kwargs)

        assert isinstance(exc_info.value.__cause__, ValidationError)


class TestClusterOptions:

    def test_port_range_must_fit_topology(self):
        with pytest.raises(ValidationError):
            ClusterOptions(port=65534, replicated=True, repl_member_count=3)

    def test_node_count(self):
        options = ClusterOptions(
            sharded=True, shard_count=2, config_server_count=1, replicated=True, repl_member_count=3
        )

        assert options.node_count == 2 * 3 + 1 + 1
