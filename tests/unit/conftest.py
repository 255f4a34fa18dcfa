"""
Pytest configuration for unit tests
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from mongo_cluster.config import Settings
from mongo_cluster.exceptions import LaunchError
from mongo_cluster.models.cluster import ClusterOptions, NodeSpec, NodeState
from mongo_cluster.services.mongo_admin import MongoAdmin
from mongo_cluster.services.node_process import NodeProcess
from mongo_cluster.services.retry import RetryPolicy

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FAST_POLICY = RetryPolicy(interval_seconds=0.001)


def make_settings(**overrides) -> Settings:
    """Settings with fast polling for tests."""
    values = {"probe_interval_seconds": 0.001, "mongodb_host": "127.0.0.1"}
    values.update(overrides)
    return Settings(**values)


def make_options(tmp_path: Path, **overrides) -> ClusterOptions:
    """ClusterOptions rooted in a temporary directory."""
    values = {"data_dir": tmp_path / "data", "log_dir": tmp_path / "logs"}
    values.update(overrides)
    return ClusterOptions(**values)


class FakeSession:
    """Stands in for AdminSession; answers from the admin's handlers."""

    def __init__(self, admin: "FakeMongoAdmin", port: int):
        self.admin = admin
        self.port = port

    async def command(self, command: Any, value: Any = 1, **kwargs: Any) -> Dict[str, Any]:
        self.admin.events.append(("command", self.port, command))
        self.admin.commands.append((self.port, command, value, kwargs))
        handler = self.admin.handlers.get(command)
        if handler is None:
            return {"ok": 1.0}
        return handler(self.port, value, **kwargs)


class FakeMongoAdmin(MongoAdmin):
    """
    MongoAdmin that never opens a socket.

    - handlers: command name -> callable(port, value, **kwargs) returning a
      response or raising a PyMongoError
    - unreachable: port -> number of connection attempts that fail first
    """

    def __init__(self, events: Optional[List[Tuple]] = None):
        super().__init__(host="127.0.0.1", settings=make_settings())
        self.events: List[Tuple] = events if events is not None else []
        self.commands: List[Tuple[int, Any, Any, Dict]] = []
        self.handlers: Dict[str, Callable] = {}
        self.unreachable: Dict[int, int] = {}
        self.connections: List[int] = []

    @asynccontextmanager
    async def connect(self, port: int):
        self.connections.append(port)
        remaining = self.unreachable.get(port, 0)
        if remaining:
            self.unreachable[port] = remaining - 1
            raise ServerSelectionTimeoutError(f"127.0.0.1:{port}: connection refused")
        yield FakeSession(self, port)


class FakeNodeProcess(NodeProcess):
    """NodeProcess whose launch records an event instead of spawning."""

    def __init__(self, spec: NodeSpec, events: List[Tuple], fail_ports: Set[int] = frozenset()):
        super().__init__(spec, settings=make_settings())
        self.events = events
        self.fail_ports = fail_ports

    async def launch(self) -> None:
        self._advance(NodeState.LAUNCHING)
        self.events.append(("launch", self.port, self.role))
        if self.port in self.fail_ports:
            raise LaunchError(self.port, "simulated spawn failure")
        self._advance(NodeState.RUNNING)

    def mark_exited(self, returncode: int):
        self.returncode = returncode
        self._advance(NodeState.EXITED)


def primary_status(port: int, value: Any = 1, **kwargs) -> Dict[str, Any]:
    """replSetGetStatus response with the queried member as PRIMARY."""
    return {
        "ok": 1.0,
        "members": [
            {"name": f"127.0.0.1:{port}", "stateStr": "PRIMARY"},
        ],
    }


@pytest.fixture
def events() -> List[Tuple]:
    """Shared, ordered record of launches and commands."""
    return []


@pytest.fixture
def fake_admin(events) -> FakeMongoAdmin:
    """Fake admin that records into the shared event list."""
    return FakeMongoAdmin(events)


@pytest.fixture
def settings_fast() -> Settings:
    return make_settings()
