import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from mongo_cluster.config import Settings, settings
from mongo_cluster.exceptions import ConfigurationError, DirectoryError, LaunchError
from mongo_cluster.models.cluster import NodeRole, NodeSpec, NodeState

logger = logging.getLogger(__name__)

_STATE_ORDER = list(NodeState)

STREAM_LIMIT = 2 ** 16


def _router_arguments(spec: NodeSpec, host: str) -> List[str]:
    config_db = ",".join(f"{host}:{port}" for port in spec.config_ports)
    return ["--configdb", config_db]


def _config_server_arguments(spec: NodeSpec, host: str) -> List[str]:
    return ["--configsvr", "--dbpath", str(spec.data_dir)]


def _data_node_arguments(spec: NodeSpec, host: str) -> List[str]:
    args = []
    if spec.replica_set_name:
        args += ["--replSet", spec.replica_set_name]
    args += ["--dbpath", str(spec.data_dir)]
    return args


ROLE_ARGUMENTS: Dict[NodeRole, Callable[[NodeSpec, str], List[str]]] = {
    NodeRole.ROUTER: _router_arguments,
    NodeRole.CONFIG_SERVER: _config_server_arguments,
    NodeRole.DATA_NODE: _data_node_arguments,
}


class NodeProcess:
    """Owns the external mongod/mongos process of one node"""

    def __init__(self, spec: NodeSpec, settings: Settings = settings):
        self.spec = spec
        self.host = settings.mongodb_host
        self.mongod_binary = settings.mongod_binary
        self.mongos_binary = settings.mongos_binary

        self.state = NodeState.PLANNED
        self.process: Optional[asyncio.subprocess.Process] = None
        self.returncode: Optional[int] = None
        self._exit_future: Optional[asyncio.Future] = None
        self._forwarders: List[asyncio.Task] = []
        self._watcher: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        return self.spec.port

    @property
    def role(self) -> NodeRole:
        return self.spec.role

    @property
    def has_exited(self) -> bool:
        return self.state == NodeState.EXITED

    def __repr__(self) -> str:
        return f"NodeProcess({self.spec.label}:{self.port}, {self.state.value})"

    def _advance(self, state: NodeState):
        """Move to `state`; nodes never go back to an earlier state"""
        if _STATE_ORDER.index(state) < _STATE_ORDER.index(self.state):
            raise RuntimeError(
                f"Node {self.port} cannot move from {self.state.value} to {state.value}"
            )
        self.state = state

    def build_command(self) -> List[str]:
        """
        Build the command line for this node

        Returns:
            List[str]: Executable followed by its arguments

        Raises:
            ConfigurationError: If the role has no argument builder
        """
        builder = ROLE_ARGUMENTS.get(self.role)
        if builder is None:
            raise ConfigurationError(f"No launch arguments defined for role {self.role!r}")

        executable = self.mongos_binary if self.role == NodeRole.ROUTER else self.mongod_binary
        command = [executable] + builder(self.spec, self.host)
        command += ["--port", str(self.port), "--logpath", str(self.spec.log_path)]
        return command

    async def create_directory(self) -> Path:
        """
        Ensure the node's data directory exists

        Safe to call repeatedly.

        Raises:
            DirectoryError: If the directory cannot be created
        """
        path = self.spec.data_dir
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryError(path, str(e)) from e

        self._advance(NodeState.DIRECTORY_READY)
        return path

    async def launch(self) -> None:
        """
        Start the node process and return once it is spawned

        The process runs in its own session so it keeps running after this
        program exits. Output lines are forwarded to the logger and the exit
        code is recorded when the process terminates.

        Raises:
            LaunchError: If the process cannot be started
        """
        self._advance(NodeState.LAUNCHING)
        command = self.build_command()
        logger.info(f"Start command: {' '.join(command)}")

        try:
            self.process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            logger.error(f"Failed to start {self.spec.label} on port {self.port}: {e}")
            raise LaunchError(self.port, str(e)) from e

        self._advance(NodeState.RUNNING)
        self._exit_future = asyncio.get_running_loop().create_future()
        self._forwarders = [
            asyncio.create_task(self._forward_output(self.process.stdout, "stdout")),
            asyncio.create_task(self._forward_output(self.process.stderr, "stderr")),
        ]
        self._watcher = asyncio.create_task(self._watch_exit())

    async def _forward_output(self, stream: Optional[asyncio.StreamReader], name: str):
        if stream is None:
            return
        prefix = f"[{self.spec.label}:{self.port}] {name}"
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Overlong line; the reader drops what it buffered and carries on
                logger.warning(f"{prefix}: output line over {STREAM_LIMIT} bytes skipped")
                continue
            if not line:
                return
            logger.info(f"{prefix}: {line.decode(errors='replace').rstrip()}")

    async def _watch_exit(self):
        returncode = await self.process.wait()
        try:
            self.returncode = returncode
            self._advance(NodeState.EXITED)
            logger.warning(f"{self.spec.label} on port {self.port} exited with code {returncode}")
        finally:
            if not self._exit_future.done():
                self._exit_future.set_result(returncode)
        await asyncio.gather(*self._forwarders, return_exceptions=True)

    async def wait_exited(self) -> int:
        """
        Wait for the process to terminate

        Returns:
            int: Exit code

        Raises:
            RuntimeError: If the node was never launched
        """
        if self._exit_future is None:
            raise RuntimeError(f"Node {self.port} has not been launched")
        return await asyncio.shield(self._exit_future)
