import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from mongo_cluster.config import Settings, settings
from mongo_cluster.exceptions import ClusterError, DirectoryError
from mongo_cluster.models.cluster import (
    BringUpPhase,
    BringUpResult,
    NodeSpec,
    Topology,
)
from mongo_cluster.services.mongo_admin import MongoAdmin
from mongo_cluster.services.node_process import NodeProcess
from mongo_cluster.services.readiness import ReadinessProber
from mongo_cluster.services.replica_set import ReplicaSetConfigurator
from mongo_cluster.services.shard_registrar import ShardRegistrar

logger = logging.getLogger(__name__)


async def _fan_out(coros: Iterable[Awaitable]) -> List:
    """
    Run coroutines concurrently and wait for all of them

    On the first failure the remaining tasks are cancelled and awaited
    before the error propagates.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BringUpOrchestrator:
    """
    Drives one bring-up run through its phases

    Phases run strictly one after another; inside a phase one task runs per
    node or replica set and the phase ends when all of them have finished.
    Launched processes are left running whatever the outcome.
    """

    def __init__(
        self,
        topology: Topology,
        admin: Optional[MongoAdmin] = None,
        prober: Optional[ReadinessProber] = None,
        configurator: Optional[ReplicaSetConfigurator] = None,
        registrar: Optional[ShardRegistrar] = None,
        process_factory: Optional[Callable[[NodeSpec], NodeProcess]] = None,
        settings: Settings = settings,
    ):
        self.topology = topology
        self.admin = admin or MongoAdmin(settings=settings)
        self.prober = prober or ReadinessProber(self.admin, settings=settings)
        self.configurator = configurator or ReplicaSetConfigurator(self.admin, settings=settings)
        self.registrar = registrar or ShardRegistrar(self.admin)
        process_factory = process_factory or (lambda spec: NodeProcess(spec, settings=settings))

        self.processes: Dict[int, NodeProcess] = {
            spec.port: process_factory(spec) for spec in topology.nodes
        }
        self.phase: Optional[BringUpPhase] = None
        self.history: List[BringUpPhase] = []
        self.error: Optional[ClusterError] = None
        self.primaries: Dict[str, str] = {}
        self.shards: List[str] = []

    def _enter(self, phase: BringUpPhase):
        self.phase = phase
        self.history.append(phase)
        logger.info(f"Bring-up phase: {phase.value}")

    def _handles(self, specs: List[NodeSpec]) -> List[NodeProcess]:
        return [self.processes[spec.port] for spec in specs]

    async def run(self) -> BringUpResult:
        """
        Bring the cluster online

        Returns:
            BringUpResult: Entry point and what was started

        Raises:
            ClusterError: The first unrecoverable error; phase becomes FAILED
        """
        logger.info(f"Starting cluster configuration: {self.topology.options.model_dump()}")
        try:
            await self._create_directories()

            group_a = self._handles(self.topology.group_a)
            await self._launch(BringUpPhase.LAUNCHING_GROUP_A, group_a)
            await self._await_ready(BringUpPhase.AWAITING_GROUP_A_READY, group_a)

            group_b = self._handles(self.topology.group_b)
            if group_b:
                await self._launch(BringUpPhase.LAUNCHING_GROUP_B, group_b)
                await self._await_ready(BringUpPhase.AWAITING_GROUP_B_READY, group_b)

            if self.topology.replicated:
                await self._initiate_replica_sets()
                await self._await_primaries()

            if self.topology.sharded:
                await self._register_shards()
        except ClusterError as e:
            self.error = e
            self._enter(BringUpPhase.FAILED)
            logger.error(f"Cluster startup error: {e}")
            raise

        self._enter(BringUpPhase.ONLINE)
        entry_point = self.admin.address(self.topology.entry_port)
        logger.info(f"Cluster online. mongo {entry_point} to connect")
        return BringUpResult(
            entry_point=entry_point,
            nodes=self.topology.nodes,
            replica_sets=self.topology.replica_sets,
            primaries=self.primaries,
            shards=self.shards,
            phases=self.history,
        )

    async def _create_directories(self):
        self._enter(BringUpPhase.CREATING_DIRECTORIES)
        for root in (self.topology.options.log_dir, self.topology.options.data_dir):
            _ensure_root(root)
        await _fan_out(handle.create_directory() for handle in self.processes.values())

    async def _launch(self, phase: BringUpPhase, handles: List[NodeProcess]):
        self._enter(phase)
        await _fan_out(handle.launch() for handle in handles)

    async def _await_ready(self, phase: BringUpPhase, handles: List[NodeProcess]):
        self._enter(phase)
        logger.info(f"Waiting for {len(handles)} servers to start..")
        await _fan_out(self.prober.wait_until_ready(handle) for handle in handles)

    async def _initiate_replica_sets(self):
        self._enter(BringUpPhase.INITIATING_REPLICA_SETS)
        await _fan_out(
            self.configurator.initiate(name, members)
            for name, members in self.topology.replica_sets.items()
        )

    async def _await_primaries(self):
        self._enter(BringUpPhase.AWAITING_REPLICA_PRIMARIES)
        logger.info("Waiting for repl sets to come online..")
        names = list(self.topology.replica_sets)
        primaries = await _fan_out(
            self.configurator.wait_for_primary(name, self.topology.replica_sets[name])
            for name in names
        )
        self.primaries = dict(zip(names, primaries))

    async def _register_shards(self):
        self._enter(BringUpPhase.REGISTERING_SHARDS)
        self.shards = await self.registrar.register(self.topology)


def _ensure_root(path: Path):
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(path, str(e)) from e
