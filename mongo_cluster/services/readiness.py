import logging
from typing import Optional

from pymongo.errors import PyMongoError

from mongo_cluster.config import Settings, settings
from mongo_cluster.exceptions import NodeExitedError
from mongo_cluster.models.cluster import NodeRole
from mongo_cluster.services.mongo_admin import MongoAdmin
from mongo_cluster.services.node_process import NodeProcess
from mongo_cluster.services.retry import RetryPolicy, retry_until

logger = logging.getLogger(__name__)


class ReadinessProber:
    """Waits for launched nodes to accept connections"""

    def __init__(
        self,
        admin: MongoAdmin,
        policy: Optional[RetryPolicy] = None,
        fail_on_node_exit: Optional[bool] = None,
        settings: Settings = settings,
    ):
        """
        Args:
            admin: Connection factory used to ping nodes
            policy: Retry policy (defaults to settings, unbounded unless
                ready_timeout_seconds is set)
            fail_on_node_exit: Stop waiting with NodeExitedError when the
                node's process has terminated
        """
        self.admin = admin
        self.policy = policy or RetryPolicy(
            interval_seconds=settings.probe_interval_seconds,
            timeout_seconds=settings.ready_timeout_seconds,
        )
        self.fail_on_node_exit = (
            settings.fail_on_node_exit if fail_on_node_exit is None else fail_on_node_exit
        )

    async def wait_until_ready(self, node: NodeProcess) -> int:
        """
        Block until `node` is reachable

        Config servers are reported ready without connecting.

        Returns:
            int: Number of connection attempts made (0 for config servers)

        Raises:
            NodeExitedError: If the process exits while we wait
            ConnectivityTimeout: If the retry policy is bounded and runs out
        """
        if node.role == NodeRole.CONFIG_SERVER:
            logger.info(f"{node.spec.label} on port {node.port} assumed started")
            return 0

        async def attempt() -> bool:
            if self.fail_on_node_exit and node.has_exited:
                raise NodeExitedError(node.port, node.returncode)
            try:
                await self.admin.ping(node.port)
            except PyMongoError as e:
                logger.debug(f"Port {node.port} not reachable yet: {e}")
                return False
            return True

        attempts = await retry_until(
            attempt,
            self.policy,
            f"{node.spec.label} on port {node.port} to accept connections",
        )
        logger.info(f"{node.port} started!")
        return attempts
