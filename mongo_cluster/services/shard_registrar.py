import logging
from typing import List

from pymongo.errors import PyMongoError

from mongo_cluster.exceptions import ConfigurationError, FormationCommandError
from mongo_cluster.models.cluster import Topology
from mongo_cluster.services.mongo_admin import MongoAdmin

logger = logging.getLogger(__name__)


def build_shard_list(topology: Topology, admin: MongoAdmin) -> List[str]:
    """
    Shard hosts to register with the router

    A replica set is added as "<name>/<host>:<first member port>"; without
    replication every data node is its own "<host>:<port>" shard.
    """
    if topology.replicated:
        return [
            f"{replica_set_name}/{admin.address(members[0])}"
            for replica_set_name, members in topology.replica_sets.items()
        ]
    return [admin.address(node.port) for node in topology.data_nodes]


class ShardRegistrar:
    """Registers shards with the router, one at a time"""

    def __init__(self, admin: MongoAdmin):
        self.admin = admin

    async def register(self, topology: Topology) -> List[str]:
        """
        Run addShard for every shard over a single router connection

        Commands are issued sequentially; the first failure stops the rest.
        Unreplicated shards get their index as name, replica sets keep
        their own name.

        Returns:
            List[str]: Registered shard hosts, in order

        Raises:
            ConfigurationError: If the topology has no router
            FormationCommandError: If an addShard command fails
        """
        router = topology.router
        if router is None:
            raise ConfigurationError("Cannot register shards without a router")

        shards = build_shard_list(topology, self.admin)
        registered: List[str] = []
        current = None

        try:
            async with self.admin.connect(router.port) as session:
                for shard_num, shard in enumerate(shards):
                    current = shard
                    if topology.replicated:
                        result = await session.command("addShard", shard)
                    else:
                        result = await session.command("addShard", shard, name=str(shard_num))
                    logger.info(f"addShard {shard} ran: {result}")
                    registered.append(shard)
        except PyMongoError as e:
            logger.error(f"Failed to add shard {current}: {e}")
            raise FormationCommandError("addShard", router.port, f"{current}: {e}") from e

        return registered
