import logging
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from mongo_cluster.config import Settings, settings
from mongo_cluster.exceptions import FormationCommandError
from mongo_cluster.services.mongo_admin import MongoAdmin
from mongo_cluster.services.retry import RetryPolicy, retry_until

logger = logging.getLogger(__name__)


def build_replica_set_config(
    replica_set_name: str,
    member_ports: List[int],
    admin: MongoAdmin,
) -> Dict[str, Any]:
    """replSetInitiate document; member _id follows member order"""
    return {
        "_id": replica_set_name,
        "members": [
            {"_id": idx, "host": admin.address(port)}
            for idx, port in enumerate(member_ports)
        ],
    }


def find_primary(status: Dict[str, Any]) -> Optional[str]:
    """Name of the PRIMARY member in a replSetGetStatus response, if any"""
    for member in status.get("members", []):
        if member.get("stateStr") == "PRIMARY":
            return member.get("name", "")
    return None


class ReplicaSetConfigurator:
    """Initiates replica sets and waits for their elections"""

    def __init__(
        self,
        admin: MongoAdmin,
        policy: Optional[RetryPolicy] = None,
        settings: Settings = settings,
    ):
        self.admin = admin
        self.policy = policy or RetryPolicy(
            interval_seconds=settings.probe_interval_seconds,
            timeout_seconds=settings.primary_timeout_seconds,
        )

    async def initiate(self, replica_set_name: str, member_ports: List[int]) -> Dict[str, Any]:
        """
        Send replSetInitiate to the first member

        Args:
            replica_set_name: Name of the replica set
            member_ports: Member ports in plan order

        Returns:
            Dict: Command response

        Raises:
            FormationCommandError: If the command cannot be sent or is rejected
        """
        first_port = member_ports[0]
        rs_config = build_replica_set_config(replica_set_name, member_ports, self.admin)
        logger.info(f"Initiating replica set with config: {rs_config}")

        try:
            async with self.admin.connect(first_port) as session:
                result = await session.command("replSetInitiate", rs_config)
        except PyMongoError as e:
            logger.error(f"Failed to initiate replica set '{replica_set_name}': {e}")
            raise FormationCommandError("replSetInitiate", first_port, str(e)) from e

        logger.info(f"Replica set initiation result: {result}")
        return result

    async def wait_for_primary(self, replica_set_name: str, member_ports: List[int]) -> str:
        """
        Poll replSetGetStatus on the first member until a PRIMARY shows up

        Connection and command errors count as "not yet".

        Returns:
            str: host:port of the elected primary

        Raises:
            ConnectivityTimeout: If the retry policy is bounded and runs out
        """
        first_port = member_ports[0]
        primary: Optional[str] = None

        async def attempt() -> bool:
            nonlocal primary
            try:
                async with self.admin.connect(first_port) as session:
                    status = await session.command("replSetGetStatus")
            except PyMongoError as e:
                logger.debug(f"Status of '{replica_set_name}' unavailable: {e}")
                return False
            primary = find_primary(status)
            return primary is not None

        await retry_until(attempt, self.policy, f"replica set '{replica_set_name}' to elect a primary")
        logger.info(f"Replica set '{replica_set_name}' elected primary {primary}")
        return primary
