import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from pymongo import MongoClient

from mongo_cluster.config import Settings, settings

logger = logging.getLogger(__name__)


class AdminSession:
    """Admin-database command runner bound to one node"""

    def __init__(self, client: MongoClient, port: int):
        self.client = client
        self.port = port

    async def command(self, command: Any, value: Any = 1, **kwargs: Any) -> Dict[str, Any]:
        """
        Run an admin command without blocking the event loop

        Args:
            command: Command name, e.g. "replSetInitiate"
            value: Command argument
            **kwargs: Extra command fields

        Returns:
            Dict: Command response document

        Raises:
            PyMongoError: On connection or command failure
        """
        return await asyncio.to_thread(self.client.admin.command, command, value, **kwargs)


class MongoAdmin:
    """Opens short-lived direct connections to local nodes"""

    def __init__(self, host: Optional[str] = None, settings: Settings = settings):
        self.host = host or settings.mongodb_host
        self.server_selection_timeout_ms = settings.server_selection_timeout_ms
        self.connect_timeout_ms = settings.connect_timeout_ms

    def connection_string(self, port: int) -> str:
        return f"mongodb://{self.host}:{port}/?directConnection=true"

    def address(self, port: int) -> str:
        return f"{self.host}:{port}"

    def _create_client(self, port: int) -> MongoClient:
        return MongoClient(
            self.connection_string(port),
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            connectTimeoutMS=self.connect_timeout_ms,
        )

    @asynccontextmanager
    async def connect(self, port: int) -> AsyncIterator[AdminSession]:
        """Yield a session for the node on `port`, closing the client afterwards"""
        logger.debug(f"Connecting to {self.connection_string(port)}")
        client = await asyncio.to_thread(self._create_client, port)
        try:
            yield AdminSession(client, port)
        finally:
            await asyncio.to_thread(client.close)

    async def ping(self, port: int) -> None:
        """
        Check that the node on `port` answers

        Raises:
            PyMongoError: If the node is not reachable yet
        """
        async with self.connect(port) as session:
            await session.command("ping")
