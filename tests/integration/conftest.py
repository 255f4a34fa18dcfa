"""
Pytest configuration for integration tests
"""
import logging
import shutil

import pytest

from mongo_cluster.config import Settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_PORT_START = 27150
TEST_REPLICA_SET = "it-rs"

requires_mongod = pytest.mark.skipif(
    shutil.which("mongod") is None,
    reason="mongod is not installed"
)


@pytest.fixture
def it_settings() -> Settings:
    """Settings with a bounded wait so a broken install fails instead of hanging."""
    return Settings(
        probe_interval_seconds=0.5,
        ready_timeout_seconds=60,
        primary_timeout_seconds=90,
    )


@pytest.fixture
def started_processes():
    """Collects orchestrators and kills their processes after the test."""
    orchestrators = []
    yield orchestrators

    logger.info("Test complete. Cleaning up...")
    for orchestrator in orchestrators:
        for handle in orchestrator.processes.values():
            if handle.process is not None and handle.process.returncode is None:
                logger.info(f"Killing node on port {handle.port}")
                handle.process.kill()
