"""
Error kinds raised while bringing up a local cluster.

Every error the orchestrator can stop on derives from ClusterError so the CLI
has one type to report. Library errors (OSError, PyMongoError) are wrapped
with ``raise ... from e`` and stay reachable through ``__cause__``.

- ConfigurationError: invalid or conflicting cluster options
- DirectoryError: a data or log directory could not be created
- LaunchError: a node process could not be started
- NodeExitedError: a launched node terminated before it became reachable
- FormationCommandError: replSetInitiate or addShard was rejected
- ConnectivityTimeout: a bounded retry loop gave up
"""

from pathlib import Path
from typing import Optional


class ClusterError(Exception):
    """Base class for errors that abort a bring-up run."""


class ConfigurationError(ClusterError):
    """Raised when cluster options are missing, out of range or conflicting."""


class DirectoryError(ClusterError):
    """
    Raised when a node directory cannot be created.

    Attributes:
        path: Directory that could not be created
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to create directory {path}: {reason}")


class LaunchError(ClusterError):
    """
    Raised when a node process cannot be started.

    Attributes:
        port: Port of the node that failed to start
    """

    def __init__(self, port: int, reason: str) -> None:
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to launch node on port {port}: {reason}")


class NodeExitedError(LaunchError):
    """
    Raised when a node process exits while we are still waiting for it.

    Attributes:
        port: Port of the node
        returncode: Exit code reported by the process
    """

    def __init__(self, port: int, returncode: Optional[int]) -> None:
        self.returncode = returncode
        super().__init__(port, f"process exited with code {returncode} before becoming reachable")


class FormationCommandError(ClusterError):
    """
    Raised when a cluster formation command fails.

    Attributes:
        command: Admin command name (replSetInitiate, addShard)
        port: Port of the node the command was sent to
    """

    def __init__(self, command: str, port: int, reason: str) -> None:
        self.command = command
        self.port = port
        self.reason = reason
        super().__init__(f"{command} on port {port} failed: {reason}")


class ConnectivityTimeout(ClusterError):
    """
    Raised when a retry loop runs out of attempts or time.

    Attributes:
        description: What was being waited for
        attempts: Number of attempts made
    """

    def __init__(self, description: str, attempts: int) -> None:
        self.description = description
        self.attempts = attempts
        super().__init__(f"Gave up waiting for {description} after {attempts} attempts")
