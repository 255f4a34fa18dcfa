"""mongo-cluster CLI - bring up a local MongoDB cluster for development."""

import asyncio
import logging
import shutil
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from mongo_cluster.config import Settings, load_cluster_options, settings
from mongo_cluster.exceptions import ClusterError, ConfigurationError
from mongo_cluster.models.cluster import ClusterOptions, NodeSpec
from mongo_cluster.services.mongo_admin import MongoAdmin
from mongo_cluster.services.orchestrator import BringUpOrchestrator
from mongo_cluster.services.readiness import ReadinessProber
from mongo_cluster.services.replica_set import ReplicaSetConfigurator
from mongo_cluster.services.retry import RetryPolicy
from mongo_cluster.services.topology import build_topology

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="mongo-cluster",
    help="Start a local sharded and/or replicated MongoDB cluster",
    no_args_is_help=True,
)

console = Console()


def configure_logging(verbose: bool = False):
    """Configure logging once for the whole process"""
    logging.basicConfig(
        level=logging.DEBUG if (verbose or settings.debug) else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def check_requirements(options: ClusterOptions, settings: Settings = settings):
    """
    Make sure the MongoDB binaries the topology needs are on PATH

    Raises:
        ConfigurationError: If a binary cannot be found
    """
    binaries = [settings.mongod_binary]
    if options.sharded:
        binaries.append(settings.mongos_binary)

    for binary in binaries:
        location = shutil.which(binary)
        if location is None:
            raise ConfigurationError(f"'{binary}' was not found on PATH")
        logger.info(f"Using: {location}")


def _resolve_options(
    port: Optional[int],
    sharded: bool,
    shard_count: Optional[int],
    config_server_count: Optional[int],
    replicated: bool,
    repl_member_count: Optional[int],
    repl_set_name: Optional[str],
    data_dir: Optional[str],
    log_dir: Optional[str],
) -> ClusterOptions:
    try:
        return load_cluster_options(
            port=port,
            sharded=sharded,
            shard_count=shard_count,
            config_server_count=config_server_count,
            replicated=replicated,
            repl_member_count=repl_member_count,
            replica_set_name=repl_set_name,
            data_dir=data_dir,
            log_dir=log_dir,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def build_wait_policy(timeout: Optional[float], option: str) -> Optional[RetryPolicy]:
    """
    Retry policy bounded by a CLI timeout, or None to keep the settings default

    Raises:
        ConfigurationError: If the timeout is not a positive number
    """
    if timeout is None:
        return None
    try:
        return RetryPolicy(
            interval_seconds=settings.probe_interval_seconds,
            timeout_seconds=timeout,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {option}: must be greater than 0") from e


def _nodes_table(nodes: List[NodeSpec], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Role", style="cyan")
    table.add_column("Port", style="green")
    table.add_column("Replica set", style="yellow")
    table.add_column("Data directory", style="blue")
    table.add_column("Log file", style="blue")

    for node in nodes:
        table.add_row(
            node.label,
            str(node.port),
            node.replica_set_name or "-",
            str(node.data_dir),
            str(node.log_path),
        )
    return table


@app.command()
def up(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Base port (router or first node)"),
    sharded: bool = typer.Option(False, "--sharded", help="Start a router and config servers"),
    shard_count: Optional[int] = typer.Option(None, "--shard-count", help="Number of shards"),
    config_server_count: Optional[int] = typer.Option(
        None, "--config-server-count", help="Number of config servers"
    ),
    replicated: bool = typer.Option(False, "--replicated", help="Run each shard as a replica set"),
    repl_member_count: Optional[int] = typer.Option(
        None, "--repl-member-count", help="Members per replica set"
    ),
    repl_set_name: Optional[str] = typer.Option(None, "--repl-set-name", help="Replica set name"),
    data_dir: Optional[str] = typer.Option(None, "--data-dir", help="Root of node data directories"),
    log_dir: Optional[str] = typer.Option(None, "--log-dir", help="Directory for node log files"),
    ready_timeout: Optional[float] = typer.Option(
        None, "--ready-timeout", help="Seconds to wait for each node (default: forever)"
    ),
    primary_timeout: Optional[float] = typer.Option(
        None, "--primary-timeout", help="Seconds to wait for each replica set primary (default: forever)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Start the cluster and wait until it is online."""
    configure_logging(verbose)
    options = _resolve_options(
        port, sharded, shard_count, config_server_count,
        replicated, repl_member_count, repl_set_name, data_dir, log_dir,
    )

    async def _run(ready_policy: Optional[RetryPolicy], primary_policy: Optional[RetryPolicy]):
        topology = build_topology(options)
        admin = MongoAdmin()
        orchestrator = BringUpOrchestrator(
            topology,
            admin=admin,
            prober=ReadinessProber(admin, policy=ready_policy),
            configurator=ReplicaSetConfigurator(admin, policy=primary_policy),
        )
        return await orchestrator.run()

    try:
        ready_policy = build_wait_policy(ready_timeout, "--ready-timeout")
        primary_policy = build_wait_policy(primary_timeout, "--primary-timeout")
        check_requirements(options)
        result = asyncio.run(_run(ready_policy, primary_policy))
    except ClusterError as e:
        console.print(f"[red]cluster startup error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]cluster startup interrupted[/yellow]; started nodes keep running")
        raise typer.Exit(130)

    console.print(_nodes_table(result.nodes, "Cluster nodes"))
    console.print(f"[green]cluster online.[/green] mongo {result.entry_point} to connect")


@app.command()
def plan(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Base port (router or first node)"),
    sharded: bool = typer.Option(False, "--sharded", help="Start a router and config servers"),
    shard_count: Optional[int] = typer.Option(None, "--shard-count", help="Number of shards"),
    config_server_count: Optional[int] = typer.Option(
        None, "--config-server-count", help="Number of config servers"
    ),
    replicated: bool = typer.Option(False, "--replicated", help="Run each shard as a replica set"),
    repl_member_count: Optional[int] = typer.Option(
        None, "--repl-member-count", help="Members per replica set"
    ),
    repl_set_name: Optional[str] = typer.Option(None, "--repl-set-name", help="Replica set name"),
    data_dir: Optional[str] = typer.Option(None, "--data-dir", help="Root of node data directories"),
    log_dir: Optional[str] = typer.Option(None, "--log-dir", help="Directory for node log files"),
) -> None:
    """Show the nodes `up` would start, without starting anything."""
    options = _resolve_options(
        port, sharded, shard_count, config_server_count,
        replicated, repl_member_count, repl_set_name, data_dir, log_dir,
    )
    topology = build_topology(options)
    console.print(_nodes_table(topology.nodes, "Planned nodes"))
    console.print(f"Entry point: {settings.mongodb_host}:{topology.entry_port}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
