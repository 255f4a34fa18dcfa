import logging
from pathlib import Path
from typing import Dict, List, Optional

from mongo_cluster.models.cluster import ClusterOptions, NodeRole, NodeSpec, Topology

logger = logging.getLogger(__name__)


def node_data_dir(data_root: Path, role: NodeRole, port: int, replica_set_name: Optional[str] = None) -> Path:
    """Data directory of a node: <root>/<label>_<port>[_<replSetName>]"""
    parts = [role.value, str(port)]
    if replica_set_name:
        parts.append(replica_set_name)
    return data_root / "_".join(parts)


def node_log_path(log_root: Path, role: NodeRole, port: int) -> Path:
    """Log file of a node: <root>/<label>_<port>.log"""
    return log_root / f"{role.value}_{port}.log"


def replica_set_name_for_shard(options: ClusterOptions, shard_index: int) -> str:
    """Suffix the configured name with the shard index, but only when sharded"""
    suffix = str(shard_index) if options.sharded else ""
    return f"{options.replica_set_name}{suffix}"


def _make_spec(
    options: ClusterOptions,
    role: NodeRole,
    port: int,
    replica_set_name: Optional[str] = None,
    config_ports: Optional[List[int]] = None,
) -> NodeSpec:
    return NodeSpec(
        role=role,
        port=port,
        data_dir=node_data_dir(options.data_dir, role, port, replica_set_name),
        log_path=node_log_path(options.log_dir, role, port),
        replica_set_name=replica_set_name,
        config_ports=config_ports or [],
    )


def build_topology(options: ClusterOptions) -> Topology:
    """
    Compute the node layout for a set of cluster options

    Ports come from one counter that only moves forward. When sharded the
    router keeps the base port and every other node starts one above it.

    Args:
        options: Resolved cluster options

    Returns:
        Topology: Nodes ordered router, config servers, data nodes
    """
    next_port = options.port
    if options.sharded:
        next_port += 1

    data_nodes: List[NodeSpec] = []
    replica_sets: Dict[str, List[int]] = {}

    for shard_index in range(options.effective_shard_count):
        if options.replicated:
            replica_set_name = replica_set_name_for_shard(options, shard_index)
            for _ in range(options.repl_member_count):
                data_nodes.append(
                    _make_spec(options, NodeRole.DATA_NODE, next_port, replica_set_name)
                )
                replica_sets.setdefault(replica_set_name, []).append(next_port)
                next_port += 1
        else:
            data_nodes.append(_make_spec(options, NodeRole.DATA_NODE, next_port))
            next_port += 1

    config_servers: List[NodeSpec] = []
    routers: List[NodeSpec] = []
    if options.sharded:
        for _ in range(options.config_server_count):
            config_servers.append(_make_spec(options, NodeRole.CONFIG_SERVER, next_port))
            next_port += 1

        routers.append(
            _make_spec(
                options,
                NodeRole.ROUTER,
                options.port,
                config_ports=[node.port for node in config_servers],
            )
        )

    topology = Topology(
        options=options,
        nodes=routers + config_servers + data_nodes,
        replica_sets=replica_sets,
    )
    logger.debug(
        f"Computed topology with {len(topology.nodes)} nodes "
        f"({len(replica_sets)} replica sets) starting at port {options.port}"
    )
    return topology
