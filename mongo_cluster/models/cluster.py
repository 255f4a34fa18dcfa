from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeRole(str, Enum):
    """Role of a node; the value doubles as the label used in paths"""
    ROUTER = "mongos"
    CONFIG_SERVER = "mongocfg"
    DATA_NODE = "mongod"


class NodeState(str, Enum):
    """Lifecycle of a node process, forward only"""
    PLANNED = "planned"
    DIRECTORY_READY = "directory_ready"
    LAUNCHING = "launching"
    RUNNING = "running"
    EXITED = "exited"


class BringUpPhase(str, Enum):
    """Phases of a bring-up run, in execution order"""
    CREATING_DIRECTORIES = "creating_directories"
    LAUNCHING_GROUP_A = "launching_group_a"
    AWAITING_GROUP_A_READY = "awaiting_group_a_ready"
    LAUNCHING_GROUP_B = "launching_group_b"
    AWAITING_GROUP_B_READY = "awaiting_group_b_ready"
    INITIATING_REPLICA_SETS = "initiating_replica_sets"
    AWAITING_REPLICA_PRIMARIES = "awaiting_replica_primaries"
    REGISTERING_SHARDS = "registering_shards"
    ONLINE = "online"
    FAILED = "failed"


class ClusterOptions(BaseModel):
    """Resolved options a topology is computed from"""
    port: int = Field(default=26000, description="Base port", ge=1024, le=65535)
    sharded: bool = Field(default=False, description="Start a router and config servers")
    shard_count: int = Field(default=1, description="Number of shards", ge=1)
    config_server_count: int = Field(default=1, description="Number of config servers", ge=1)
    replicated: bool = Field(default=False, description="Run every shard as a replica set")
    repl_member_count: int = Field(default=3, description="Members per replica set", ge=1)
    replica_set_name: str = Field(default="test", description="Replica set name prefix", min_length=1)
    data_dir: Path = Field(default=Path("data"), description="Root of node data directories")
    log_dir: Path = Field(default=Path("logs"), description="Directory holding node log files")

    @property
    def effective_shard_count(self) -> int:
        return self.shard_count if self.sharded else 1

    @property
    def node_count(self) -> int:
        count = self.effective_shard_count * (self.repl_member_count if self.replicated else 1)
        if self.sharded:
            count += self.config_server_count + 1
        return count

    @model_validator(mode="after")
    def check_port_range(self) -> "ClusterOptions":
        last_port = self.port + self.node_count - 1
        if last_port > 65535:
            raise ValueError(
                f"Topology needs ports {self.port}-{last_port}, which exceeds 65535"
            )
        return self


class NodeSpec(BaseModel):
    """One planned node of the topology"""
    model_config = ConfigDict(frozen=True)

    role: NodeRole = Field(..., description="Node role")
    port: int = Field(..., description="Port number", ge=1024, le=65535)
    data_dir: Path = Field(..., description="Data directory of the node")
    log_path: Path = Field(..., description="Log file of the node")
    replica_set_name: Optional[str] = Field(
        None,
        description="Replica set the node belongs to (data nodes only)"
    )
    config_ports: List[int] = Field(
        default_factory=list,
        description="Config server ports the router points at (routers only)"
    )

    @property
    def label(self) -> str:
        return self.role.value


class Topology(BaseModel):
    """The full plan for one bring-up run"""
    options: ClusterOptions = Field(..., description="Options the plan was built from")
    nodes: List[NodeSpec] = Field(..., description="All nodes, router first")
    replica_sets: Dict[str, List[int]] = Field(
        default_factory=dict,
        description="Replica set name to member ports, in member order"
    )

    @property
    def sharded(self) -> bool:
        return self.options.sharded

    @property
    def replicated(self) -> bool:
        return self.options.replicated

    @property
    def router(self) -> Optional[NodeSpec]:
        for node in self.nodes:
            if node.role == NodeRole.ROUTER:
                return node
        return None

    @property
    def group_a(self) -> List[NodeSpec]:
        """Nodes whose startup depends on nothing else: config and data nodes"""
        return [node for node in self.nodes if node.role != NodeRole.ROUTER]

    @property
    def group_b(self) -> List[NodeSpec]:
        """Routers, which need running config servers"""
        return [node for node in self.nodes if node.role == NodeRole.ROUTER]

    @property
    def data_nodes(self) -> List[NodeSpec]:
        return [node for node in self.nodes if node.role == NodeRole.DATA_NODE]

    @property
    def config_ports(self) -> List[int]:
        return [node.port for node in self.nodes if node.role == NodeRole.CONFIG_SERVER]

    @property
    def entry_port(self) -> int:
        """Port clients should connect to: the router, or the first data node"""
        return self.options.port

    def node_for_port(self, port: int) -> NodeSpec:
        for node in self.nodes:
            if node.port == port:
                return node
        raise KeyError(port)


class BringUpResult(BaseModel):
    """Outcome of a successful bring-up run"""
    entry_point: str = Field(..., description="host:port clients should connect to")
    nodes: List[NodeSpec] = Field(..., description="Nodes that were launched")
    replica_sets: Dict[str, List[int]] = Field(
        default_factory=dict,
        description="Replica set name to member ports"
    )
    primaries: Dict[str, str] = Field(
        default_factory=dict,
        description="Replica set name to elected primary (host:port)"
    )
    shards: List[str] = Field(default_factory=list, description="Registered shard hosts")
    phases: List[BringUpPhase] = Field(default_factory=list, description="Phases entered, in order")
