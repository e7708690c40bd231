#!/usr/bin/env python3
"""
Cluster configuration

Loads the fixed peer set and benchmark parameters from YAML, then applies
environment variable overrides (precedence: environment > file > defaults).

Environment overrides:
- BENCH_PAYLOAD_SIZE, BENCH_ROUNDS_MIN, BENCH_ROUNDS_MAX, BENCH_SEED,
  BENCH_RECV_TIMEOUT_MS
- LOG_LEVEL, LOG_DIR
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import yaml

from shared.errors import ConfigError

SERVER = "server"
WORKER = "worker"
ROLES = (SERVER, WORKER)

MSG_SIZE = 1024 * 1024 * 1024  # 1 GiB reference payload [bytes]


@dataclass(frozen=True)
class NodeSpec:
    """One member of the fixed peer set"""
    identity: str
    role: str
    bind_address: str
    connect_address: str


@dataclass
class BenchmarkSettings:
    payload_size: int = MSG_SIZE
    rounds_min: int = 1
    rounds_max: int = 5
    seed: Optional[int] = None           # None: seeded from wall-clock time
    fill_byte: Optional[int] = None      # None: random payload content
    recv_timeout_ms: Optional[int] = None  # None: block forever
    connect_settle_s: float = 0.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    log_dir: Optional[str] = None
    description: str = "bench"


@dataclass
class ClusterConfig:
    """Cluster membership plus benchmark and logging settings"""
    nodes: List[NodeSpec]
    benchmark: BenchmarkSettings = field(default_factory=BenchmarkSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not self.nodes:
            raise ConfigError("cluster has no nodes")

        identities = [node.identity for node in self.nodes]
        if len(set(identities)) != len(identities):
            raise ConfigError(f"duplicate node identities: {identities}")

        for node in self.nodes:
            if node.role not in ROLES:
                raise ConfigError(f"node '{node.identity}' has unknown role '{node.role}'")

        roles = {node.role for node in self.nodes}
        if roles != set(ROLES):
            raise ConfigError("cluster needs at least one server and one worker")

        bench = self.benchmark
        if bench.payload_size <= 0:
            raise ConfigError(f"payload_size must be positive, got {bench.payload_size}")
        if not 1 <= bench.rounds_min <= bench.rounds_max:
            raise ConfigError(f"invalid rounds range [{bench.rounds_min}, {bench.rounds_max}]")
        if bench.fill_byte is not None and not 0 <= bench.fill_byte <= 255:
            raise ConfigError(f"fill_byte must be in 0..255, got {bench.fill_byte}")
        if bench.recv_timeout_ms is not None and bench.recv_timeout_ms <= 0:
            raise ConfigError(f"recv_timeout_ms must be positive, got {bench.recv_timeout_ms}")

        if not isinstance(logging.getLevelName(self.logging.level), int):
            raise ConfigError(f"unknown log level '{self.logging.level}'")

    def node(self, index: int) -> NodeSpec:
        return self.nodes[index]

    def peers_of(self, index: int) -> List[NodeSpec]:
        """Nodes of the other role, in configuration order"""
        me = self.nodes[index]
        return [node for node in self.nodes if node.role != me.role]


# ===== Loading =====

def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{value}'")


def _file_int(raw: Mapping, name: str, default: Optional[int]) -> Optional[int]:
    """Integer field of the benchmark section; floats and other types are rejected"""
    value = raw.get(name, default)
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    raise ConfigError(f"benchmark.{name} must be an integer, got {value!r}")


def _parse_nodes(raw_nodes) -> List[NodeSpec]:
    if not isinstance(raw_nodes, list):
        raise ConfigError("'cluster.nodes' must be a list")

    nodes = []
    for i, raw in enumerate(raw_nodes):
        try:
            nodes.append(NodeSpec(
                identity=str(raw['identity']),
                role=str(raw['role']),
                bind_address=str(raw['bind']),
                connect_address=str(raw['connect']),
            ))
        except (KeyError, TypeError) as e:
            raise ConfigError(f"cluster node #{i} is missing field {e}")
    return nodes


def config_from_dict(raw: Dict, env: Optional[Mapping[str, str]] = None) -> ClusterConfig:
    """
    Build a ClusterConfig from a parsed YAML document

    Args:
        raw: configuration dictionary
        env: environment used for overrides (os.environ by default)

    Returns:
        Validated ClusterConfig
    """
    if env is None:
        env = os.environ
    if not isinstance(raw, dict):
        raise ConfigError("configuration root must be a mapping")

    nodes = _parse_nodes((raw.get('cluster') or {}).get('nodes'))

    bench_raw = raw.get('benchmark') or {}
    log_raw = raw.get('logging') or {}

    try:
        benchmark = BenchmarkSettings(
            payload_size=_env_int(env, 'BENCH_PAYLOAD_SIZE', _file_int(bench_raw, 'payload_size', MSG_SIZE)),
            rounds_min=_env_int(env, 'BENCH_ROUNDS_MIN', _file_int(bench_raw, 'rounds_min', 1)),
            rounds_max=_env_int(env, 'BENCH_ROUNDS_MAX', _file_int(bench_raw, 'rounds_max', 5)),
            seed=_env_int(env, 'BENCH_SEED', _file_int(bench_raw, 'seed', None)),
            fill_byte=_file_int(bench_raw, 'fill_byte', None),
            recv_timeout_ms=_env_int(env, 'BENCH_RECV_TIMEOUT_MS', _file_int(bench_raw, 'recv_timeout_ms', None)),
            connect_settle_s=float(bench_raw.get('connect_settle_s', 0.0)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid benchmark settings: {e}")

    logging_settings = LoggingSettings(
        level=str(env.get('LOG_LEVEL') or log_raw.get('level', 'INFO')).upper(),
        log_dir=env.get('LOG_DIR') or log_raw.get('log_dir'),
        description=str(log_raw.get('description', 'bench')),
    )

    try:
        return ClusterConfig(nodes=nodes, benchmark=benchmark, logging=logging_settings)
    except TypeError as e:
        raise ConfigError(f"invalid configuration: {e}")


def load_config(config_file: str = "config.yaml", env: Optional[Mapping[str, str]] = None) -> ClusterConfig:
    """
    Load the cluster configuration file

    Args:
        config_file: YAML configuration path
        env: environment used for overrides

    Raises:
        ConfigError: file missing, unreadable or invalid
    """
    try:
        with open(config_file, 'r') as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {config_file}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_file}: {e}")

    return config_from_dict(raw, env)
