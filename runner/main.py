#!/usr/bin/env python3
"""
Echo bench node runner

Usage: python -m runner.main <index>

The index selects one node of the configured cluster (reference config:
0-1 servers, 2-3 workers). The node runs init -> run -> clear; every
error kind maps to its own exit status.

Environment:
- BENCH_CONFIG: cluster configuration file (default: config.yaml)
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from scripts.log_manager import BenchLogManager
from server.app.server_node import ServerNode
from shared.config import SERVER, ClusterConfig, load_config
from shared.errors import BenchError, UsageError
from shared.node import Node
from worker.app.worker_node import WorkerNode

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting"""

    def error(self, message):
        raise UsageError(f"{message}\n{self.format_usage().strip()}")


def parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = UsageArgumentParser(prog="echo-bench-node", description="Echo bench cluster node")
    parser.add_argument("index", type=int, help="node index in the cluster configuration (0|1|2|3)")
    args = parser.parse_args(argv)
    # upper bound needs the config; see check_index
    if args.index < 0:
        parser.error(f"wrong index {args.index}, expected a non-negative integer")
    return args


def check_index(config: ClusterConfig, index: int) -> int:
    if not 0 <= index < len(config.nodes):
        raise UsageError(f"wrong index {index}, expected 0..{len(config.nodes) - 1}")
    return index


def build_node(config: ClusterConfig, index: int) -> Node:
    """Construct the node for `index` according to its configured role"""
    if config.node(index).role == SERVER:
        return ServerNode(config, index)

    # the run directory is created when the records are written
    log_manager = None
    if config.logging.log_dir:
        log_manager = BenchLogManager(config.logging.log_dir)
    return WorkerNode(config, index, log_manager=log_manager)


def run_node(node: Node):
    """
    Run the node lifecycle

    init failure aborts before run; clear always runs once init was attempted.
    """
    try:
        node.init()
        node.run()
    finally:
        node.clear()


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = parse_args(argv)
        config = load_config(os.getenv('BENCH_CONFIG', 'config.yaml'))
        logging.getLogger().setLevel(config.logging.level)
        node = build_node(config, check_index(config, args.index))
        run_node(node)
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 130
    except BenchError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return e.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())
