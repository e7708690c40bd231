#!/usr/bin/env python3
"""
Benchmark node base

Lifecycle shared by both roles: init -> run -> clear.

- init:  open the transport (ROUTER bind + one DEALER per peer)
- run:   role-specific protocol (ServerNode / WorkerNode)
- clear: log the traffic summary and release the transport
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Tuple

from shared.config import ClusterConfig, NodeSpec
from shared.protocol import Message, describe
from shared.transport import ZmqTransport

SENT_TO = "sent to"
RECEIVED_FROM = "received from"

MB = 1024.0 * 1024.0


@dataclass
class NodeStats:
    """Traffic counters (payload bytes only; control messages count 0 bytes)"""
    sent_messages: int = 0
    received_messages: int = 0
    sent_bytes: int = 0
    received_bytes: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class Node:
    """
    Base class for benchmark nodes

    Args:
        config: cluster configuration
        index: this node's position in the configured node list
        transport_factory: builds the transport (ZmqTransport by default)
    """

    role = None

    def __init__(self, config: ClusterConfig, index: int,
                 transport_factory: Optional[Callable[[NodeSpec, List[NodeSpec]], object]] = None):
        self.config = config
        self.index = index
        self.spec = config.node(index)
        self.name = self.spec.identity
        self.peer_specs = config.peers_of(index)
        self.peers = [peer.identity for peer in self.peer_specs]

        self.transport_factory = transport_factory or self._zmq_transport
        self.transport = None
        self.stats = NodeStats()
        self.logger = logging.getLogger(type(self).__module__)

    @property
    def peer_num(self) -> int:
        return len(self.peers)

    def _zmq_transport(self, me: NodeSpec, peers: List[NodeSpec]) -> ZmqTransport:
        return ZmqTransport(me, peers, recv_timeout_ms=self.config.benchmark.recv_timeout_ms)

    # ===== Lifecycle =====

    def init(self):
        """
        Establish transport endpoints

        Raises:
            TransportError: bind or connect failure (the caller must not run)
        """
        self.transport = self.transport_factory(self.spec, self.peer_specs)
        self.transport.open()
        self.log(f"{self.name} ({self.role}) ready, peers: {', '.join(self.peers)}")

        settle = self.config.benchmark.connect_settle_s
        if settle > 0:
            # DEALER connects are asynchronous
            time.sleep(settle)

    def run(self):
        raise NotImplementedError

    def clear(self):
        """Log the summary and release endpoints (safe to call more than once)"""
        self.log(f"{self.name} exiting")
        self.log(f"{self.name} sent {self.stats.sent_bytes / MB:.2f} MB "
                 f"received {self.stats.received_bytes / MB:.2f} MB")

        if self.transport is not None:
            self.transport.close()
            self.transport = None

    # ===== Messaging =====

    def send(self, peer: str, message: Message):
        self.transport.send(peer, message)
        self.stats.sent_messages += 1
        self.stats.sent_bytes += message.size
        self.log_event(SENT_TO, peer, describe(message))

    def recv(self) -> Tuple[str, Message]:
        who, message = self.transport.recv()
        self.stats.received_messages += 1
        self.stats.received_bytes += message.size
        self.log_event(RECEIVED_FROM, who, describe(message))
        return who, message

    def broadcast(self, message: Message):
        """Send a message to every peer in configuration order"""
        for peer in self.peers:
            self.send(peer, message)

    # ===== Logging =====

    def log(self, what: str, level: str = "INFO"):
        self.logger.log(logging.getLevelName(level.upper()), what)

    def log_event(self, direction: str, peer: str, content: str):
        self.log(f"{self.name} {direction} {peer}: {content}")
