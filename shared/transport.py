#!/usr/bin/env python3
"""
ZeroMQ transport

ROUTER/DEALER pattern:
- one ROUTER socket per node, bound to its well-known address (inbound)
- one DEALER socket per peer, carrying this node's identity as routing id
  so the peer's ROUTER can tell who sent each message (outbound)

Replies always travel over the replying node's own DEALER to the original
sender's ROUTER; ROUTER sockets are never used for sending.
"""

import logging
from typing import Dict, List, Optional, Tuple

import zmq

from shared.config import NodeSpec
from shared.errors import ProtocolError, TransportError
from shared.protocol import Message, decode, encode

logger = logging.getLogger(__name__)


class ZmqTransport:
    """
    Addressed asynchronous transport for one node

    Args:
        me: this node's spec (identity and bind address)
        peers: specs of the nodes this node talks to
        recv_timeout_ms: receive timeout, or None to block forever
    """

    def __init__(self, me: NodeSpec, peers: List[NodeSpec], recv_timeout_ms: Optional[int] = None):
        self.me = me
        self.peer_specs = list(peers)
        self.recv_timeout_ms = recv_timeout_ms

        self.context: Optional[zmq.Context] = None
        self.receiver: Optional[zmq.Socket] = None
        self.senders: Dict[str, zmq.Socket] = {}

    @property
    def peers(self) -> List[str]:
        return [peer.identity for peer in self.peer_specs]

    def open(self):
        """
        Create the context, bind the receiver and connect one sender per peer

        Raises:
            TransportError: context, bind or connect failure
        """
        try:
            self.context = zmq.Context(1)
        except zmq.ZMQError as e:
            raise TransportError(f"failed to create zmq context: {e}")

        # ===== Receiving socket (ROUTER) =====
        try:
            self.receiver = self.context.socket(zmq.ROUTER)
            self.receiver.setsockopt(zmq.LINGER, 0)
            if self.recv_timeout_ms is not None:
                self.receiver.setsockopt(zmq.RCVTIMEO, self.recv_timeout_ms)
            self.receiver.bind(self.me.bind_address)
        except zmq.ZMQError as e:
            raise TransportError(f"failed to create/bind receiving socket on {self.me.bind_address}: {e}")

        # ===== Sending sockets (DEALER per peer) =====
        identity = self.me.identity.encode()
        for peer in self.peer_specs:
            try:
                sender = self.context.socket(zmq.DEALER)
                self.senders[peer.identity] = sender
                sender.setsockopt(zmq.LINGER, 0)
                sender.setsockopt(zmq.ROUTING_ID, identity)
                sender.connect(peer.connect_address)
            except zmq.ZMQError as e:
                raise TransportError(f"failed to create/connect sending socket to "
                                     f"{peer.identity} ({peer.connect_address}): {e}")

        logger.debug(f"{self.me.identity}: ROUTER on {self.me.bind_address}, "
                     f"DEALER to {', '.join(self.peers)}")

    def send(self, peer: str, message: Message):
        """Send a message to a peer"""
        sender = self.senders.get(peer)
        if sender is None:
            raise ProtocolError(f"{self.me.identity} has no peer named '{peer}'")
        try:
            sender.send_multipart(encode(message), copy=False)
        except zmq.ZMQError as e:
            raise TransportError(f"failed to send to {peer}: {e}")

    def recv(self) -> Tuple[str, Message]:
        """
        Block for the next inbound message

        Returns:
            (sender identity, message)
        """
        try:
            frames = self.receiver.recv_multipart()
        except zmq.Again:
            raise TransportError(f"{self.me.identity}: no message within {self.recv_timeout_ms}ms")
        except zmq.ZMQError as e:
            raise TransportError(f"failed to receive: {e}")

        if len(frames) < 2:
            raise ProtocolError(f"message without routing envelope ({len(frames)} frames)")

        who = frames[0].decode(errors='replace')
        return who, decode(frames[1:])

    def close(self):
        """Close all sockets and terminate the context (idempotent)"""
        if self.receiver is not None:
            self.receiver.close()
            self.receiver = None

        for peer in list(self.senders):
            self.senders.pop(peer).close()

        if self.context is not None:
            self.context.term()
            self.context = None
