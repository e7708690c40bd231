#!/usr/bin/env python3
"""
Server node: echo relay and barrier coordinator

Single receive loop dispatching on message kind:
- sync      -> reply ok (rendezvous before bulk transfer)
- data      -> echo the exact bytes back to the sender
- barrier   -> record arrival; once every peer has arrived, broadcast continue
- terminate -> one fewer active peer; the loop ends when none are left

Barrier arrivals are tracked per identity, so a peer repeating barrier in
the same epoch cannot release the others early.
"""

from enum import Enum
from typing import Set

from shared.config import SERVER
from shared.errors import ProtocolError
from shared.node import Node
from shared.protocol import Message, MessageKind, ack, release


class ServerState(Enum):
    ACTIVE = "active"
    DONE = "done"


class ServerNode(Node):
    """Relay / echo / barrier coordinator role"""

    role = SERVER

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        # ===== Protocol state =====
        self.state = ServerState.ACTIVE
        self.active_peers = self.peer_num        # peers that have not terminated
        self.barrier_arrivals: Set[str] = set()  # arrivals in the current epoch
        self.terminated: Set[str] = set()
        self.barrier_epochs = 0                  # completed barrier releases
        self.echoed_messages = 0

    def run(self):
        """Serve peers until every one of them has sent terminate"""
        self.log(f"{self.name} serving {self.peer_num} peers")

        while self.state is ServerState.ACTIVE:
            who, message = self.recv()
            self.dispatch(who, message)

        self.log(f"{self.name} all peers terminated "
                 f"({self.echoed_messages} echoes, {self.barrier_epochs} barriers)")

    def dispatch(self, who: str, message: Message):
        """
        Handle one inbound message

        Args:
            who: sender identity (from the routing envelope)
            message: decoded message

        Raises:
            ProtocolError: unknown sender or a message a server never receives
        """
        if who not in self.peers:
            raise ProtocolError(f"{self.name} received {message.kind.name} from unknown peer '{who}'")

        if message.kind is MessageKind.SYNC:
            self.send(who, ack())
        elif message.kind is MessageKind.TERMINATE:
            self.handle_terminate(who)
        elif message.kind is MessageKind.BARRIER:
            self.handle_barrier(who)
        elif message.kind is MessageKind.DATA:
            self.handle_data(who, message)
        else:
            raise ProtocolError(f"{self.name} cannot handle '{message.kind.value.decode()}' from {who}")

    def handle_terminate(self, who: str):
        if who in self.terminated:
            self.log(f"{self.name} ignoring repeated terminate from {who}", "WARNING")
            return

        self.terminated.add(who)
        self.active_peers -= 1
        if self.active_peers == 0:
            self.state = ServerState.DONE

    def handle_barrier(self, who: str):
        if who in self.barrier_arrivals:
            self.log(f"{self.name} ignoring repeated barrier from {who}", "WARNING")
            return

        self.barrier_arrivals.add(who)
        if len(self.barrier_arrivals) == self.peer_num:
            self.barrier_arrivals.clear()
            self.barrier_epochs += 1
            self.broadcast(release())

    def handle_data(self, who: str, message: Message):
        # send back the exact message just received
        self.send(who, message)
        self.echoed_messages += 1
