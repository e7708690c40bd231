#!/usr/bin/env python3
"""
Worker node: workload driver

Phases executed once per run:
1. Plan:      pick the number of rounds N in [rounds_min, rounds_max]
2. Sync:      send sync to each peer in turn, wait for its ok
3. Exchange:  N rounds; per round, per peer: send one bulk payload, wait for
              the echo and verify it byte for byte
4. Barrier:   send barrier to every peer, wait for one continue per peer
5. Terminate: send terminate to every peer (no reply)

Every step waits for its reply before the next one starts, so there is at
most one outstanding request per peer and peers are served in order.
"""

import csv
import os
import time
from dataclasses import astuple, dataclass, fields
from typing import Dict, List, Optional

import numpy as np

from scripts.log_manager import BenchLogManager
from shared import protocol
from shared.config import WORKER
from shared.errors import IntegrityError, ProtocolError
from shared.node import MB, Node
from shared.protocol import Message, MessageKind, make_payload, payload_digest


@dataclass
class ExchangeRecord:
    """One bulk round trip"""
    round: int
    peer: str
    size: int
    send_time: float
    recv_time: float
    rtt_ms: float
    throughput_mb_s: float


class WorkerNode(Node):
    """
    Workload driving role

    Args:
        config: cluster configuration
        index: this node's position in the configured node list
        transport_factory: builds the transport (ZmqTransport by default)
        log_dir: directory for the per-exchange CSV log
        log_manager: resolves a run directory when the records are written,
            used when log_dir is None; with neither, no CSV is written
    """

    role = WORKER

    def __init__(self, config, index, transport_factory=None, log_dir: Optional[str] = None,
                 log_manager: Optional[BenchLogManager] = None):
        super().__init__(config, index, transport_factory)
        self.log_dir = log_dir
        self.log_manager = log_manager

        bench = config.benchmark
        self.payload_size = bench.payload_size
        self.rng = np.random.default_rng(bench.seed if bench.seed is not None else time.time_ns())

        self.num_msg = 0      # rounds per peer, chosen in plan()
        self.send_msg_num = 0  # completed rounds
        self.payload = b""
        self.records: List[ExchangeRecord] = []

    def run(self):
        self.plan()
        self.sync_peers()
        self.exchange()
        self.barrier()
        self.terminate_peers()
        self.report()

    # ===== Phase 1: plan =====

    def plan(self):
        bench = self.config.benchmark
        self.num_msg = int(self.rng.integers(bench.rounds_min, bench.rounds_max + 1))
        self.payload = make_payload(self.payload_size, bench.fill_byte, self.rng)
        self.log(f"{self.name} is going to send {self.num_msg} messages "
                 f"of {self.payload_size} bytes to each of {self.peer_num} peers")

    # ===== Phase 2: sync =====

    def sync_peers(self):
        for peer in self.peers:
            self.send(peer, protocol.sync())
            self.expect(peer, MessageKind.ACK)

    # ===== Phase 3: exchange =====

    def exchange(self):
        while self.send_msg_num < self.num_msg:
            for peer in self.peers:
                self.records.append(self.round_trip(self.send_msg_num, peer))
            self.send_msg_num += 1

    def round_trip(self, round_index: int, peer: str) -> ExchangeRecord:
        """
        Send the payload to one peer and verify its echo

        Raises:
            IntegrityError: echoed payload differs in size or content
        """
        send_time = time.time()
        perf_start = time.perf_counter()

        self.send(peer, protocol.data(self.payload))
        reply = self.expect(peer, MessageKind.DATA)

        rtt_s = time.perf_counter() - perf_start
        recv_time = time.time()

        self.verify_echo(peer, reply)

        throughput = (self.payload_size / MB) / rtt_s if rtt_s > 0 else 0.0
        return ExchangeRecord(round_index, peer, reply.size, send_time, recv_time,
                              rtt_s * 1000, throughput)

    def verify_echo(self, peer: str, reply: Message):
        if reply.size != len(self.payload):
            raise IntegrityError(f"echo from {peer} is {reply.size} bytes, sent {len(self.payload)}")
        if reply.payload != self.payload:
            raise IntegrityError(f"echo from {peer} differs from sent payload "
                                 f"(sent {payload_digest(self.payload)}, "
                                 f"received {payload_digest(reply.payload)})")

    # ===== Phase 4: barrier =====

    def barrier(self):
        self.log(f"{self.name} is doing a barrier")
        self.broadcast(protocol.barrier())

        # continue signals are counted, not matched to servers
        response = 0
        while response < self.peer_num:
            who, message = self.recv()
            if message.kind is not MessageKind.CONTINUE:
                raise ProtocolError(f"{self.name} expected continue during barrier, "
                                    f"got '{message.kind.value.decode()}' from {who}")
            response += 1

        self.log(f"{self.name} finished barrier")

    # ===== Phase 5: terminate =====

    def terminate_peers(self):
        self.broadcast(protocol.terminate())

    # ===== Helpers =====

    def expect(self, peer: str, kind: MessageKind) -> Message:
        """Receive the next message and check it is `kind` from `peer`"""
        who, message = self.recv()
        if who != peer or message.kind is not kind:
            raise ProtocolError(f"{self.name} expected '{kind.value.decode()}' from {peer}, "
                                f"got '{message.kind.value.decode()}' from {who}")
        return message

    def rtt_stats(self) -> Dict[str, float]:
        """RTT / throughput statistics over all exchanges"""
        if not self.records:
            return {}

        rtt = np.array([r.rtt_ms for r in self.records])
        throughput = np.array([r.throughput_mb_s for r in self.records])
        return {
            'count': len(self.records),
            'mean': float(np.mean(rtt)),
            'std': float(np.std(rtt)),
            'min': float(np.min(rtt)),
            'max': float(np.max(rtt)),
            'p95': float(np.percentile(rtt, 95)),
            'throughput_mean': float(np.mean(throughput)),
        }

    def report(self):
        stats = self.rtt_stats()
        if stats:
            self.log(f"{self.name} RTT stats: {stats['mean']:.2f}±{stats['std']:.2f}ms "
                     f"[{stats['min']:.2f}-{stats['max']:.2f}ms] P95={stats['p95']:.2f}ms, "
                     f"throughput {stats['throughput_mean']:.1f} MB/s over {stats['count']} exchanges")

        if self.log_dir or self.log_manager:
            self.write_records()

    def write_records(self) -> str:
        """Write exchange records to worker_<identity>.csv in the run log directory"""
        if not self.log_dir:
            self.log_dir = self.log_manager.resolve_run_dir(self.config.logging.description)
        os.makedirs(self.log_dir, exist_ok=True)
        log_file = os.path.join(self.log_dir, f"worker_{self.name}.csv")

        with open(log_file, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([field.name for field in fields(ExchangeRecord)])
            for record in self.records:
                writer.writerow(astuple(record))

        self.log(f"{self.name} wrote {len(self.records)} exchange records to {log_file}")
        return log_file
