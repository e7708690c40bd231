#!/usr/bin/env python3
"""
Echo bench message protocol

Every message is a discriminated envelope: a kind tag frame, followed by
a payload frame for bulk data. Frames are decoded once at the transport
boundary, so a bulk payload can never be mistaken for a control tag.

Wire frames:
- control: [tag]            tag in sync / ok / barrier / continue / terminate
- data:    [b"data", blob]
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from shared.errors import ProtocolError


class MessageKind(Enum):
    """Message type tags (value = wire tag)"""
    SYNC = b"sync"
    ACK = b"ok"
    BARRIER = b"barrier"
    CONTINUE = b"continue"
    TERMINATE = b"terminate"
    DATA = b"data"


CONTROL_KINDS = frozenset(kind for kind in MessageKind if kind is not MessageKind.DATA)

_KINDS_BY_TAG = {kind.value: kind for kind in MessageKind}


@dataclass(frozen=True)
class Message:
    """Protocol message"""
    kind: MessageKind
    payload: bytes = b""

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def is_control(self) -> bool:
        return self.kind in CONTROL_KINDS


# ===== Constructors =====

def sync() -> Message:
    return Message(MessageKind.SYNC)


def ack() -> Message:
    return Message(MessageKind.ACK)


def barrier() -> Message:
    return Message(MessageKind.BARRIER)


def release() -> Message:
    return Message(MessageKind.CONTINUE)


def terminate() -> Message:
    return Message(MessageKind.TERMINATE)


def data(payload: bytes) -> Message:
    return Message(MessageKind.DATA, payload)


# ===== Frame codec =====

def encode(message: Message) -> List[bytes]:
    """Convert a message into ZeroMQ frames"""
    if message.kind is MessageKind.DATA:
        return [message.kind.value, message.payload]
    if message.payload:
        raise ProtocolError(f"control message '{message.kind.value.decode()}' cannot carry a payload")
    return [message.kind.value]


def decode(frames: Sequence[bytes]) -> Message:
    """
    Convert ZeroMQ frames into a message

    Args:
        frames: message frames without the routing envelope

    Returns:
        Decoded message

    Raises:
        ProtocolError: unknown tag or wrong number of frames
    """
    if not frames:
        raise ProtocolError("empty message")

    tag = bytes(frames[0])
    kind = _KINDS_BY_TAG.get(tag)
    if kind is None:
        raise ProtocolError(f"unknown message tag {tag[:32]!r}")

    if kind is MessageKind.DATA:
        if len(frames) != 2:
            raise ProtocolError(f"data message needs 2 frames, got {len(frames)}")
        return Message(kind, bytes(frames[1]))

    if len(frames) != 1:
        raise ProtocolError(f"control message '{tag.decode()}' has {len(frames)} frames")
    return Message(kind)


# ===== Helpers =====

def make_payload(size: int, fill_byte: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None) -> bytes:
    """
    Build a bulk payload

    Args:
        size: payload size [bytes]
        fill_byte: constant byte value, or None for pseudo-random content
        rng: numpy generator used for random content

    Returns:
        Payload bytes of exactly `size` length
    """
    if size <= 0:
        raise ValueError(f"payload size must be positive, got {size}")

    if fill_byte is not None:
        return bytes([fill_byte]) * size

    if rng is None:
        rng = np.random.default_rng()
    return rng.bytes(size)


def payload_digest(payload: bytes) -> str:
    """Short md5 digest for log lines"""
    return hashlib.md5(payload).hexdigest()[:16]


def describe(message: Message) -> str:
    """Log summary of a message"""
    if message.kind is MessageKind.DATA:
        return f"{message.size} bytes"
    return message.kind.value.decode()
