#!/usr/bin/env python3
"""
Benchmark error taxonomy

Every failure in the harness is fatal. Each error kind carries the process
exit status the runner reports for it.
"""


class BenchError(Exception):
    """Base class for all harness errors"""
    exit_code = 1


class UsageError(BenchError):
    """Bad command line arguments (raised before any node exists)"""
    exit_code = 2


class TransportError(BenchError):
    """Bind / connect / send / receive failure"""
    exit_code = 3


class IntegrityError(BenchError):
    """Echoed payload differs from the payload that was sent"""
    exit_code = 4


class ProtocolError(BenchError):
    """Malformed frames, unknown peer or a message out of phase"""
    exit_code = 5


class ConfigError(BenchError):
    """Missing or invalid cluster configuration"""
    exit_code = 6
