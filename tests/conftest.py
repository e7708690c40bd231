from pathlib import Path

import pytest

from fakes import FakeNetwork, FakeTransport, make_config
from server.app.server_node import ServerNode
from worker.app.worker_node import WorkerNode

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def repo_config_path():
    return REPO_ROOT / "config.yaml"


@pytest.fixture
def server():
    """server1 on a fake transport, already initialised (peers: client1, client2)."""
    node = ServerNode(make_config(), 0, transport_factory=FakeTransport)
    node.init()
    yield node
    node.clear()


@pytest.fixture
def network():
    return FakeNetwork(timeout=5.0)


@pytest.fixture
def make_worker():
    """Build client1 with a scripted responder in place of the servers."""
    def _make(responder, index=2, log_dir=None, **bench):
        def factory(me, peers):
            return FakeTransport(me, peers, responder=responder)

        node = WorkerNode(make_config(**bench), index, transport_factory=factory, log_dir=log_dir)
        node.init()
        return node
    return _make
