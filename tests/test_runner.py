import pytest

from runner import main as runner
from server.app.server_node import ServerNode
from shared.errors import IntegrityError, ProtocolError, TransportError, UsageError
from worker.app.worker_node import WorkerNode

from fakes import FailingTransport, make_config


class RecordingNode:
    def __init__(self, init_error=None, run_error=None):
        self.init_error = init_error
        self.run_error = run_error
        self.calls = []

    def init(self):
        self.calls.append("init")
        if self.init_error:
            raise self.init_error

    def run(self):
        self.calls.append("run")
        if self.run_error:
            raise self.run_error

    def clear(self):
        self.calls.append("clear")


@pytest.fixture
def reference_config(monkeypatch, repo_config_path):
    monkeypatch.setenv("BENCH_CONFIG", str(repo_config_path))


@pytest.fixture
def built(monkeypatch):
    """Replace node construction; records the index each call received."""
    calls = []

    def install(node):
        def fake_build(config, index):
            calls.append(index)
            return node
        monkeypatch.setattr(runner, "build_node", fake_build)
        return calls
    return install


@pytest.mark.parametrize("argv", [[], ["0", "1"], ["4"], ["-1"], ["two"]])
def test_usage_errors_exit_before_any_node(reference_config, built, argv):
    calls = built(RecordingNode())

    assert runner.main(argv) == UsageError.exit_code
    assert calls == []


def test_parse_args_raises_usage_error():
    with pytest.raises(UsageError, match="usage"):
        runner.parse_args([])


def test_successful_run_exits_zero(reference_config, built):
    node = RecordingNode()
    calls = built(node)

    assert runner.main(["3"]) == 0
    assert calls == [3]
    assert node.calls == ["init", "run", "clear"]


def test_failed_init_skips_run(reference_config, built):
    node = RecordingNode(init_error=TransportError("bind failed"))
    built(node)

    assert runner.main(["0"]) == TransportError.exit_code
    assert node.calls == ["init", "clear"]


@pytest.mark.parametrize("error", [IntegrityError("mismatch"), ProtocolError("bad tag"),
                                   TransportError("send failed")])
def test_run_errors_map_to_exit_codes(reference_config, built, error):
    node = RecordingNode(run_error=error)
    built(node)

    assert runner.main(["2"]) == error.exit_code
    assert node.calls == ["init", "run", "clear"]


def test_exit_codes_are_distinct():
    codes = {UsageError.exit_code, TransportError.exit_code, IntegrityError.exit_code,
             ProtocolError.exit_code}
    assert len(codes) == 4
    assert 0 not in codes


def test_missing_config_file(monkeypatch, tmp_path):
    monkeypatch.setenv("BENCH_CONFIG", str(tmp_path / "missing.yaml"))

    assert runner.main(["0"]) == 6


@pytest.mark.parametrize("argv", [[], ["-1"], ["two"], ["0", "1"]])
def test_bad_arguments_are_usage_errors_even_without_config(monkeypatch, tmp_path, argv):
    monkeypatch.setenv("BENCH_CONFIG", str(tmp_path / "missing.yaml"))

    assert runner.main(argv) == UsageError.exit_code


def test_build_node_selects_role_by_index(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DATE_DIR", "2026-10-17/101500_test")
    config = make_config()
    config.logging.log_dir = str(tmp_path)

    assert isinstance(runner.build_node(config, 0), ServerNode)
    assert isinstance(runner.build_node(config, 1), ServerNode)

    worker = runner.build_node(config, 3)
    assert isinstance(worker, WorkerNode)
    assert worker.name == "client2"


def test_worker_run_dir_is_created_only_when_records_are_written(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DATE_DIR", "2026-10-17/101500_test")
    config = make_config()
    config.logging.log_dir = str(tmp_path)
    run_dir = tmp_path / "2026-10-17" / "101500_test"

    worker = runner.build_node(config, 3)

    assert worker.log_dir is None
    assert list(tmp_path.iterdir()) == []

    log_file = worker.write_records()

    assert worker.log_dir == str(run_dir)
    assert log_file == str(run_dir / "worker_client2.csv")


def test_failed_init_leaves_no_run_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_DATE_DIR", raising=False)
    config = make_config()
    config.logging.log_dir = str(tmp_path)
    worker = runner.build_node(config, 2)
    worker.transport_factory = FailingTransport

    with pytest.raises(TransportError):
        runner.run_node(worker)

    assert list(tmp_path.iterdir()) == []


def test_worker_without_log_dir_skips_csv():
    worker = runner.build_node(make_config(), 2)

    assert worker.log_dir is None
    assert worker.log_manager is None
