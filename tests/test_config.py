import pytest
import yaml

from runner import main as runner
from shared.config import MSG_SIZE, NodeSpec, config_from_dict, load_config
from shared.errors import ConfigError

from fakes import make_config


def raw_config(**benchmark):
    return {
        'cluster': {'nodes': [
            {'identity': 'server1', 'role': 'server', 'bind': 'tcp://*:5555', 'connect': 'tcp://a:5555'},
            {'identity': 'client1', 'role': 'worker', 'bind': 'tcp://*:5557', 'connect': 'tcp://b:5557'},
        ]},
        'benchmark': benchmark,
    }


def test_reference_config_file(repo_config_path):
    config = load_config(str(repo_config_path), env={})

    assert [n.identity for n in config.nodes] == ["server1", "server2", "client1", "client2"]
    assert [n.role for n in config.nodes] == ["server", "server", "worker", "worker"]
    assert config.benchmark.payload_size == MSG_SIZE == 1024 ** 3
    assert (config.benchmark.rounds_min, config.benchmark.rounds_max) == (1, 5)
    assert config.benchmark.recv_timeout_ms is None


def test_peers_are_the_other_role_in_order(repo_config_path):
    config = load_config(str(repo_config_path), env={})

    assert [p.identity for p in config.peers_of(0)] == ["client1", "client2"]
    assert [p.identity for p in config.peers_of(1)] == ["client1", "client2"]
    assert [p.identity for p in config.peers_of(2)] == ["server1", "server2"]
    assert [p.identity for p in config.peers_of(3)] == ["server1", "server2"]


def test_node_fields_are_parsed():
    config = config_from_dict(raw_config(), env={})

    assert config.node(0) == NodeSpec("server1", "server", "tcp://*:5555", "tcp://a:5555")


def test_environment_overrides_file_values():
    env = {'BENCH_PAYLOAD_SIZE': '16', 'BENCH_ROUNDS_MIN': '2', 'BENCH_ROUNDS_MAX': '3',
           'BENCH_SEED': '42', 'BENCH_RECV_TIMEOUT_MS': '500', 'LOG_LEVEL': 'debug'}

    config = config_from_dict(raw_config(payload_size=1024, rounds_max=9), env=env)

    assert config.benchmark.payload_size == 16
    assert (config.benchmark.rounds_min, config.benchmark.rounds_max) == (2, 3)
    assert config.benchmark.seed == 42
    assert config.benchmark.recv_timeout_ms == 500
    assert config.logging.level == "DEBUG"


def test_non_integer_override_is_a_config_error():
    with pytest.raises(ConfigError, match="BENCH_PAYLOAD_SIZE"):
        config_from_dict(raw_config(), env={'BENCH_PAYLOAD_SIZE': 'huge'})


@pytest.mark.parametrize("benchmark", [
    {'payload_size': 0},
    {'rounds_min': 0},
    {'rounds_min': 4, 'rounds_max': 2},
    {'fill_byte': 256},
    {'recv_timeout_ms': 0},
    {'fill_byte': '0xAB'},
    {'recv_timeout_ms': 'soon'},
    {'seed': 'lucky'},
    {'payload_size': 1.5},
    {'rounds_max': '3'},
    {'fill_byte': True},
])
def test_invalid_benchmark_settings(benchmark):
    with pytest.raises(ConfigError):
        config_from_dict(raw_config(**benchmark), env={})


def test_wrongly_typed_file_value_exits_with_config_status(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw_config(fill_byte='0xAB')))
    monkeypatch.setenv("BENCH_CONFIG", str(path))

    assert runner.main(["0"]) == ConfigError.exit_code


def test_duplicate_identities_are_rejected():
    nodes = [
        NodeSpec("a", "server", "inproc://a", "inproc://a"),
        NodeSpec("a", "worker", "inproc://b", "inproc://b"),
    ]
    with pytest.raises(ConfigError, match="duplicate"):
        make_config(nodes=nodes)


def test_cluster_needs_both_roles():
    nodes = [
        NodeSpec("a", "server", "inproc://a", "inproc://a"),
        NodeSpec("b", "server", "inproc://b", "inproc://b"),
    ]
    with pytest.raises(ConfigError, match="server and one worker"):
        make_config(nodes=nodes)


def test_node_missing_field_is_a_config_error():
    raw = raw_config()
    del raw['cluster']['nodes'][0]['bind']

    with pytest.raises(ConfigError, match="missing field"):
        config_from_dict(raw, env={})


def test_missing_file_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError, match="cannot read"):
        load_config(str(tmp_path / "nope.yaml"), env={})


def test_invalid_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("cluster: [unclosed")

    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(str(path), env={})


def test_unknown_log_level_is_rejected(tmp_path):
    raw = raw_config()
    raw['logging'] = {'level': 'chatty'}
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw))

    with pytest.raises(ConfigError, match="log level"):
        load_config(str(path), env={})
