import json
import logging

import pytest
import yaml

# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.config import EXAMPLE_CONFIG, EngineConfig, get_default_config, load_config_from_file
from vista_actions.logging_setup import setup_logging


def test_defaults():
    config = EngineConfig()
    assert config.max_parallel == 8
    assert config.shell.timeout == 600.0
    assert config.shell.kill_grace == 5.0
    assert config.shell.enforce_policy is True
    assert config.retry.max_attempts == 1
    assert config.db_path is None and config.event_log is None
    assert get_default_config().virtual_root == "/home/project"


def test_load_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(EXAMPLE_CONFIG))
    config = load_config_from_file(str(path))
    assert config.work_dir == "./workspace"
    assert config.event_log == "./logs/transitions.jsonl"
    assert config.shell.kill_grace == 5
    assert config.retry.max_attempts == 1


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"max_parallel": 2, "retry": {"max_attempts": 4, "base_delay": 0.1}}))
    config = load_config_from_file(str(path))
    assert config.max_parallel == 2
    assert config.retry.max_attempts == 4
    assert config.retry.base_delay == 0.1
    assert config.shell.enforce_policy is True


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert load_config_from_file(str(path)).max_parallel == get_default_config().max_parallel


def test_bad_config_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_from_file(str(tmp_path / "missing.json"))
    path = tmp_path / "config.toml"
    path.write_text("x = 1")
    with pytest.raises(ValueError):
        load_config_from_file(str(path))


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"
    setup_logging(EngineConfig(log_level="debug", log_file=str(log_file)))
    logging.getLogger("vista_actions.test").debug("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello from test" in log_file.read_text()
    assert logging.getLogger().level == logging.DEBUG
