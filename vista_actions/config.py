"""
Configuration for the action engine.

``CONFIG`` holds the environment-driven defaults; ``EngineConfig`` is what the
orchestrator and CLI consume, either built from those defaults or loaded from
a JSON/YAML file.
"""
import os
from dataclasses import dataclass, field, fields
from typing import Optional

CONFIG = {
    "WORK_DIR": os.getenv("VISTA_ACTIONS_WORK_DIR", "."),
    "DB_PATH": os.getenv("VISTA_ACTIONS_DB_PATH", ""),
    "EVENT_LOG": os.getenv("VISTA_ACTIONS_EVENT_LOG", ""),
    "LOG_LEVEL": os.getenv("VISTA_ACTIONS_LOG_LEVEL", "INFO"),
    "SHELL_TIMEOUT": float(os.getenv("VISTA_ACTIONS_SHELL_TIMEOUT", "600")),
    "MAX_PARALLEL": int(os.getenv("VISTA_ACTIONS_MAX_PARALLEL", "8")),
    "ENFORCE_SHELL_POLICY": os.getenv("VISTA_ACTIONS_ENFORCE_SHELL_POLICY", "true").lower() in ("1", "true", "yes"),
}


@dataclass
class ShellConfig:
    """Shell collaborator settings"""
    timeout: Optional[float] = 600.0
    kill_grace: float = 5.0
    enforce_policy: bool = True


@dataclass
class RetryConfig:
    """Bounded retry; a single attempt unless raised"""
    max_attempts: int = 1
    base_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 30.0


@dataclass
class EngineConfig:
    work_dir: str = "."
    # path inside which absolute filePaths from the generator are accepted
    virtual_root: str = "/home/project"
    db_path: Optional[str] = None
    event_log: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    max_parallel: int = 8
    shell: ShellConfig = field(default_factory=ShellConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)


def get_default_config() -> EngineConfig:
    """Defaults seeded from the environment"""
    return EngineConfig(
        work_dir=CONFIG["WORK_DIR"],
        db_path=CONFIG["DB_PATH"] or None,
        event_log=CONFIG["EVENT_LOG"] or None,
        log_level=CONFIG["LOG_LEVEL"],
        max_parallel=CONFIG["MAX_PARALLEL"],
        shell=ShellConfig(timeout=CONFIG["SHELL_TIMEOUT"], enforce_policy=CONFIG["ENFORCE_SHELL_POLICY"]),
    )


def load_config_from_file(config_path: str) -> EngineConfig:
    """
    Load configuration from JSON or YAML file

    Args:
        config_path: Path to config file

    Returns:
        EngineConfig object
    """
    import json
    from pathlib import Path

    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file) as f:
        if config_path.endswith('.json'):
            data = json.load(f)
        elif config_path.endswith(('.yaml', '.yml')):
            import yaml
            data = yaml.safe_load(f)
        else:
            raise ValueError("Config file must be .json or .yaml")

    data = data or {}
    config = get_default_config()

    if 'shell' in data:
        config.shell = ShellConfig(**data['shell'])

    if 'retry' in data:
        config.retry = RetryConfig(**data['retry'])

    # Top-level settings
    for f_ in fields(EngineConfig):
        if f_.name in ('shell', 'retry'):
            continue
        if f_.name in data:
            setattr(config, f_.name, data[f_.name])

    return config


# Example config dictionary for reference
EXAMPLE_CONFIG = {
    "work_dir": "./workspace",
    "virtual_root": "/home/project",
    "db_path": "./data/vista_actions.db",
    "event_log": "./logs/transitions.jsonl",
    "log_level": "INFO",
    "max_parallel": 8,
    "shell": {"timeout": 600, "kill_grace": 5, "enforce_policy": True},
    "retry": {"max_attempts": 1},
}
