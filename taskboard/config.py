# Taskboard: configuration
# Override via taskboard.yaml, environment variables, or CLI args.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .dispatcher import RetryPolicy
from .errors import ConfigError

CONFIG_PATH = Path("taskboard.yaml")

# Environment variable -> Config field
ENV_OVERRIDES = {
    "TASKBOARD_API_URL": "api_url",
    "TASKBOARD_API_TOKEN": "api_token",
    "TASKBOARD_DB": "db_path",
    "TASKBOARD_WORKSPACE": "workspace_id",
}


@dataclass
class Config:
    """Runtime configuration for a board client."""

    # Backing service (None = local SQLite store)
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    request_timeout: float = 10.0

    # Local storage
    db_path: str = "~/.local/share/taskboard/tasks.db"

    # Which board to open
    workspace_id: str = "default"

    # Persistence retry (bounded exponential backoff)
    retry_max_attempts: int = 4
    retry_base_delay: float = 0.25
    retry_factor: float = 2.0
    retry_max_delay: float = 5.0

    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in paths."""
        self.db_path = str(Path(self.db_path).expanduser())

    def validate(self):
        if self.retry_max_attempts < 1:
            raise ConfigError("retry_max_attempts must be at least 1")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ConfigError("retry delays must be non-negative")
        if self.retry_factor < 1:
            raise ConfigError("retry_factor must be >= 1")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if not self.workspace_id:
            raise ConfigError("workspace_id is required")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            factor=self.retry_factor,
            max_delay=self.retry_max_delay,
        )

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[dict] = None) -> "Config":
        """Load config from YAML, then apply environment overrides. Missing file → defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")

        cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

        env = os.environ if environ is None else environ
        for var, attr in ENV_OVERRIDES.items():
            if env.get(var):
                setattr(cfg, attr, env[var])

        cfg.resolve_paths()
        cfg.validate()
        return cfg
