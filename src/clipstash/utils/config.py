from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv, set_key
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "CLIPSTASH_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_HOTKEY = "ctrl+`"


def default_data_dir() -> Path:
    return Path.home() / ".clipstash"


def resolve_env_path(env_path: Optional[Path] = None) -> Path:
    """The ``.env`` file to read and write: ``env_path``, the nearest one above
    the working directory, or a new one in the working directory."""
    if env_path is not None:
        return Path(env_path)
    found = find_dotenv(usecwd=True)
    return Path(found) if found else Path.cwd() / ".env"


def save_setting(name: str, value: Any, env_path: Optional[Path] = None) -> Path:
    """Write ``CLIPSTASH_<NAME>=value`` into the ``.env`` file read by ``Settings.from_env``."""
    if name not in Settings.model_fields:
        raise ValueError(f"unknown setting {name!r}")

    path = resolve_env_path(env_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    set_key(str(path), ENV_PREFIX + name.upper(), str(value))
    return path


class Settings(BaseModel):
    data_dir: Path = Field(default_factory=default_data_dir)
    db_name: str = "clipboard.sqlite3"
    max_items: int = Field(default=100, ge=1)
    poll_interval: float = Field(default=0.5, gt=0)
    popup_limit: int = Field(default=10, ge=0)
    hotkey: str = DEFAULT_HOTKEY
    write_timeout: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None, **overrides: Any) -> "Settings":
        """Build settings from ``.env``, ``CLIPSTASH_*`` variables and overrides.

        Explicit overrides win; ``None`` overrides are ignored so unset CLI
        flags fall through to the environment.
        """
        load_dotenv(resolve_env_path(env_path), override=False)

        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None and raw.strip() != "":
                values[name] = raw.strip()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
