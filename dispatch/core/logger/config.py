"""
Logger configuration, built in code or from LOG_* environment variables.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

_TRUTHY = ("1", "true", "yes")


def _env_flag(name: str, default: str = "true") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class LoggerConfig:
    """
    Configuration for the dispatch logger tree.

    Use LoggerConfig.from_env() in processes, or build explicitly in tests.
    """

    # DEBUG, INFO, WARNING, ERROR, CRITICAL
    level: str = "INFO"
    # Directory for the rotating JSON file; None disables the file handler
    log_dir: Optional[str] = None
    # "dispatch" -> dispatch.log
    log_file_basename: str = "dispatch"
    max_bytes: int = 5 * 1024 * 1024  # 5 MB
    backup_count: int = 5
    # Logger the handlers are attached to; children inherit
    root_name: str = "dispatch"
    console: bool = True
    file_rotating: bool = True

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        """Build config from LOG_LEVEL, LOG_DIR, LOG_FILE_BASENAME, LOG_MAX_BYTES,
        LOG_BACKUP_COUNT, LOG_ROOT_NAME, LOG_CONSOLE and LOG_FILE_ROTATING."""
        return cls(
            level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_dir=os.environ.get("LOG_DIR") or None,
            log_file_basename=os.environ.get("LOG_FILE_BASENAME", "dispatch"),
            max_bytes=int(os.environ.get("LOG_MAX_BYTES", "5242880")),
            backup_count=int(os.environ.get("LOG_BACKUP_COUNT", "5")),
            root_name=os.environ.get("LOG_ROOT_NAME", "dispatch"),
            console=_env_flag("LOG_CONSOLE"),
            file_rotating=_env_flag("LOG_FILE_ROTATING"),
        )

    def with_overrides(self, **changes: object) -> "LoggerConfig":
        """Return a copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
