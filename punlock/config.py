"""
Runtime context for punlock.

Every path and constant the components need lives in one frozen value built
once at startup and passed explicitly. Environment variables override the
defaults.

Usage:
    from punlock.config import RuntimeContext
    ctx = RuntimeContext.from_env()
    print(ctx.store_root)       # "/run/user/1000/punlock"
    print(ctx.config_dir)       # "/home/user/.config/punlock"
"""

from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path

APP_NAME = "punlock"
CONFIG_FILE_NAME = "config.toml"
CREDENTIALS_FILE_NAME = "credentials.toml"
LATEST_CONFIGURATION_VERSION = "1.0.0"
DEFAULT_DOMAIN = "vault.bitwarden.com"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class Backend(StrEnum):
    CLI = "cli"
    API = "api"


def _default_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / APP_NAME


def _default_runtime_dir() -> Path:
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime)
    return Path(tempfile.gettempdir())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


def _invoking_id(kind: str) -> int:
    """Real uid/gid of the user behind the run, seen through ``sudo``.

    *kind* is ``"uid"`` or ``"gid"``. -1 where the platform has neither.
    """
    getter = getattr(os, f"get{kind}", None)
    if getter is None:
        return -1
    current = getter()
    sudo_value = os.environ.get(f"SUDO_{kind.upper()}")
    if current == 0 and sudo_value and sudo_value.isdigit():
        return int(sudo_value)
    return current


@dataclass(frozen=True)
class RuntimeContext:
    """Paths and tunables for one punlock run."""

    home: Path = field(default_factory=Path.home)
    config_dir: Path = field(default_factory=_default_config_dir)
    runtime_dir: Path = field(default_factory=_default_runtime_dir)

    default_domain: str = DEFAULT_DOMAIN
    config_version: str = LATEST_CONFIGURATION_VERSION
    backend: Backend = Backend.CLI

    # Ephemeral store
    volatile: bool = True
    tmpfs_size: str = "16m"

    # Bounded backend calls (seconds)
    http_timeout: float = 30.0
    command_timeout: float = 60.0
    bw_bin: str = "bw"

    # Invoking (unprivileged) identity, owner of the store root
    uid: int = field(default_factory=lambda: _invoking_id("uid"))
    gid: int = field(default_factory=lambda: _invoking_id("gid"))

    @property
    def config_path(self) -> Path:
        """Where the completed configuration is written back."""
        return self.config_dir / CONFIG_FILE_NAME

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / CREDENTIALS_FILE_NAME

    @property
    def config_candidates(self) -> list[Path]:
        """Configuration files tried in order when no path is given."""
        return [
            Path.cwd() / CONFIG_FILE_NAME,
            self.config_path,
            Path("/etc") / APP_NAME / CONFIG_FILE_NAME,
        ]

    @property
    def store_root(self) -> Path:
        return self.runtime_dir / APP_NAME

    @property
    def supports_volatile(self) -> bool:
        """tmpfs is only mounted on Linux."""
        return sys.platform.startswith("linux")

    def with_overrides(self, **changes: object) -> RuntimeContext:
        """Return a copy with some fields replaced (CLI flags)."""
        return replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls) -> RuntimeContext:
        """Build the context from environment variables."""
        backend_raw = os.environ.get("PUNLOCK_BACKEND", Backend.CLI.value).strip().lower()
        try:
            backend = Backend(backend_raw)
        except ValueError:
            raise ValueError(
                f"Unknown PUNLOCK_BACKEND {backend_raw!r}. Use 'cli' or 'api'."
            ) from None

        runtime_dir = os.environ.get("PUNLOCK_RUNTIME_DIR")
        return cls(
            config_dir=_default_config_dir(),
            runtime_dir=Path(runtime_dir) if runtime_dir else _default_runtime_dir(),
            backend=backend,
            volatile=_env_bool("PUNLOCK_VOLATILE", True),
            tmpfs_size=os.environ.get("PUNLOCK_TMPFS_SIZE", "16m"),
            http_timeout=float(os.environ.get("PUNLOCK_HTTP_TIMEOUT", "30")),
            command_timeout=float(os.environ.get("PUNLOCK_COMMAND_TIMEOUT", "60")),
            bw_bin=os.environ.get("PUNLOCK_BW_BIN", "bw"),
        )
