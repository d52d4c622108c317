"""
Configuration and credentials files.

config.toml:
    email = "me@example.com"
    domain = "vault.bitwarden.com"      # optional

    [[entries]]
    id = "0b7c…"
    query = "login.password"
    path = "ssh/passphrase"
    links = [".config/app/passphrase"]  # optional, relative to $HOME
    public = false                      # optional

credentials.toml (API backend only):
    id = "user.xxxx"
    secret = "…"
"""

from __future__ import annotations

import logging
import os
import stat
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import ValidationError

from punlock.config import RuntimeContext
from punlock.errors import ConfigurationError
from punlock.models import ClientCredentials, PunlockConfiguration
from punlock.prompt import Prompter

logger = logging.getLogger(__name__)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"{path} is not valid TOML: {e}") from e


def _write_toml(path: Path, data: dict[str, Any], mode: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode is None:
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
        return
    with open(path, "wb", opener=lambda p, flags: os.open(p, flags, mode)) as f:
        tomli_w.dump(data, f)
    path.chmod(mode)


def find_config(ctx: RuntimeContext, explicit: Path | None = None) -> Path:
    """Pick the configuration file: *explicit*, else the first existing candidate."""
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigurationError(f"configuration file not found: {explicit}")
        return explicit
    for candidate in ctx.config_candidates:
        logger.debug("Inspecting configuration candidate %s", candidate)
        if candidate.is_file():
            return candidate
    searched = ", ".join(str(p) for p in ctx.config_candidates)
    raise ConfigurationError(f"no configuration found (searched: {searched})")


def load_config(
    ctx: RuntimeContext,
    prompter: Prompter,
    explicit: Path | None = None,
) -> PunlockConfiguration:
    """Load, complete and validate the configuration.

    A missing email is asked for interactively. Everything else must be valid
    as written.
    """
    path = find_config(ctx, explicit)
    logger.debug("Loading configuration from %s", path)
    raw = _read_toml(path)

    raw.setdefault("version", ctx.config_version)
    raw.setdefault("domain", ctx.default_domain)
    if not raw.get("email"):
        raw["email"] = prompter.email()

    try:
        config = PunlockConfiguration.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration in {path}: {e}") from e

    logger.info("Loaded %d entries for %s from %s", len(config.entries), config.email, path)
    return config


def save_config(config: PunlockConfiguration, path: Path) -> None:
    """Write the completed configuration back to disk."""
    _write_toml(path, config.model_dump(exclude_none=True))
    logger.debug("Wrote configuration to %s", path)


def load_credentials(path: Path, prompter: Prompter) -> ClientCredentials:
    """Read API client credentials, prompting when the file is missing or invalid.

    An unreadable or invalid file is deleted before prompting so it is
    rewritten cleanly afterwards.
    """
    if path.is_file():
        try:
            return ClientCredentials.model_validate(_read_toml(path))
        except (ConfigurationError, ValidationError) as e:
            logger.error("Invalid credentials file %s, deleting: %s", path, e)
            try:
                path.unlink()
            except OSError as unlink_err:
                logger.error("Unable to remove credentials file %s: %s", path, unlink_err)
    else:
        logger.warning("Credentials file %s not found", path)

    client_id = prompter.required_secret("Enter client id: ")
    client_secret = prompter.required_secret("Enter client secret: ")
    return ClientCredentials(id=client_id, secret=client_secret)


def save_credentials(credentials: ClientCredentials, path: Path) -> None:
    """Write credentials readable by the owner only."""
    _write_toml(path, credentials.model_dump(), mode=stat.S_IRUSR | stat.S_IWUSR)
    logger.debug("Wrote credentials to %s", path)
