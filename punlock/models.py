"""Pydantic models for configuration, credentials and vault responses."""

from __future__ import annotations

import re
from pathlib import PurePath, PurePosixPath, PureWindowsPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

from punlock.config import DEFAULT_DOMAIN, EMAIL_PATTERN, LATEST_CONFIGURATION_VERSION

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def _check_store_path(value: str) -> str:
    """Reject paths that could land outside the store root."""
    for flavour in (PurePosixPath, PureWindowsPath):
        p: PurePath = flavour(value)
        if p.is_absolute() or p.anchor:
            raise ValueError(f"path must be relative to the store root, got: {value!r}")
        if ".." in p.parts:
            raise ValueError(f"path must not contain '..' segments, got: {value!r}")
    return value


# ─── Configuration ───────────────────────────────────────────────────────


class Entry(BaseModel):
    """One secret to materialize: vault item, extraction query, placement."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    query: str = Field(min_length=1)
    path: str = Field(min_length=1)
    public: bool = False
    links: list[str] | None = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return _check_store_path(v)

    @field_validator("links")
    @classmethod
    def validate_links(cls, v: list[str] | None) -> list[str] | None:
        if v is not None and any(not link.strip() for link in v):
            raise ValueError("links must not contain empty paths")
        return v


class PunlockConfiguration(BaseModel):
    """Validated contents of config.toml."""

    version: str = LATEST_CONFIGURATION_VERSION
    email: str
    domain: str = DEFAULT_DOMAIN
    entries: list[Entry] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_email(v):
            raise ValueError(f"invalid email {v!r}")
        return v

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        v = v.strip().removeprefix("https://").removeprefix("http://").rstrip("/")
        if not v:
            raise ValueError("domain must not be empty")
        return v


class ClientCredentials(BaseModel):
    """Vault API client id/secret pair from credentials.toml."""

    id: str = Field(min_length=1)
    secret: str = Field(min_length=1)


# ─── Vault API ───────────────────────────────────────────────────────────


class IdentityToken(BaseModel):
    """Response of the identity endpoint's client-credentials grant.

    The key-derivation fields are carried as opaque metadata; punlock never
    decrypts vault material itself.
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    expires_in: int = 0
    token_type: str = "Bearer"
    scope: str = ""

    kdf: int | None = Field(default=None, alias="Kdf")
    kdf_iterations: int | None = Field(default=None, alias="KdfIterations")
    kdf_memory: int | None = Field(default=None, alias="KdfMemory")
    kdf_parallelism: int | str | None = Field(default=None, alias="KdfParallelism")
    key: str | None = Field(default=None, alias="Key")
    private_key: str | None = Field(default=None, alias="PrivateKey")
    reset_master_password: bool = Field(default=False, alias="ResetMasterPassword")
