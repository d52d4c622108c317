"""
Root-level shared test fixtures.

Inherited by tests/ and punlock/vault/tests/.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from punlock.config import RuntimeContext
from punlock.errors import FetchError
from punlock.prompt import Prompter
from punlock.vault.base import VaultSession


class FakeSession(VaultSession):
    """In-memory vault: item id → JSON document."""

    def __init__(self, items: dict[str, Any], identity: str = "me@example.com"):
        super().__init__(identity, "fake-token")
        self.items = items
        self.fetched: list[str] = []
        self.logged_out = False

    async def get_item(self, item_id: str) -> Any:
        self.fetched.append(item_id)
        if item_id not in self.items:
            raise FetchError(item_id, "Not found.")
        return self.items[item_id]

    async def _invalidate(self) -> None:
        self.logged_out = True


def scripted_prompter(secrets: list[str], lines: list[str] | None = None) -> Prompter:
    """Prompter answering from fixed lists; EOFError once exhausted."""
    secret_answers = iter(secrets)
    line_answers = iter(lines or [])

    def _next(answers):
        def read(prompt: str) -> str:
            try:
                return next(answers)
            except StopIteration:
                raise EOFError from None

        return read

    return Prompter(secret_reader=_next(secret_answers), line_reader=_next(line_answers))


@pytest.fixture
def clean_env(monkeypatch):
    """Remove env vars that leak between tests."""
    for key in [
        "PUNLOCK_BACKEND",
        "PUNLOCK_RUNTIME_DIR",
        "PUNLOCK_VOLATILE",
        "PUNLOCK_TMPFS_SIZE",
        "PUNLOCK_HTTP_TIMEOUT",
        "PUNLOCK_COMMAND_TIMEOUT",
        "PUNLOCK_BW_BIN",
        "PUNLOCK_LOG_LEVEL",
        "XDG_CONFIG_HOME",
        "XDG_RUNTIME_DIR",
        "SUDO_UID",
        "SUDO_GID",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def ctx(tmp_path: Path) -> RuntimeContext:
    """Runtime context rooted in a temp dir, tmpfs disabled."""
    home = tmp_path / "home"
    home.mkdir()
    return RuntimeContext(
        home=home,
        config_dir=home / ".config" / "punlock",
        runtime_dir=tmp_path / "run",
        volatile=False,
        http_timeout=5.0,
        command_timeout=5.0,
    )


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def make_prompter():
    return scripted_prompter
