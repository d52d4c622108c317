"""Tests for punlock.pipeline — concurrent per-entry materialization."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from punlock.errors import ExtractionError, FetchError
from punlock.models import Entry
from punlock.pipeline import materialize, write_secrets

ITEMS = {
    "item-1": {"login": {"password": "first"}},
    "item-2": {"login": {"password": None}},
    "item-3": {"notes": "third"},
}


@pytest.fixture
def root(tmp_path: Path) -> Path:
    r = tmp_path / "store"
    r.mkdir()
    return r


@pytest.fixture
def home(tmp_path: Path) -> Path:
    h = tmp_path / "home"
    h.mkdir()
    return h


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_success(self, fake_session, root, home):
        entry = Entry(id="item-1", query="login.password", path="a/pw", links=[".pw"])
        result = await materialize(fake_session(ITEMS), entry, root, home)
        assert result.ok
        assert result.path == root / "a" / "pw"
        assert result.links_changed == 1
        assert result.path.read_text() == "first\n"

    @pytest.mark.asyncio
    async def test_extraction_failure(self, fake_session, root, home):
        entry = Entry(id="item-2", query="login.password", path="pw")
        result = await materialize(fake_session(ITEMS), entry, root, home)
        assert not result.ok
        assert isinstance(result.error, ExtractionError)
        assert not (root / "pw").exists()

    @pytest.mark.asyncio
    async def test_fetch_failure(self, fake_session, root, home):
        entry = Entry(id="nope", query="notes", path="pw")
        result = await materialize(fake_session(ITEMS), entry, root, home)
        assert isinstance(result.error, FetchError)

    @pytest.mark.asyncio
    async def test_unexpected_error_captured(self, fake_session, root, home):
        session = fake_session(ITEMS)

        async def boom(item_id):
            raise RuntimeError("boom")

        session.get_item = boom
        result = await materialize(session, Entry(id="item-1", query="q", path="p"), root, home)
        assert isinstance(result.error, RuntimeError)


class TestWriteSecrets:
    @pytest.mark.asyncio
    async def test_partial_failure_isolated(self, fake_session, root, home, caplog):
        entries = [
            Entry(id="item-1", query="login.password", path="one", links=[".one"]),
            Entry(id="item-2", query="login.password", path="two"),
            Entry(id="item-3", query="notes", path="three"),
        ]
        with caplog.at_level(logging.INFO, logger="punlock.pipeline"):
            ok, total = await write_secrets(fake_session(ITEMS), entries, root=root, home=home)

        assert (ok, total) == (2, 3)
        assert (root / "one").read_text() == "first\n"
        assert (root / "three").read_text() == "third\n"
        assert not (root / "two").exists()
        assert (home / ".one").is_symlink()
        assert "2/3 secrets successfully written" in caplog.text
        assert "Failed item-2" in caplog.text

    @pytest.mark.asyncio
    async def test_empty(self, fake_session, root, home):
        assert await write_secrets(fake_session({}), [], root=root, home=home) == (0, 0)

    @pytest.mark.asyncio
    async def test_entries_run_concurrently(self, fake_session, root, home):
        started = asyncio.Event()
        both = asyncio.Event()
        arrivals = []

        session = fake_session(ITEMS)

        async def slow_get(item_id):
            arrivals.append(item_id)
            if len(arrivals) == 2:
                both.set()
            await asyncio.wait_for(both.wait(), timeout=2)
            started.set()
            return ITEMS[item_id]

        session.get_item = slow_get
        entries = [
            Entry(id="item-1", query="login.password", path="one"),
            Entry(id="item-3", query="notes", path="three"),
        ]
        assert await write_secrets(session, entries, root=root, home=home) == (2, 2)
        assert started.is_set()

    @pytest.mark.asyncio
    async def test_same_item_twice(self, fake_session, root, home):
        session = fake_session(ITEMS)
        entries = [
            Entry(id="item-1", query="login.password", path="a"),
            Entry(id="item-1", query="login.password", path="b", public=True),
        ]
        assert await write_secrets(session, entries, root=root, home=home) == (2, 2)
        assert session.fetched == ["item-1", "item-1"]
