"""
Materialization pipeline — fetch, place and link every configured entry.

One asyncio task per entry; tasks run independently and are joined at a
single point. Completions are logged in arrival order and one entry's
failure never cancels the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from punlock.errors import PunlockError
from punlock.models import Entry
from punlock.placer import reconcile_links, write_secret
from punlock.vault.base import VaultSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryResult:
    """Outcome of materializing one entry."""

    entry: Entry
    path: Path | None = None
    links_changed: int = 0
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def materialize(session: VaultSession, entry: Entry, root: Path, home: Path) -> EntryResult:
    """Fetch one entry's secret, write it under *root*, reconcile its links."""
    try:
        secret = await session.fetch(entry)
        path = await asyncio.to_thread(write_secret, root, entry, secret)
        changed = await asyncio.to_thread(reconcile_links, path, entry, home)
    except PunlockError as e:
        return EntryResult(entry=entry, error=e)
    except Exception as e:
        logger.exception("Unexpected failure materializing %s", entry.id)
        return EntryResult(entry=entry, error=e)
    return EntryResult(entry=entry, path=path, links_changed=changed)


async def write_secrets(
    session: VaultSession,
    entries: list[Entry],
    *,
    root: Path,
    home: Path,
) -> tuple[int, int]:
    """Materialize all *entries* concurrently.

    Returns:
        (success_count, total_count). Never raises for per-entry failures.
    """
    tasks = [
        asyncio.create_task(materialize(session, entry, root, home), name=f"entry:{entry.id}")
        for entry in entries
    ]

    ok = 0
    total = 0
    for next_done in asyncio.as_completed(tasks):
        result = await next_done
        total += 1
        if result.ok:
            ok += 1
            logger.info("Wrote %s to %s", result.entry.id, result.path)
        else:
            logger.error("Failed %s: %s", result.entry.id, result.error)

    logger.info("%d/%d secrets successfully written", ok, total)
    return ok, total
