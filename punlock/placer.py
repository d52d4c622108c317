"""
Secure file placement — write a secret under the store root, harden its
permissions, and point the entry's links at it.

Layout:
    <store root>/<entry.path>      the secret, mode 0400 (0444 when public)
    <link>                         symlink → <store root>/<entry.path>

Relative links are resolved against the invoking user's home directory.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from punlock.errors import PlacementError
from punlock.models import Entry

logger = logging.getLogger(__name__)

PRIVATE_MODE = stat.S_IRUSR  # 0400
PUBLIC_MODE = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH  # 0444

HAS_POSIX_MODES = os.name == "posix"


def normalize_secret(secret: str | bytes) -> bytes:
    """Return the bytes to write: verbatim, ending in exactly one newline
    when the value did not already end in one."""
    data = secret.encode("utf-8") if isinstance(secret, str) else secret
    if not data.endswith(b"\n"):
        data += b"\n"
    return data


def destination_for(root: Path, entry: Entry) -> Path:
    return root / entry.path


def write_secret(root: Path, entry: Entry, secret: str | bytes) -> Path:
    """Write *secret* to ``root/entry.path`` and make it read-only.

    The bytes go to a temporary sibling first and replace the destination
    only once fully written, so a failed write leaves no partial file.
    """
    destination = destination_for(root, entry)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PlacementError(f"cannot create {destination.parent}: {e}") from e

    data = normalize_secret(secret)
    mode = PUBLIC_MODE if entry.public else PRIVATE_MODE

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=".punlock-", dir=destination.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        _harden(Path(tmp_name), mode)
        os.replace(tmp_name, destination)
        tmp_name = None
    except OSError as e:
        raise PlacementError(f"cannot write {destination}: {e}") from e
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)

    logger.debug("Wrote %s (mode %o)", destination, mode)
    return destination


def _harden(path: Path, mode: int) -> None:
    if HAS_POSIX_MODES:
        path.chmod(mode)
        return
    # Only the read-only flag exists here; owner-only access is not enforced.
    path.chmod(stat.S_IREAD)
    if mode == PRIVATE_MODE:
        logger.warning(
            "%s is read-only but readable by other users: this platform has no "
            "POSIX permission bits",
            path,
        )


def resolve_link(link: str, home: Path) -> Path:
    p = Path(link).expanduser()
    return p if p.is_absolute() else home / p


def reconcile_links(destination: Path, entry: Entry, home: Path) -> int:
    """Make every link of *entry* a symlink to *destination*.

    Links already pointing at *destination* are left alone, so repeated runs
    are no-ops. Anything else at a link path is replaced. Removal and
    creation are two steps; a crash in between leaves the link missing until
    the next run recreates it.

    Returns:
        Number of links created or replaced.
    """
    changed = 0
    for link in entry.links or []:
        target = resolve_link(link, home)
        try:
            if _reconcile_one(destination, target):
                changed += 1
                logger.info("Linked %s -> %s", target, destination)
            else:
                logger.debug("Link %s already points at %s", target, destination)
        except OSError as e:
            raise PlacementError(f"cannot link {target} -> {destination}: {e}") from e
    return changed


def _reconcile_one(destination: Path, target: Path) -> bool:
    target.parent.mkdir(parents=True, exist_ok=True)

    if target.is_symlink():
        if Path(os.readlink(target)) == destination:
            return False
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)
    elif target.exists():
        target.unlink()

    target.symlink_to(destination, target_is_directory=destination.is_dir())
    return True
