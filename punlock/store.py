"""
Ephemeral store — the directory every materialized secret lives under.

On Linux the root is a size-capped tmpfs so secrets never reach persistent
storage. Mounting needs root; when punlock is not running as root the mount
commands go through ``sudo`` and the root is chowned back to the invoking
user afterwards.

Lifecycle per run:
    teardown()   best-effort umount + delete of whatever the last run left
    setup()      mkdir 0755, mount tmpfs, chown  → MOUNTED

The store is not torn down at exit; consumers keep reading the secrets until
the next run replaces them. Only one punlock invocation may own a given root
at a time; nothing guards against concurrent runs.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
from enum import StrEnum
from pathlib import Path

from punlock.config import RuntimeContext
from punlock.errors import MountError, PlacementError

logger = logging.getLogger(__name__)

# Traversable by everyone so public (0444) secrets are reachable; private
# secrets are protected by their own 0400 bits.
ROOT_MODE = 0o755


class StoreState(StrEnum):
    UNMOUNTED = "unmounted"
    MOUNTED = "mounted"


class EphemeralStore:
    """Provision and tear down the store root."""

    def __init__(
        self,
        root: Path,
        *,
        volatile: bool = True,
        supports_volatile: bool = True,
        size: str = "16m",
        uid: int = -1,
        gid: int = -1,
        timeout: float = 60.0,
    ):
        self.root = root
        self.volatile = volatile and supports_volatile
        self._volatile_requested = volatile
        self.size = size
        self.uid = uid
        self.gid = gid
        self._timeout = timeout
        self.state = StoreState.UNMOUNTED

    @classmethod
    def from_context(cls, ctx: RuntimeContext) -> EphemeralStore:
        return cls(
            ctx.store_root,
            volatile=ctx.volatile,
            supports_volatile=ctx.supports_volatile,
            size=ctx.tmpfs_size,
            uid=ctx.uid,
            gid=ctx.gid,
            timeout=ctx.command_timeout,
        )

    async def _run_privileged(self, *cmd: str) -> tuple[int, str]:
        """Run *cmd* as root (directly, or via sudo). Returns (status, stderr)."""
        argv = list(cmd)
        if hasattr(os, "geteuid") and os.geteuid() != 0:
            argv = ["sudo", *argv]
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return -1, f"{argv[0]} timed out"
        return proc.returncode or 0, (stderr or b"").decode("utf-8", errors="replace").strip()

    async def teardown(self) -> None:
        """Remove whatever a previous run left at the root. Never raises."""
        if not self.root.exists():
            self.state = StoreState.UNMOUNTED
            return

        if os.path.ismount(self.root):
            try:
                status, err = await self._run_privileged("umount", str(self.root))
                if status != 0:
                    logger.warning("umount %s failed: %s", self.root, err)
            except OSError as e:
                logger.warning("umount %s failed: %s", self.root, e)

        try:
            await asyncio.to_thread(shutil.rmtree, self.root)
        except OSError as e:
            logger.error("Removing %s failed: %s", self.root, e)

        self.state = StoreState.UNMOUNTED
        logger.debug("Store %s torn down", self.root)

    async def setup(self) -> bool:
        """Create (and on Linux mount) the root.

        Returns:
            True when the root is backed by volatile memory.

        Raises:
            PlacementError: the root directory cannot be created.
            MountError: tmpfs could not be mounted or handed to the user.
        """
        try:
            self.root.mkdir(mode=ROOT_MODE, parents=True, exist_ok=True)
            self.root.chmod(ROOT_MODE)
        except OSError as e:
            raise PlacementError(f"cannot create store root {self.root}: {e}") from e

        if not self.volatile:
            if self._volatile_requested:
                logger.warning(
                    "Volatile storage is not supported on this platform; secrets in %s "
                    "are written to persistent storage",
                    self.root,
                )
            else:
                logger.warning(
                    "Volatile storage disabled; secrets in %s are written to "
                    "persistent storage",
                    self.root,
                )
            self.state = StoreState.MOUNTED
            return False

        options = f"size={self.size},mode={ROOT_MODE:04o}"
        try:
            status, err = await self._run_privileged(
                "mount", "-t", "tmpfs", "-o", options, "tmpfs", str(self.root)
            )
        except OSError as e:
            raise MountError(f"cannot mount tmpfs at {self.root}: {e}") from e
        if status != 0:
            raise MountError(f"cannot mount tmpfs at {self.root}: {err}")

        if self.uid >= 0 and self.gid >= 0:
            try:
                status, err = await self._run_privileged(
                    "chown", f"{self.uid}:{self.gid}", str(self.root)
                )
            except OSError as e:
                raise MountError(f"cannot chown {self.root}: {e}") from e
            if status != 0:
                raise MountError(f"cannot chown {self.root}: {err}")

        self.state = StoreState.MOUNTED
        logger.info("Mounted tmpfs (%s) at %s", self.size, self.root)
        return True
