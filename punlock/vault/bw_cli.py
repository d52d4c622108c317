"""
Process backend — drives the Bitwarden ``bw`` command-line tool.

    bw logout                                 drop a stale login
    bw config server <domain>                 select a self-hosted server
    bw login <email> <password> --raw         stdout: session token
    bw unlock <password> --raw                stdout: session token (already logged in)
    bw get item <id> --session <token>        stdout: item JSON
    bw logout --session <token>

A non-zero exit status is a failure; the trimmed stderr is surfaced in the
error message. Every invocation is bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from typing import Any

from punlock.errors import AuthError, FetchError, TransportError
from punlock.prompt import Prompter
from punlock.resolver import parse_document
from punlock.vault.base import LoginOutcome, VaultClient, VaultSession

logger = logging.getLogger(__name__)

ALREADY_LOGGED_IN_PREFIX = "You are already logged in as"


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()

    @property
    def output_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace").strip()


async def run_bw(
    bw_bin: str,
    *args: str,
    timeout: float,
    capture: bool = True,
) -> CommandResult:
    """Run one ``bw`` subcommand.

    Raises:
        TransportError: the process could not be spawned or timed out.
    """
    pipe = subprocess.PIPE if capture else subprocess.DEVNULL
    try:
        proc = await asyncio.create_subprocess_exec(
            bw_bin,
            *args,
            stdin=subprocess.DEVNULL,
            stdout=pipe,
            stderr=pipe,
        )
    except OSError as e:
        raise TransportError(f"cannot run {bw_bin} {args[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        raise TransportError(f"{bw_bin} {args[0]} timed out after {timeout:.0f}s") from None

    return CommandResult(proc.returncode or 0, stdout or b"", stderr or b"")


class BitwardenCliSession(VaultSession):
    """Session token issued by ``bw login``/``bw unlock``."""

    def __init__(self, identity: str, token: str, *, bw_bin: str = "bw", timeout: float = 60.0):
        super().__init__(identity, token)
        self._bw_bin = bw_bin
        self._timeout = timeout

    async def get_item(self, item_id: str) -> Any:
        result = await run_bw(
            self._bw_bin, "get", "item", item_id, "--session", self._token,
            timeout=self._timeout,
        )
        if not result.ok:
            raise FetchError(item_id, result.error_text or f"exit status {result.returncode}")
        return parse_document(result.stdout)

    async def _invalidate(self) -> None:
        await run_bw(
            self._bw_bin, "logout", "--session", self._token,
            timeout=self._timeout, capture=False,
        )


class BitwardenCliClient(VaultClient):
    """Unauthenticated ``bw`` handle; the credential is the master password."""

    def __init__(
        self,
        identity: str,
        prompter: Prompter,
        endpoint: str | None = None,
        *,
        bw_bin: str = "bw",
        timeout: float = 60.0,
    ):
        super().__init__(identity, prompter, endpoint)
        self._bw_bin = bw_bin
        self._timeout = timeout

    async def _invalidate_existing(self) -> None:
        await run_bw(self._bw_bin, "logout", timeout=self._timeout, capture=False)

    async def _apply_endpoint(self, endpoint: str) -> None:
        result = await run_bw(
            self._bw_bin, "config", "server", endpoint, timeout=self._timeout
        )
        if not result.ok:
            raise TransportError(f"bw config server: {result.error_text}")

    def _credential_prompt(self) -> str:
        if self.endpoint:
            return f"Enter password for bitwarden[{self.endpoint}] user {self.identity}: "
        return f"Enter password for bitwarden user {self.identity}: "

    async def _login(self, credential: str) -> LoginOutcome:
        result = await run_bw(
            self._bw_bin, "login", self.identity, credential, "--raw",
            timeout=self._timeout,
        )
        if result.ok:
            return LoginOutcome(token=result.output_text)

        if not result.error_text.startswith(ALREADY_LOGGED_IN_PREFIX):
            raise AuthError(result.error_text or f"bw login exit status {result.returncode}")

        # Logged in already; the same password unlocks a fresh session.
        unlocked = await run_bw(
            self._bw_bin, "unlock", credential, "--raw", timeout=self._timeout
        )
        if not unlocked.ok:
            raise AuthError(unlocked.error_text or f"bw unlock exit status {unlocked.returncode}")
        return LoginOutcome(token=unlocked.output_text, already_authenticated=True)

    def _open_session(self, token: str) -> BitwardenCliSession:
        return BitwardenCliSession(
            self.identity, token, bw_bin=self._bw_bin, timeout=self._timeout
        )
