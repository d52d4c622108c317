"""
Test fixtures for the vault backends.

- FakeProcess stands in for asyncio subprocesses spawned by ``run_bw``
- scripted_bw patches process creation with a queue of canned results
- make_prompter is inherited from the root conftest.py
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import patch

import pytest


class FakeProcess:
    """Minimal asyncio.subprocess.Process replacement."""

    def __init__(self, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"", hang=False):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self.killed = False

    async def communicate(self) -> tuple[bytes, bytes]:
        if self._hang:
            await asyncio.sleep(3600)
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True
        self._hang = False

    async def wait(self) -> int:
        return self.returncode


class ScriptedBw:
    """Records every argv and answers with queued FakeProcess objects.

    A responder callable gets the argv (without the binary) and returns the
    FakeProcess for it; unmatched commands exit 0 with empty output.
    """

    def __init__(self, responder: Callable[[list[str]], FakeProcess | None] | None = None):
        self.calls: list[list[str]] = []
        self._responder = responder

    async def __call__(self, program: str, *args: str, **kwargs) -> FakeProcess:
        argv = list(args)
        self.calls.append(argv)
        if self._responder is not None:
            proc = self._responder(argv)
            if proc is not None:
                return proc
        return FakeProcess()

    def commands(self) -> list[str]:
        """First word of every invocation, in order."""
        return [argv[0] for argv in self.calls]


@pytest.fixture
def scripted_bw():
    """Factory: scripted_bw(responder) patches subprocess creation."""
    patches = []

    def _make(responder=None) -> ScriptedBw:
        fake = ScriptedBw(responder)
        p = patch("punlock.vault.bw_cli.asyncio.create_subprocess_exec", new=fake)
        p.start()
        patches.append(p)
        return fake

    yield _make
    for p in patches:
        p.stop()


@pytest.fixture
def proc():
    """The FakeProcess class, for building canned results."""
    return FakeProcess
