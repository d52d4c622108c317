"""
Vault backend contract.

An unauthenticated ``VaultClient`` can only ``authenticate()``; doing so
yields a ``VaultSession``, the only type that can ``fetch()`` items and
``logout()``. Pipeline code depends on these two types, never on a concrete
backend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from punlock.errors import AuthError, TransportError
from punlock.models import Entry
from punlock.prompt import Prompter
from punlock.resolver import resolve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginOutcome:
    """Result of one login attempt."""

    token: str = ""
    already_authenticated: bool = False


class VaultSession(ABC):
    """An authenticated capability for one identity."""

    def __init__(self, identity: str, token: str):
        self.identity = identity
        self._token = token

    def __repr__(self) -> str:
        return f"<{type(self).__name__} identity={self.identity!r}>"

    @abstractmethod
    async def get_item(self, item_id: str) -> Any:
        """Return the parsed JSON document for *item_id*.

        Raises:
            TransportError, FetchError, ParseError
        """

    @abstractmethod
    async def _invalidate(self) -> None:
        """Backend-specific logout. May raise; ``logout`` swallows."""

    async def fetch(self, entry: Entry) -> str:
        """Fetch the entry's item and extract its secret string."""
        document = await self.get_item(entry.id)
        return resolve(document, entry.query)

    async def logout(self) -> None:
        """Best-effort invalidation. Never raises."""
        try:
            await self._invalidate()
            logger.debug("Logged out %s", self.identity)
        except Exception as e:
            logger.warning("Logout for %s failed: %s", self.identity, e)


class VaultClient(ABC):
    """Unauthenticated vault handle. Retries login until it succeeds."""

    def __init__(self, identity: str, prompter: Prompter, endpoint: str | None = None):
        self.identity = identity
        self.endpoint = endpoint
        self._prompter = prompter

    @abstractmethod
    async def _invalidate_existing(self) -> None:
        """Drop any session left over from a previous run."""

    @abstractmethod
    async def _apply_endpoint(self, endpoint: str) -> None:
        """Point the backend at a non-default server."""

    @abstractmethod
    def _credential_prompt(self) -> str:
        """Text shown when asking for the credential."""

    @abstractmethod
    async def _login(self, credential: str) -> LoginOutcome:
        """Submit one credential.

        Raises:
            AuthError: the backend rejected the credential.
            TransportError: the backend could not be reached.
        """

    @abstractmethod
    def _open_session(self, token: str) -> VaultSession:
        """Wrap a token in the backend's session type."""

    def _next_credential(self) -> str:
        return self._prompter.secret(self._credential_prompt())

    async def authenticate(self) -> VaultSession:
        """Log in, asking for the credential as many times as it takes.

        No retry cap: the loop ends when the operator supplies a working
        credential or kills the process.
        """
        try:
            await self._invalidate_existing()
        except Exception as e:
            logger.debug("Invalidating previous session failed: %s", e)

        if self.endpoint:
            try:
                await self._apply_endpoint(self.endpoint)
                logger.debug("Vault endpoint set to %s", self.endpoint)
            except Exception as e:
                logger.error("Setting vault endpoint %s failed: %s", self.endpoint, e)

        attempt = 0
        while True:
            credential = self._next_credential()
            if not credential.strip():
                continue

            attempt += 1
            try:
                outcome = await self._login(credential)
            except (AuthError, TransportError) as e:
                logger.error("Login attempt %d for %s failed: %s", attempt, self.identity, e)
                continue

            if outcome.already_authenticated:
                logger.info("Vault reports %s is already logged in", self.identity)

            token = outcome.token.strip()
            if not token:
                logger.error("Login attempt %d for %s returned no session", attempt, self.identity)
                continue

            logger.info("Authenticated %s after %d attempt(s)", self.identity, attempt)
            return self._open_session(token)
