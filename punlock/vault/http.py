"""
HTTP backend — talks to the vault's identity and API endpoints with httpx.

    POST https://<domain>/identity/connect/token   client-credentials grant
    GET  https://<domain>/api/ciphers/<id>         bearer auth, item JSON

The credential asked for is the API client secret. When a stored secret is
available it is tried first, before prompting.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from punlock.config import APP_NAME
from punlock.errors import AuthError, FetchError, TransportError
from punlock.models import IdentityToken
from punlock.prompt import Prompter
from punlock.resolver import parse_document
from punlock.vault.base import LoginOutcome, VaultClient, VaultSession

logger = logging.getLogger(__name__)


class VaultUrls:
    """Endpoint layout of a vault server."""

    def __init__(self, domain: str):
        self.domain = domain

    def __repr__(self) -> str:
        return f"VaultUrls({self.domain!r})"

    @property
    def identity(self) -> str:
        return f"https://{self.domain}/identity/connect/token"

    def cipher(self, item_id: str) -> str:
        return f"https://{self.domain}/api/ciphers/{item_id}"


def _error_text(resp: httpx.Response) -> str:
    """Best human-readable error from a failed response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error_description", "message", "Message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = resp.text.strip()
    return text or f"HTTP {resp.status_code}"


class HttpVaultSession(VaultSession):
    """Bearer token from the identity endpoint plus its HTTP client."""

    def __init__(
        self,
        identity: str,
        token: IdentityToken,
        *,
        client: httpx.AsyncClient,
        urls: VaultUrls,
    ):
        super().__init__(identity, token.access_token)
        self.token = token
        self._client = client
        self._urls = urls

    async def get_item(self, item_id: str) -> Any:
        logger.debug("Requesting item %s", item_id)
        try:
            resp = await self._client.get(
                self._urls.cipher(item_id),
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"GET item {item_id}: {e}") from e
        if resp.is_error:
            raise FetchError(item_id, _error_text(resp))
        return parse_document(resp.content)

    async def _invalidate(self) -> None:
        await self._client.aclose()


class HttpVaultClient(VaultClient):
    """Unauthenticated API handle using the client-credentials grant."""

    def __init__(
        self,
        identity: str,
        prompter: Prompter,
        endpoint: str,
        *,
        client_id: str,
        client_secret: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(identity, prompter, endpoint)
        self.urls = VaultUrls(endpoint)
        self._client_id = client_id
        self._stored_secret = client_secret
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._identity_token: IdentityToken | None = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def _invalidate_existing(self) -> None:
        # Tokens are bearer-only; nothing is held server-side between runs.
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _apply_endpoint(self, endpoint: str) -> None:
        self.urls = VaultUrls(endpoint)

    def _credential_prompt(self) -> str:
        return f"Enter API client secret for {self.identity} ({self._client_id}): "

    def _next_credential(self) -> str:
        if self._stored_secret:
            secret, self._stored_secret = self._stored_secret, None
            return secret
        return super()._next_credential()

    async def _login(self, credential: str) -> LoginOutcome:
        form = {
            "grant_type": "client_credentials",
            "scope": "api",
            "client_id": self._client_id,
            "client_secret": credential,
            "device_identifier": APP_NAME,
            "device_type": APP_NAME,
            "device_name": APP_NAME,
        }
        logger.debug("Requesting token from %s", self.urls.identity)
        try:
            resp = await self._http().post(self.urls.identity, data=form)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {self.urls.identity}: {e}") from e
        if resp.is_error:
            raise AuthError(_error_text(resp))

        try:
            self._identity_token = IdentityToken.model_validate(resp.json())
        except ValueError as e:
            raise AuthError(f"unexpected identity response: {e}") from e
        return LoginOutcome(token=self._identity_token.access_token)

    def _open_session(self, token: str) -> HttpVaultSession:
        if self._identity_token is None:
            raise AuthError("no identity token issued for this session")
        return HttpVaultSession(
            self.identity, self._identity_token, client=self._http(), urls=self.urls
        )
