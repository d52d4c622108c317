"""
Exception hierarchy for punlock.

Per-entry errors (FetchError, ResolveError subclasses, PlacementError) are
isolated to the entry that raised them. MountError and ConfigurationError
abort the whole run.
"""

from __future__ import annotations


class PunlockError(Exception):
    """Base class for every error raised by punlock."""


class ConfigurationError(PunlockError):
    """Configuration or credentials file missing or invalid."""


class AuthError(PunlockError):
    """A single login attempt was rejected. Retried, never surfaced."""


class TransportError(PunlockError):
    """Process spawn, network failure, or timeout talking to the vault."""


class FetchError(PunlockError):
    """The vault answered an item request with a non-success status."""

    def __init__(self, item_id: str, detail: str) -> None:
        self.item_id = item_id
        self.detail = detail
        super().__init__(f"fetching item {item_id} failed: {detail}")


class ResolveError(PunlockError):
    """A vault item could not be turned into a secret string."""


class ParseError(ResolveError):
    """Vault item payload is not valid JSON."""


class QueryError(ResolveError):
    """Extraction expression does not compile or cannot be applied."""


class ExtractionError(ResolveError):
    """Expression matched nothing, or matched a non-string node."""


class PlacementError(PunlockError):
    """Filesystem failure while placing a secret file or a link."""


class MountError(PunlockError):
    """Volatile storage could not be mounted at the store root."""
