"""
Vault backends.

    client = BitwardenCliClient(email, prompter, endpoint=domain)
    session = await client.authenticate()      # retries until it succeeds
    secret = await session.fetch(entry)
    await session.logout()
"""

from punlock.vault.base import LoginOutcome, VaultClient, VaultSession
from punlock.vault.bw_cli import BitwardenCliClient, BitwardenCliSession
from punlock.vault.http import HttpVaultClient, HttpVaultSession

__all__ = [
    "BitwardenCliClient",
    "BitwardenCliSession",
    "HttpVaultClient",
    "HttpVaultSession",
    "LoginOutcome",
    "VaultClient",
    "VaultSession",
]
