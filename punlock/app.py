"""
One punlock run, start to finish.

    config → vault client → authenticate → store teardown/setup
           → write_secrets → logout → exit code

With no entries configured the store is still reset, then the run ends.

Exit codes:
    0  every entry was materialized
    1  at least one entry failed (the others were still written)
    2  fatal: bad configuration, store could not be provisioned, unusable input
"""

from __future__ import annotations

import logging
from pathlib import Path

from punlock.config import Backend, RuntimeContext
from punlock.errors import ConfigurationError, MountError, PlacementError
from punlock.loader import load_config, load_credentials, save_config, save_credentials
from punlock.models import PunlockConfiguration
from punlock.pipeline import write_secrets
from punlock.prompt import Prompter
from punlock.store import EphemeralStore
from punlock.vault import BitwardenCliClient, HttpVaultClient, VaultClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def build_client(
    ctx: RuntimeContext,
    config: PunlockConfiguration,
    prompter: Prompter,
) -> VaultClient:
    """Create the unauthenticated client for the configured backend."""
    if ctx.backend == Backend.API:
        credentials = load_credentials(ctx.credentials_path, prompter)
        try:
            save_credentials(credentials, ctx.credentials_path)
        except OSError as e:
            logger.warning("Unable to write credentials to %s: %s", ctx.credentials_path, e)
        return HttpVaultClient(
            config.email,
            prompter,
            config.domain,
            client_id=credentials.id,
            client_secret=credentials.secret,
            timeout=ctx.http_timeout,
        )

    endpoint = None if config.domain == ctx.default_domain else config.domain
    return BitwardenCliClient(
        config.email,
        prompter,
        endpoint,
        bw_bin=ctx.bw_bin,
        timeout=ctx.command_timeout,
    )


async def _provision(store: EphemeralStore) -> bool:
    """Replace whatever a previous run left with a fresh, empty root."""
    await store.teardown()
    return await store.setup()


async def run(
    ctx: RuntimeContext,
    *,
    config_path: Path | None = None,
    prompter: Prompter | None = None,
    store: EphemeralStore | None = None,
) -> int:
    """Materialize every configured secret. Returns the process exit code."""
    prompter = prompter or Prompter()
    store = store or EphemeralStore.from_context(ctx)

    try:
        config = load_config(ctx, prompter, config_path)
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_FATAL
    except (EOFError, OSError) as e:
        logger.error(
            "No email configured and standard input is unusable: %s", str(e) or "closed"
        )
        return EXIT_FATAL

    try:
        save_config(config, ctx.config_path)
    except OSError as e:
        logger.warning("Unable to write configuration to %s: %s", ctx.config_path, e)

    if not config.entries:
        # Secrets from a previous run must not outlive their entries.
        try:
            await _provision(store)
        except (MountError, PlacementError) as e:
            logger.error("Cannot provision secret store: %s", e)
            return EXIT_FATAL
        logger.warning("No entries configured; nothing to do")
        return EXIT_OK

    try:
        client = build_client(ctx, config, prompter)
        session = await client.authenticate()
    except (EOFError, OSError) as e:
        logger.error(
            "Standard input unusable before a credential was entered: %s", str(e) or "closed"
        )
        return EXIT_FATAL

    try:
        volatile = await _provision(store)
    except (MountError, PlacementError) as e:
        logger.error("Cannot provision secret store: %s", e)
        await session.logout()
        return EXIT_FATAL
    if not volatile:
        logger.warning("Secrets are NOT on volatile storage: %s", store.root)

    try:
        ok, total = await write_secrets(session, config.entries, root=store.root, home=ctx.home)
    finally:
        await session.logout()

    return EXIT_OK if ok == total else EXIT_PARTIAL
