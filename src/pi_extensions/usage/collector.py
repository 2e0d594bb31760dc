# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Concurrent usage collection for the usage panel.

Every provider fetch and status lookup runs at the same time under its own
outer deadline. A provider that misses its deadline is replaced by a single
"timeout" row; the others are unaffected.
"""

import asyncio
import logging
from typing import Awaitable, Dict, List, Optional, TypeVar

import httpx

from ..accounts import is_displayable
from ..auth.store import open_store
from ..config import status_race_timeout, usage_fetch_timeout, usage_race_timeout
from ..core.errors import FetchError
from ..core.host import ModelRegistry
from ..core.types import CredentialStore, ProviderStatus, UsageSnapshot
from ..providers.utilities import (
    AnthropicUsageFetcher,
    CodexUsageFetcher,
    StatusPageFetcher,
    ZaiUsageFetcher,
)

lib_logger = logging.getLogger("pi_extensions")

T = TypeVar("T")

# Provider id -> credential store prefix
PROVIDER_PREFIXES: Dict[str, str] = {
    "anthropic": "anthropic",
    "codex": "openai-codex",
    "zai": "zai",
}


def prefix_for_provider(provider: str) -> str:
    return PROVIDER_PREFIXES.get(provider, provider)


async def with_deadline(aw: Awaitable[T], seconds: float, fallback: T, label: str) -> T:
    """Await ``aw`` but give up after ``seconds`` and return ``fallback``."""
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError:
        lib_logger.warning(f"{label} did not finish within {seconds:.0f}s")
        return fallback


def _timeout_rows(provider: str, display_name: str) -> List[UsageSnapshot]:
    return [
        UsageSnapshot(
            provider=provider,
            display_name=display_name,
            error=str(FetchError.timeout()),
        )
    ]


async def collect_usage(
    model_registry: Optional[ModelRegistry] = None,
    client: Optional[httpx.AsyncClient] = None,
    store: Optional[CredentialStore] = None,
) -> List[UsageSnapshot]:
    """
    Fetch usage for every provider and attach status page results.

    Args:
        model_registry: Host registry; its auth storage is a Codex fallback
        client: Shared HTTP client (a private one is used when omitted)
        store: Credential store (opened from disk when omitted)

    Returns:
        Displayable snapshots in provider order: anthropic, codex, zai
    """
    if client is None:
        async with httpx.AsyncClient() as shared_client:
            return await collect_usage(model_registry, shared_client, store)

    store = open_store() if store is None else store
    auth_storage = getattr(model_registry, "auth_storage", None)

    fetch_timeout = usage_fetch_timeout()
    race_timeout = usage_race_timeout()
    status_timeout = status_race_timeout()

    anthropic = AnthropicUsageFetcher(fetch_timeout)
    codex = CodexUsageFetcher(fetch_timeout)
    zai = ZaiUsageFetcher(fetch_timeout)
    status = StatusPageFetcher(fetch_timeout)
    unknown = ProviderStatus(indicator="unknown")

    (
        claude_rows,
        codex_rows,
        zai_rows,
        claude_status,
        codex_status,
    ) = await asyncio.gather(
        with_deadline(
            anthropic.fetch_all(store, client),
            race_timeout,
            _timeout_rows(anthropic.provider, anthropic.base_name),
            "Anthropic usage",
        ),
        with_deadline(
            codex.fetch_all(store, auth_storage, client),
            race_timeout,
            _timeout_rows(codex.provider, codex.base_name),
            "Codex usage",
        ),
        with_deadline(
            zai.fetch_all(store, client),
            race_timeout,
            _timeout_rows(zai.provider, zai.base_name),
            "Z.AI usage",
        ),
        with_deadline(
            status.fetch_status("anthropic", client),
            status_timeout,
            unknown,
            "Anthropic status",
        ),
        with_deadline(
            status.fetch_status("codex", client),
            status_timeout,
            unknown,
            "OpenAI status",
        ),
    )

    for snapshot in claude_rows:
        snapshot.status = claude_status
    for snapshot in codex_rows:
        snapshot.status = codex_status

    rows = [*claude_rows, *codex_rows, *zai_rows]
    return [row for row in rows if is_displayable(row)]
