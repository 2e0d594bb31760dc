# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Account pickers for providers with several stored logins.

``claude-select`` and ``codex-select`` list every stored account with its
current quota, mark the one with the most headroom as recommended and make
the chosen one canonical in auth.json. The Codex usage widget shows the
active Codex account's quota whenever a Codex/OpenAI model is in use.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..accounts import (
    format_compact_remaining,
    format_expiry,
    format_relative_time,
    recommend_account,
    reorganize_keys,
    usage_warning,
)
from ..auth.store import cache_email, entries_for_prefix, open_store, save
from ..config import select_fetch_timeout
from ..core.host import ExtensionAPI, ExtensionContext
from ..core.types import (
    AccountProfile,
    CredentialEntry,
    CredentialStore,
    RateWindow,
)
from ..providers.utilities import AnthropicUsageFetcher, CodexUsageFetcher

lib_logger = logging.getLogger("pi_extensions")

CODEX_WIDGET_KEY = "codex-usage"


@dataclass
class AccountChoice:
    """One stored account with whatever could be fetched about it."""

    key: str
    entry: CredentialEntry
    windows: Optional[List[RateWindow]] = None  # None when usage is unavailable
    profile: AccountProfile = field(default_factory=AccountProfile)
    balance: Optional[str] = None

    @property
    def name(self) -> str:
        return (
            self.profile.email
            or self.profile.full_name
            or self.entry.email
            or self.key
        )


def build_label(choice: AccountChoice, recommended: bool = False, now=None) -> str:
    """
    Picker label, e.g.
    '! me@example.com | 5h: 72% (1h20m) | week: 30% (3d4h) [12d] (recommended)'.
    """
    label = choice.name
    windows = choice.windows or []
    warning = usage_warning(windows)
    if warning:
        label = f"{warning} {label}"

    parts = []
    for window in windows:
        part = f"{window.label}: {round(window.used_percent or 0)}%"
        if window.resets_at is not None:
            remaining = format_compact_remaining(
                window.resets_at, window.window_seconds, now
            )
            part += f" ({remaining})"
        parts.append(part)
    if choice.balance:
        parts.append(choice.balance)
    if parts:
        label += " | " + " | ".join(parts)

    expiry = format_expiry(choice.entry.expires)
    if expiry:
        label += f" {expiry}"
    if recommended:
        label += " (recommended)"
    return label


def dedupe_by_account(choices: List[AccountChoice]) -> List[AccountChoice]:
    """Drop later logins for an account uuid already listed; keep uuid-less ones."""
    seen = set()
    unique = []
    for choice in choices:
        uuid = choice.profile.uuid
        if uuid:
            if uuid in seen:
                continue
            seen.add(uuid)
        unique.append(choice)
    return unique


# =============================================================================
# PER-PROVIDER FETCHING
# =============================================================================


async def fetch_claude_choice(
    key: str,
    entry: CredentialEntry,
    client: httpx.AsyncClient,
    timeout: float,
    auth_file: Optional[Path] = None,
) -> AccountChoice:
    choice = AccountChoice(key=key, entry=entry)
    if not entry.is_oauth or not entry.access:
        return choice
    fetcher = AnthropicUsageFetcher(timeout)
    usage, profile = await asyncio.gather(
        fetcher.fetch_usage(entry.access, client),
        fetcher.fetch_profile(entry.access, client),
    )
    if usage.ok:
        choice.windows = usage.value
    if profile.ok:
        choice.profile = profile.value
    return choice


async def fetch_codex_choice(
    key: str,
    entry: CredentialEntry,
    client: httpx.AsyncClient,
    timeout: float,
    auth_file: Optional[Path] = None,
) -> AccountChoice:
    choice = AccountChoice(key=key, entry=entry)
    token = entry.token
    if not token:
        return choice
    account_id = entry.account_id if entry.is_oauth else None
    fetcher = CodexUsageFetcher(timeout)
    usage, profile = await asyncio.gather(
        fetcher.fetch_usage(token, account_id, client),
        fetcher.fetch_profile(token, account_id, client),
    )
    if usage.ok:
        choice.windows = usage.value.windows
        choice.balance = usage.value.balance
    if profile.ok:
        choice.profile = profile.value

    if not choice.profile.email and not entry.email:
        email = await fetcher.fetch_email(token, client)
        if email:
            choice.profile.email = email
            entry.email = email
            try:
                cache_email(key, email, auth_file)
            except OSError as e:
                lib_logger.warning(f"Could not cache email for '{key}': {e}")
    return choice


ChoiceFetcher = Callable[..., Awaitable[AccountChoice]]


@dataclass
class SelectorConfig:
    command: str
    description: str
    prefix: str
    title: str
    empty_message: str
    single_message: str
    unidentified_message: str
    fetch_choice: ChoiceFetcher


CLAUDE_SELECTOR = SelectorConfig(
    command="claude-select",
    description="Select an Anthropic API key to use",
    prefix="anthropic",
    title="Select Anthropic Login",
    empty_message="No Anthropic logins found in auth.json",
    single_message="Only one Anthropic login available",
    unidentified_message="Could not identify selected login",
    fetch_choice=fetch_claude_choice,
)

CODEX_SELECTOR = SelectorConfig(
    command="codex-select",
    description="Select a Codex account to use",
    prefix="openai-codex",
    title="Select Codex Account",
    empty_message="No Codex accounts found in auth.json",
    single_message="Only one Codex account available",
    unidentified_message="Could not identify selected account",
    fetch_choice=fetch_codex_choice,
)


# =============================================================================
# SELECT FLOW
# =============================================================================


async def run_selector(
    config: SelectorConfig,
    ctx: ExtensionContext,
    client: Optional[httpx.AsyncClient] = None,
    auth_file: Optional[Path] = None,
) -> Optional[str]:
    """
    Let the user pick the canonical account for ``config.prefix``.

    Returns:
        The store key that was selected, or None when nothing changed
    """
    store = open_store(auth_file)
    keys = entries_for_prefix(store, config.prefix)
    if not keys:
        ctx.ui.notify(config.empty_message, "warning")
        return None
    if len(keys) == 1:
        ctx.ui.notify(config.single_message, "info")
        return None

    timeout = select_fetch_timeout()
    if client is None:
        async with httpx.AsyncClient() as own_client:
            choices = await _fetch_choices(
                config, store, keys, own_client, timeout, auth_file
            )
    else:
        choices = await _fetch_choices(
            config, store, keys, client, timeout, auth_file
        )

    unique = dedupe_by_account(choices)
    best_key = recommend_account({choice.key: choice.windows for choice in unique})

    label_to_key: Dict[str, str] = {}
    labels: List[str] = []
    for choice in unique:
        label = build_label(choice, recommended=choice.key == best_key)
        if label in label_to_key:
            label = f"{label} [{choice.key}]"
        label_to_key[label] = choice.key
        labels.append(label)

    selected_label = await ctx.ui.select(config.title, labels)
    if not selected_label:
        return None
    selected_key = label_to_key.get(selected_label)
    if not selected_key:
        ctx.ui.notify(config.unidentified_message, "error")
        return None

    # Re-read so emails cached during the fetch are kept
    latest = open_store(auth_file)
    save(reorganize_keys(latest, selected_key, config.prefix), auth_file)
    lib_logger.info(f"Switched {config.prefix} to '{selected_key}'")

    chosen = next(choice for choice in unique if choice.key == selected_key)
    if config.prefix == CODEX_SELECTOR.prefix:
        await update_codex_widget(ctx, client, auth_file, force=True)
    await ctx.reload()
    ctx.ui.notify(f"Account switched to {chosen.name}", "success")
    return selected_key


async def _fetch_choices(
    config: SelectorConfig,
    store: CredentialStore,
    keys: List[str],
    client: httpx.AsyncClient,
    timeout: float,
    auth_file: Optional[Path],
) -> List[AccountChoice]:
    results = await asyncio.gather(
        *(
            config.fetch_choice(key, store[key], client, timeout, auth_file)
            for key in keys
        )
    )
    return list(results)


# =============================================================================
# CODEX USAGE WIDGET
# =============================================================================


def _model_provider(model: Any) -> str:
    if model is None:
        return ""
    if isinstance(model, dict):
        return model.get("provider") or ""
    return getattr(model, "provider", None) or ""


def codex_widget_line(
    email: str, windows: List[RateWindow], balance: Optional[str], now=None
) -> str:
    parts = []
    for window in windows:
        part = f"{round(window.used_percent or 0)}%"
        if window.resets_at is not None:
            part += f" {format_relative_time(window.resets_at, now)}"
        parts.append(part)
    if balance:
        parts.append(balance)
    return " • ".join([email, *parts])


async def update_codex_widget(
    ctx: ExtensionContext,
    client: Optional[httpx.AsyncClient] = None,
    auth_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """
    Show the canonical Codex account's quota in the ``codex-usage`` widget.

    Only runs while a Codex or OpenAI model is active (unless ``force``).
    Failures leave the widget as it was.
    """
    provider = _model_provider(getattr(ctx, "model", None))
    if not force and "codex" not in provider and "openai" not in provider:
        return

    try:
        store = open_store(auth_file)
        entry = store.get(CODEX_SELECTOR.prefix)
        if entry is None or not entry.token:
            return

        token = entry.token
        account_id = entry.account_id if entry.is_oauth else None
        fetcher = CodexUsageFetcher(select_fetch_timeout())
        usage, profile = await asyncio.gather(
            fetcher.fetch_usage(token, account_id, client),
            fetcher.fetch_profile(token, account_id, client),
        )
        if not usage.ok or not profile.ok:
            lib_logger.debug("Codex widget not updated: usage or profile unavailable")
            return

        email = profile.value.email or profile.value.full_name or entry.email
        if not email:
            email = await fetcher.fetch_email(token, client)
            if email:
                cache_email(CODEX_SELECTOR.prefix, email, auth_file)

        line = codex_widget_line(
            email or "Codex", usage.value.windows, usage.value.balance
        )
        ctx.ui.set_widget(CODEX_WIDGET_KEY, [line])
    except Exception as e:
        lib_logger.error(f"Error updating Codex usage widget: {e}")


# =============================================================================
# REGISTRATION
# =============================================================================


def _command_handler(config: SelectorConfig):
    async def handler(args: str, ctx: ExtensionContext) -> None:
        try:
            await run_selector(config, ctx)
        except Exception as e:
            lib_logger.error(f"{config.command} failed: {e}", exc_info=True)
            ctx.ui.notify(f"Error: {e}", "error")

    return handler


def register_claude_select(api: ExtensionAPI) -> None:
    api.register_command(
        CLAUDE_SELECTOR.command,
        {
            "description": CLAUDE_SELECTOR.description,
            "handler": _command_handler(CLAUDE_SELECTOR),
        },
    )


def register_codex_select(api: ExtensionAPI) -> None:
    async def on_widget_event(_event: Any, ctx: ExtensionContext) -> None:
        await update_codex_widget(ctx)

    api.on("session_start", on_widget_event)
    api.on("model_select", on_widget_event)
    api.register_command(
        CODEX_SELECTOR.command,
        {
            "description": CODEX_SELECTOR.description,
            "handler": _command_handler(CODEX_SELECTOR),
        },
    )


def register(api: ExtensionAPI) -> None:
    register_claude_select(api)
    register_codex_select(api)
