# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
ChatGPT / Codex subscription usage.

Endpoints:
    GET https://chatgpt.com/backend-api/wham/usage
    GET https://chatgpt.com/backend-api/wham/profile
    GET https://api.openai.com/v1/me               (email lookup only)

Usage response shape:
    {
        "plan_type": "plus",
        "rate_limit": {
            "primary_window": {"used_percent": 12, "reset_at": 1767225600,
                               "limit_window_seconds": 18000},
            "secondary_window": {...}
        },
        "credits": {"balance": "4.20"}
    }

Profile emails are cached on the credential entry after the first successful
lookup so later runs skip the extra request.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...accounts import format_balance
from ...auth.store import (
    cache_email,
    entries_for_prefix,
    open_store,
    selected_key_for_prefix,
)
from ...config import EMAIL_LOOKUP_TIMEOUT, codex_home
from ...core.errors import FetchError, FetchResult
from ...core.host import AuthStorage
from ...core.types import AccountProfile, CredentialStore, RateWindow, UsageSnapshot
from .usage_fetcher import UsageFetcher, parse_timestamp

lib_logger = logging.getLogger("pi_extensions")

CODEX_USAGE_URL = "https://chatgpt.com/backend-api/wham/usage"
CODEX_PROFILE_URL = "https://chatgpt.com/backend-api/wham/profile"
OPENAI_ME_URL = "https://api.openai.com/v1/me"

DEFAULT_PRIMARY_WINDOW_SECONDS = 10800
DEFAULT_SECONDARY_WINDOW_SECONDS = 7 * 86400


@dataclass
class CodexUsage:
    """Parsed wham/usage payload."""

    windows: List[RateWindow] = field(default_factory=list)
    plan_type: Optional[str] = None
    balance: Optional[str] = None  # "$x.xx"

    @property
    def plan(self) -> Optional[str]:
        """Plan with credit balance, e.g. 'plus ($4.20)'."""
        if self.balance is None:
            return self.plan_type
        if self.plan_type:
            return f"{self.plan_type} ({self.balance})"
        return self.balance


def _parse_window(
    raw: Dict[str, Any], label: Optional[str], default_seconds: int
) -> RateWindow:
    seconds = int(raw.get("limit_window_seconds") or default_seconds)
    return RateWindow(
        label=label or f"{round(seconds / 3600)}h",
        used_percent=float(raw.get("used_percent") or 0),
        resets_at=parse_timestamp(raw.get("reset_at"), epoch_unit="s"),
        window_seconds=seconds,
    )


def parse_codex_usage(data: Dict[str, Any]) -> CodexUsage:
    rate_limit = data.get("rate_limit") or {}
    windows = []
    if rate_limit.get("primary_window"):
        windows.append(
            _parse_window(
                rate_limit["primary_window"], None, DEFAULT_PRIMARY_WINDOW_SECONDS
            )
        )
    if rate_limit.get("secondary_window"):
        windows.append(
            _parse_window(
                rate_limit["secondary_window"],
                "week",
                DEFAULT_SECONDARY_WINDOW_SECONDS,
            )
        )

    credits = data.get("credits") or {}
    return CodexUsage(
        windows=windows,
        plan_type=data.get("plan_type") or None,
        balance=format_balance(credits.get("balance")),
    )


def parse_codex_profile(data: Dict[str, Any]) -> AccountProfile:
    account = data.get("account") or {}
    return AccountProfile(
        email=account.get("email") or None,
        full_name=account.get("full_name") or None,
        uuid=account.get("uuid") or None,
    )


def read_codex_cli_credentials(
    home: Optional[Path] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Token and account id from the Codex CLI's own auth.json.

    An ``OPENAI_API_KEY`` wins over the OAuth token pair.
    """
    path = (home or codex_home()) / "auth.json"
    if not path.exists():
        return None, None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        lib_logger.warning(f"Could not read Codex CLI credentials {path}: {e}")
        return None, None
    if not isinstance(data, dict):
        return None, None

    if data.get("OPENAI_API_KEY"):
        return data["OPENAI_API_KEY"], None
    tokens = data.get("tokens") or {}
    if tokens.get("access_token"):
        return tokens["access_token"], tokens.get("account_id")
    return None, None


class CodexUsageFetcher(UsageFetcher):
    """Fetches Codex rate windows, credits and profile for each stored account."""

    provider = "codex"
    prefix = "openai-codex"
    base_name = "codex"
    auth_errors_distinct = True

    def _headers(self, token: str, account_id: Optional[str]) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": "CodexBar",
            "Accept": "application/json",
        }
        if account_id:
            headers["ChatGPT-Account-Id"] = account_id
        return headers

    async def fetch_usage(
        self,
        token: str,
        account_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> FetchResult[CodexUsage]:
        result = await self._get_json(
            CODEX_USAGE_URL, self._headers(token, account_id), client
        )
        return self._parse(result, parse_codex_usage)

    async def fetch_profile(
        self,
        token: str,
        account_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> FetchResult[AccountProfile]:
        result = await self._get_json(
            CODEX_PROFILE_URL, self._headers(token, account_id), client
        )
        return self._parse(result, parse_codex_profile)

    async def fetch_email(
        self, token: str, client: Optional[httpx.AsyncClient] = None
    ) -> Optional[str]:
        """Best-effort email lookup via the OpenAI API."""
        result = await self._get_json(
            OPENAI_ME_URL,
            {"Authorization": f"Bearer {token}"},
            client,
            timeout=min(self.timeout, EMAIL_LOOKUP_TIMEOUT),
        )
        if not result.ok:
            return None
        email = result.value.get("email")
        return email if isinstance(email, str) and email else None

    def build_snapshot(
        self,
        usage: FetchResult[CodexUsage],
        auth_key: str,
        email: Optional[str] = None,
    ) -> UsageSnapshot:
        snapshot = UsageSnapshot(
            provider=self.provider,
            display_name=self.display_name(auth_key, email),
            auth_key=auth_key,
        )
        if usage.ok:
            snapshot.windows = usage.value.windows
            snapshot.plan = usage.value.plan
            snapshot.balance = usage.value.balance
        else:
            snapshot.error = str(usage.error)
        return snapshot

    async def fetch_snapshot(
        self,
        token: str,
        account_id: Optional[str] = None,
        auth_key: str = "openai-codex",
        cached_email: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> Tuple[UsageSnapshot, Optional[str]]:
        """
        Usage for one token, with the email lookup run alongside.

        Returns:
            (snapshot, email) where email is the cached or looked-up address
        """
        if cached_email:
            usage = await self.fetch_usage(token, account_id, client)
            email = cached_email
        else:
            usage, email = await asyncio.gather(
                self.fetch_usage(token, account_id, client),
                self.fetch_email(token, client),
            )
        return self.build_snapshot(usage, auth_key, email), email

    async def _fallback_credentials(
        self, auth_storage: Optional[AuthStorage]
    ) -> Tuple[Optional[str], Optional[str]]:
        """Token from the host's auth storage, else from the Codex CLI."""
        token, account_id = None, None
        if auth_storage is not None:
            try:
                token = await auth_storage.get_api_key(self.prefix)
                credential = auth_storage.get(self.prefix) or {}
                if credential.get("type") == "oauth":
                    account_id = credential.get("accountId")
            except Exception as e:
                lib_logger.warning(f"Host auth storage lookup failed: {e}")
        if not token:
            token, account_id = await asyncio.to_thread(read_codex_cli_credentials)
        return token, account_id

    async def fetch_all(
        self,
        store: Optional[CredentialStore] = None,
        auth_storage: Optional[AuthStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        auth_file: Optional[Path] = None,
    ) -> List[UsageSnapshot]:
        """
        One snapshot per stored ``openai-codex*`` account.

        With no stored accounts, the host auth storage and then
        ``$CODEX_HOME/auth.json`` are tried. Returns a single
        "no credentials" snapshot when nothing is configured.
        """
        store = open_store(auth_file) if store is None else store
        keys = entries_for_prefix(store, self.prefix)
        selected_key = selected_key_for_prefix(store, self.prefix)

        snapshots: List[UsageSnapshot] = []
        if not keys:
            token, account_id = await self._fallback_credentials(auth_storage)
            if token:
                snapshot, _ = await self.fetch_snapshot(
                    token, account_id, self.prefix, client=client
                )
                snapshot.selected = True
                snapshots.append(snapshot)

        usable = [key for key in keys if store[key].token]
        results = await asyncio.gather(
            *(
                self.fetch_snapshot(
                    store[key].token,
                    store[key].account_id,
                    key,
                    store[key].email,
                    client,
                )
                for key in usable
            )
        )
        for key, (snapshot, email) in zip(usable, results):
            snapshot.selected = key == selected_key
            snapshots.append(snapshot)
            if email and not store[key].email:
                store[key].email = email
                try:
                    cache_email(key, email, auth_file)
                except OSError as e:
                    lib_logger.warning(f"Could not cache email for '{key}': {e}")

        if not snapshots:
            snapshots.append(
                UsageSnapshot(
                    provider=self.provider,
                    display_name=self.base_name,
                    error=str(FetchError.no_credentials()),
                )
            )
        return snapshots
