# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Claude subscription usage.

Endpoints (OAuth access token as bearer):
    GET https://api.anthropic.com/api/oauth/usage    (anthropic-beta header)
    GET https://api.anthropic.com/api/oauth/profile

Usage response shape:
    {
        "five_hour": {"utilization": 42.0, "resets_at": "2026-01-01T12:00:00Z"},
        "seven_day": {"utilization": 10.0, "resets_at": "..."},
        "seven_day_sonnet": {"utilization": 3.0, "resets_at": null}
    }
"""

import asyncio
import json
import logging
import shutil
import subprocess
from typing import Any, Dict, List, Optional

import httpx

from ...auth.store import entries_for_prefix, open_store, selected_key_for_prefix
from ...core.errors import FetchError, FetchResult
from ...core.types import AccountProfile, CredentialStore, RateWindow, UsageSnapshot
from .usage_fetcher import UsageFetcher, parse_timestamp

lib_logger = logging.getLogger("pi_extensions")

ANTHROPIC_USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
ANTHROPIC_PROFILE_URL = "https://api.anthropic.com/api/oauth/profile"
ANTHROPIC_BETA = "oauth-2025-04-20"

KEYCHAIN_SERVICE = "Claude Code-credentials"
KEYCHAIN_REQUIRED_SCOPE = "user:profile"

FIVE_HOURS = 5 * 3600
SEVEN_DAYS = 7 * 86400


def parse_anthropic_usage(data: Dict[str, Any]) -> List[RateWindow]:
    """Map the usage payload to 5h / week / per-model windows."""
    windows: List[RateWindow] = []

    five_hour = data.get("five_hour") or {}
    if five_hour.get("utilization") is not None:
        windows.append(
            RateWindow(
                label="5h",
                used_percent=float(five_hour["utilization"]),
                resets_at=parse_timestamp(five_hour.get("resets_at")),
                window_seconds=FIVE_HOURS,
            )
        )

    seven_day = data.get("seven_day") or {}
    if seven_day.get("utilization") is not None:
        windows.append(
            RateWindow(
                label="week",
                used_percent=float(seven_day["utilization"]),
                resets_at=parse_timestamp(seven_day.get("resets_at")),
                window_seconds=SEVEN_DAYS,
            )
        )

    # Only one model-specific weekly window is shown; sonnet wins over opus
    model_label = "sonnet" if data.get("seven_day_sonnet") else "opus"
    model_window = data.get("seven_day_sonnet") or data.get("seven_day_opus") or {}
    if model_window.get("utilization") is not None:
        windows.append(
            RateWindow(
                label=model_label,
                used_percent=float(model_window["utilization"]),
                resets_at=parse_timestamp(model_window.get("resets_at")),
                window_seconds=SEVEN_DAYS,
            )
        )

    return windows


def parse_anthropic_profile(data: Dict[str, Any]) -> AccountProfile:
    account = data.get("account") or {}
    organization = data.get("organization") or {}

    plan = None
    if account.get("has_claude_max"):
        plan = "claude max"
    elif account.get("has_claude_pro"):
        plan = "claude pro"
    elif organization.get("organization_type") == "claude_team":
        plan = "team"

    return AccountProfile(
        email=account.get("email") or None,
        full_name=account.get("full_name") or None,
        uuid=account.get("uuid") or None,
        plan=plan,
    )


def read_keychain_token() -> Optional[str]:
    """
    Claude Code's OAuth token from the macOS keychain.

    Only returned when the stored token carries the profile scope, since the
    usage endpoint rejects tokens without it. Any failure yields None.
    """
    if shutil.which("security") is None:
        return None
    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        lib_logger.debug(f"Keychain lookup failed: {e}")
        return None

    raw = result.stdout.strip()
    if result.returncode != 0 or not raw:
        return None
    try:
        oauth = json.loads(raw).get("claudeAiOauth") or {}
    except (json.JSONDecodeError, AttributeError):
        lib_logger.debug("Keychain item is not valid JSON")
        return None

    if KEYCHAIN_REQUIRED_SCOPE in (oauth.get("scopes") or []):
        return oauth.get("accessToken") or None
    return None


class AnthropicUsageFetcher(UsageFetcher):
    """Fetches Claude quota windows and profile for each stored login."""

    provider = "anthropic"
    prefix = "anthropic"
    base_name = "claude"

    def _headers(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def fetch_usage(
        self, token: str, client: Optional[httpx.AsyncClient] = None
    ) -> FetchResult[List[RateWindow]]:
        headers = self._headers(token)
        headers["anthropic-beta"] = ANTHROPIC_BETA
        result = await self._get_json(ANTHROPIC_USAGE_URL, headers, client)
        return self._parse(result, parse_anthropic_usage)

    async def fetch_profile(
        self, token: str, client: Optional[httpx.AsyncClient] = None
    ) -> FetchResult[AccountProfile]:
        result = await self._get_json(
            ANTHROPIC_PROFILE_URL, self._headers(token), client
        )
        return self._parse(result, parse_anthropic_profile)

    async def fetch_snapshot(
        self,
        token: str,
        auth_key: str = "anthropic",
        client: Optional[httpx.AsyncClient] = None,
    ) -> UsageSnapshot:
        """Usage and profile for one token, fetched concurrently."""
        usage, profile_result = await asyncio.gather(
            self.fetch_usage(token, client), self.fetch_profile(token, client)
        )
        profile = profile_result.value or AccountProfile()
        snapshot = UsageSnapshot(
            provider=self.provider,
            display_name=self.display_name(auth_key, profile.email),
            plan=profile.plan,
        )
        if usage.ok:
            snapshot.windows = usage.value
        else:
            snapshot.error = str(usage.error)
            snapshot.plan = None
        return snapshot

    async def fetch_all(
        self,
        store: Optional[CredentialStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> List[UsageSnapshot]:
        """
        One snapshot per stored ``anthropic*`` login.

        Falls back to the keychain token when the store has no Anthropic
        entries. Returns a single "no credentials" snapshot when nothing is
        configured.
        """
        store = open_store() if store is None else store
        keys = entries_for_prefix(store, self.prefix)
        selected_key = selected_key_for_prefix(store, self.prefix)

        snapshots: List[UsageSnapshot] = []
        if not keys:
            token = await asyncio.to_thread(read_keychain_token)
            if token:
                lib_logger.debug("Using Claude Code keychain token")
                snapshots.append(await self.fetch_snapshot(token, client=client))

        usable = [key for key in keys if store[key].access]
        results = await asyncio.gather(
            *(self.fetch_snapshot(store[key].access, key, client) for key in usable)
        )
        for key, snapshot in zip(usable, results):
            snapshot.selected = key == selected_key
            snapshot.auth_key = key
            snapshots.append(snapshot)

        if not snapshots:
            snapshots.append(
                UsageSnapshot(
                    provider=self.provider,
                    display_name=self.base_name,
                    error=str(FetchError.no_credentials()),
                )
            )
        return snapshots
