# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Z.AI coding plan quota.

Endpoint:
    GET https://api.z.ai/api/monitor/usage/quota/limit

Response shape:
    {
        "success": true,
        "code": 200,
        "msg": "ok",
        "data": {
            "planName": "pro",
            "limits": [
                {"type": "TOKENS_LIMIT", "unit": 3, "number": 5,
                 "percentage": 12, "nextResetTime": 1767225600000},
                {"type": "TIME_LIMIT", "percentage": 3, ...}
            ]
        }
    }
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ...auth.store import entries_for_prefix, open_store, selected_key_for_prefix
from ...core.errors import FetchError, FetchErrorKind, FetchResult
from ...core.types import CredentialStore, RateWindow, UsageSnapshot
from .usage_fetcher import UsageFetcher, parse_timestamp

lib_logger = logging.getLogger("pi_extensions")

ZAI_QUOTA_URL = "https://api.z.ai/api/monitor/usage/quota/limit"

# limit.unit -> (label suffix, seconds per unit)
LIMIT_UNITS = {
    1: ("d", 86400),
    3: ("h", 3600),
    5: ("m", 60),
}

MONTH_SECONDS = 30 * 86400


@dataclass
class ZaiQuota:
    windows: List[RateWindow] = field(default_factory=list)
    plan: Optional[str] = None


def parse_zai_quota(data: Dict[str, Any]) -> FetchResult[ZaiQuota]:
    """Turn the quota payload into windows, or the API's own error."""
    if not data.get("success") or data.get("code") != 200:
        return FetchResult.failure(
            FetchError(FetchErrorKind.API, data.get("msg") or "api error")
        )

    payload = data.get("data") or {}
    windows: List[RateWindow] = []
    for limit in payload.get("limits") or []:
        unit = LIMIT_UNITS.get(limit.get("unit"))
        number = limit.get("number")
        if number is not None:
            number = int(number)
        percent = float(limit.get("percentage") or 0)
        resets_at = parse_timestamp(limit.get("nextResetTime"))

        if limit.get("type") == "TOKENS_LIMIT":
            label = f"{number}{unit[0]}" if unit and number is not None else "limit"
            seconds = int(number * unit[1]) if unit and number else None
            windows.append(RateWindow(label, percent, resets_at, seconds))
        elif limit.get("type") == "TIME_LIMIT":
            windows.append(RateWindow("month", percent, resets_at, MONTH_SECONDS))

    plan = payload.get("planName") or payload.get("plan") or None
    return FetchResult.success(ZaiQuota(windows=windows, plan=plan))


class ZaiUsageFetcher(UsageFetcher):
    """Fetches Z.AI quota windows for each stored API key."""

    provider = "zai"
    prefix = "zai"
    base_name = "z.ai"

    async def fetch_usage(
        self, api_key: str, client: Optional[httpx.AsyncClient] = None
    ) -> FetchResult[ZaiQuota]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        result = await self._get_json(ZAI_QUOTA_URL, headers, client)
        parsed = self._parse(result, parse_zai_quota)
        if not parsed.ok:
            return FetchResult.failure(parsed.error)
        quota = parsed.value
        if not quota.ok:
            lib_logger.warning(f"Z.AI quota request rejected: {quota.error}")
        return quota

    async def fetch_snapshot(
        self,
        api_key: str,
        auth_key: str = "zai",
        client: Optional[httpx.AsyncClient] = None,
    ) -> UsageSnapshot:
        result = await self.fetch_usage(api_key, client)
        snapshot = UsageSnapshot(
            provider=self.provider,
            display_name=self.display_name(auth_key),
            auth_key=auth_key,
        )
        if not result.ok:
            snapshot.error = str(result.error)
            return snapshot

        snapshot.windows = result.value.windows
        snapshot.plan = result.value.plan
        if not snapshot.windows and snapshot.plan:
            snapshot.display_name = f"{self.base_name} ({snapshot.plan})"
        return snapshot

    async def fetch_all(
        self,
        store: Optional[CredentialStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> List[UsageSnapshot]:
        """
        One snapshot per stored ``zai*`` key, else ``Z_AI_API_KEY``.

        Returns a single "no api key" snapshot when nothing is configured.
        """
        store = open_store() if store is None else store
        keys = entries_for_prefix(store, self.prefix)
        selected_key = selected_key_for_prefix(store, self.prefix)

        snapshots: List[UsageSnapshot] = []
        env_key = os.environ.get("Z_AI_API_KEY")
        if not keys and env_key:
            snapshot = await self.fetch_snapshot(env_key, self.prefix, client)
            snapshot.selected = True
            snapshots.append(snapshot)

        usable = [key for key in keys if store[key].key]
        results = await asyncio.gather(
            *(self.fetch_snapshot(store[key].key, key, client) for key in usable)
        )
        for key, snapshot in zip(usable, results):
            snapshot.selected = key == selected_key
            snapshots.append(snapshot)

        if not snapshots:
            snapshots.append(
                UsageSnapshot(
                    provider=self.provider,
                    display_name=self.base_name,
                    error=str(FetchError.no_credentials("no api key")),
                )
            )
        return snapshots
