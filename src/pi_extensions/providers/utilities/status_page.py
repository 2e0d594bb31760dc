# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Provider health from statuspage.io ``status.json`` documents.

Response shape:
    {"status": {"indicator": "minor", "description": "Partially Degraded Service"}}
"""

import logging
from typing import Optional

import httpx

from ...core.types import ProviderStatus
from .usage_fetcher import UsageFetcher

lib_logger = logging.getLogger("pi_extensions")

STATUS_URLS = {
    "anthropic": "https://status.anthropic.com/api/v2/status.json",
    "codex": "https://status.openai.com/api/v2/status.json",
    "copilot": "https://www.githubstatus.com/api/v2/status.json",
}

KNOWN_INDICATORS = ("none", "minor", "major", "critical", "maintenance")


class StatusPageFetcher(UsageFetcher):
    provider = "status"

    async def fetch_status(
        self, provider: str, client: Optional[httpx.AsyncClient] = None
    ) -> ProviderStatus:
        """
        Current status for a provider.

        Providers without a status page report "none"; any failure reports
        "unknown" so the panel simply omits the indicator.
        """
        url = STATUS_URLS.get(provider)
        if not url:
            return ProviderStatus(indicator="none")

        result = self._parse(
            await self._get_json(url, {"Accept": "application/json"}, client),
            lambda data: data.get("status") or {},
        )
        if not result.ok or not isinstance(result.value, dict):
            return ProviderStatus(indicator="unknown")

        status = result.value
        indicator = status.get("indicator") or "none"
        if indicator not in KNOWN_INDICATORS:
            lib_logger.debug(f"Unexpected status indicator for {provider}: {indicator}")
            indicator = "unknown"
        return ProviderStatus(
            indicator=indicator, description=status.get("description") or None
        )
