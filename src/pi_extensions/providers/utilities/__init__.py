# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .anthropic_usage import AnthropicUsageFetcher
from .codex_usage import CodexUsageFetcher
from .status_page import StatusPageFetcher
from .usage_fetcher import UsageFetcher
from .zai_usage import ZaiUsageFetcher

__all__ = [
    "AnthropicUsageFetcher",
    "CodexUsageFetcher",
    "StatusPageFetcher",
    "UsageFetcher",
    "ZaiUsageFetcher",
]
