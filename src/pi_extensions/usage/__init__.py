# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .collector import collect_usage, prefix_for_provider
from .session_costs import (
    DailyCost,
    ProviderCost,
    delete_provider_from_sessions,
    scan_session_logs,
)

__all__ = [
    "DailyCost",
    "ProviderCost",
    "collect_usage",
    "delete_provider_from_sessions",
    "prefix_for_provider",
    "scan_session_logs",
]
