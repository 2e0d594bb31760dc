# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .errors import FetchError, FetchErrorKind, FetchResult
from .types import (
    AccountProfile,
    CredentialEntry,
    CredentialStore,
    ProviderStatus,
    RateWindow,
    UsageSnapshot,
)

__all__ = [
    "AccountProfile",
    "CredentialEntry",
    "CredentialStore",
    "FetchError",
    "FetchErrorKind",
    "FetchResult",
    "ProviderStatus",
    "RateWindow",
    "UsageSnapshot",
]
