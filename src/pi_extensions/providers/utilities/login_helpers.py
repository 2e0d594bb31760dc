# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Pieces shared by the provider login flows."""

import re
import time
from typing import Optional

from ...core.host import OAuthLoginCallbacks
from ...core.types import OAuthCredentials

# Pasted keys and device tokens are treated as valid for a year
CREDENTIAL_LIFETIME_MS = 365 * 24 * 60 * 60 * 1000

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


def expires_in_a_year(now_ms: Optional[float] = None) -> int:
    current = now_ms if now_ms is not None else time.time() * 1000
    return int(current + CREDENTIAL_LIFETIME_MS)


def clean_api_key(raw: str) -> str:
    """Trim whitespace and a leading 'Bearer ' from a pasted key."""
    return _BEARER_PREFIX.sub("", (raw or "").strip())


async def paste_key_login(
    callbacks: OAuthLoginCallbacks, prompt: str, required_message: str
) -> OAuthCredentials:
    """
    Ask the user to paste an API key and store it as a long-lived credential.

    Raises:
        ValueError: When the pasted key is empty
    """
    key = clean_api_key(await callbacks.on_prompt({"message": prompt}))
    if not key:
        raise ValueError(required_message)
    return OAuthCredentials(access=key, refresh=key, expires=expires_in_a_year())


async def keep_credentials(credentials: OAuthCredentials) -> OAuthCredentials:
    """Refresh hook for keys that never expire server-side."""
    return credentials


def access_token(credentials: OAuthCredentials) -> str:
    return credentials.access
