# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Base class for provider usage fetchers.

Subclasses describe one provider (store prefix, display name, endpoints) and
turn its JSON into RateWindows. This base owns the HTTP plumbing: optional
client reuse, per-call timeouts and the conversion of every failure into a
FetchResult instead of an exception.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx

from ...core.errors import FetchError, FetchErrorKind, FetchResult

lib_logger = logging.getLogger("pi_extensions")

T = TypeVar("T")


def parse_timestamp(value: Any, epoch_unit: str = "ms") -> Optional[datetime]:
    """
    Parse a reset time from an API response.

    Args:
        value: ISO-8601 string, or epoch number
        epoch_unit: "ms" or "s" for numeric values

    Returns:
        Timezone-aware datetime or None
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000 if epoch_unit == "ms" else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if isinstance(value, str):
            if value.isdigit():
                return parse_timestamp(int(value), epoch_unit)
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
    except (ValueError, OverflowError, OSError):
        lib_logger.debug(f"Unparseable reset time: {value!r}")
    return None


class UsageFetcher:
    """
    Shared HTTP handling for the usage fetchers.

    Attributes set by subclasses:
        provider: Snapshot provider id ("anthropic", "codex", "zai")
        prefix: Credential store prefix ("anthropic", "openai-codex", "zai")
        base_name: Display name of the canonical account ("claude", ...)
        auth_errors_distinct: Report 401/403 as "token expired"
    """

    provider: str = ""
    prefix: str = ""
    base_name: str = ""
    auth_errors_distinct: bool = False

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def display_name(self, auth_key: Optional[str], email: Optional[str] = None) -> str:
        """'<base> (<email>)', '<base> (<key>)' for numbered keys, else '<base>'."""
        if email:
            return f"{self.base_name} ({email})"
        if auth_key and auth_key != self.prefix:
            return f"{self.base_name} ({auth_key})"
        return self.base_name

    async def _get_json(
        self,
        url: str,
        headers: Dict[str, str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult[Dict[str, Any]]:
        """
        GET a JSON document.

        Never raises: timeouts, transport errors, non-2xx statuses and bodies
        that are not JSON objects all come back as a FetchError.
        """
        timeout = self.timeout if timeout is None else timeout
        try:
            if client is not None:
                response = await client.get(url, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient() as new_client:
                    response = await new_client.get(
                        url, headers=headers, timeout=timeout
                    )

            if not response.is_success:
                error = FetchError.from_status(
                    response.status_code, self.auth_errors_distinct
                )
                lib_logger.warning(f"{self.provider} usage request failed: {error}")
                return FetchResult.failure(error)

            data = response.json()
            if not isinstance(data, dict):
                return FetchResult.failure(
                    FetchError.from_exception(ValueError("expected a JSON object"))
                )
            return FetchResult.success(data)

        except Exception as e:
            error = FetchError.from_exception(e)
            lib_logger.warning(
                f"Failed to fetch {self.provider} data from {url}: "
                f"{type(e).__name__}: {e}"
            )
            return FetchResult.failure(error)

    def _parse(
        self,
        result: FetchResult[Dict[str, Any]],
        parser: Callable[[Dict[str, Any]], T],
    ) -> FetchResult[T]:
        """
        Apply ``parser`` to a fetched document.

        A payload of the wrong shape (strings where numbers belong, lists
        where objects belong) becomes a MALFORMED error for this account only.
        """
        if not result.ok:
            return FetchResult.failure(result.error)
        try:
            return FetchResult.success(parser(result.value))
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            lib_logger.warning(
                f"Unexpected {self.provider} response shape: {type(e).__name__}: {e}"
            )
            return FetchResult.failure(
                FetchError(FetchErrorKind.MALFORMED, f"malformed response: {e}")
            )
