# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Fetch error taxonomy.

Provider fetchers never raise to the UI layer. They return a FetchResult that
either carries a value or a FetchError whose kind lets callers tell a missing
credential apart from a network failure or a malformed response.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

import httpx

T = TypeVar("T")


class FetchErrorKind:
    """
    Categories of fetch failure.

    Used by the panels to decide whether a row is shown at all.
    """

    NO_CREDENTIALS = "no_credentials"  # Nothing configured; filterable
    TIMEOUT = "timeout"  # Per-call or outer deadline hit
    AUTH_EXPIRED = "auth_expired"  # 401/403 where the provider allows telling
    HTTP = "http"  # Any other non-2xx status
    NETWORK = "network"  # DNS, connection reset, TLS, ...
    MALFORMED = "malformed"  # Body was not the JSON shape we expected
    API = "api"  # Provider reported an error inside a 2xx body


@dataclass
class FetchError:
    """A classified fetch failure with the text shown to the user."""

    kind: str
    message: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return self.message

    @classmethod
    def no_credentials(cls, message: str = "no credentials") -> "FetchError":
        return cls(FetchErrorKind.NO_CREDENTIALS, message)

    @classmethod
    def timeout(cls) -> "FetchError":
        return cls(FetchErrorKind.TIMEOUT, "timeout")

    @classmethod
    def from_status(
        cls, status_code: int, auth_distinct: bool = False
    ) -> "FetchError":
        """
        Build an error for a non-2xx response.

        Args:
            status_code: HTTP status
            auth_distinct: Report 401/403 as "token expired" instead of "http <n>"
        """
        if auth_distinct and status_code in (401, 403):
            return cls(FetchErrorKind.AUTH_EXPIRED, "token expired", status_code)
        return cls(FetchErrorKind.HTTP, f"http {status_code}", status_code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "FetchError":
        if isinstance(exc, httpx.TimeoutException):
            return cls.timeout()
        if isinstance(exc, ValueError):
            # json.JSONDecodeError is a ValueError
            return cls(FetchErrorKind.MALFORMED, f"malformed response: {exc}")
        if isinstance(exc, httpx.HTTPError):
            return cls(FetchErrorKind.NETWORK, str(exc) or type(exc).__name__)
        return cls(FetchErrorKind.NETWORK, f"{type(exc).__name__}: {exc}")


@dataclass
class FetchResult(Generic[T]):
    """Value-or-error return type for fetchers."""

    value: Optional[T] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult[T]":
        return cls(error=error)
