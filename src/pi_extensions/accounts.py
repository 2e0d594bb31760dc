# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Multi-account helpers shared by the usage panel and the account pickers.

- Urgency scoring: how fast an account is burning through its quota windows
- Recommendation: the account with the most headroom
- Key reorganization: make one account canonical, renumber the rest
- Reset / expiry formatting for labels
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from .auth.store import matches_prefix
from .core.types import RateWindow, UsageSnapshot

lib_logger = logging.getLogger("pi_extensions")

# Remaining time never drops below this many units (hours or days)
MIN_REMAINING_UNITS = 0.1

# Windows at least this long are measured in days instead of hours
DAY_UNIT_THRESHOLD_SECONDS = 86400

CRITICAL_THRESHOLD = 85
WARNING_THRESHOLD = 70

# Errors that only mean "nothing configured"; such rows are hidden
NO_CREDENTIAL_ERRORS = ("no credentials", "no api key", "no token")


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# URGENCY
# =============================================================================


def window_urgency(window: RateWindow, now: Optional[datetime] = None) -> Optional[float]:
    """
    Urgency of a single window: used percent per remaining time unit.

    Returns None when the window lacks a usage figure or a reset time.
    """
    if window.used_percent is None or window.resets_at is None:
        return None
    seconds_left = (_as_aware(window.resets_at) - _now(now)).total_seconds()
    if window.window_seconds and window.window_seconds >= DAY_UNIT_THRESHOLD_SECONDS:
        units_left = seconds_left / 86400
    else:
        units_left = seconds_left / 3600
    return window.used_percent / max(MIN_REMAINING_UNITS, units_left)


def compute_urgency(
    usage: Union[UsageSnapshot, Iterable[RateWindow], None],
    now: Optional[datetime] = None,
) -> Optional[float]:
    """
    Highest window urgency for an account.

    Args:
        usage: A snapshot or its list of windows
        now: Reference time (defaults to the current UTC time)

    Returns:
        The maximum urgency over windows that have both a usage figure and a
        reset time, or None when no window qualifies. Lower is better.
    """
    if usage is None:
        return None
    windows = usage.windows if isinstance(usage, UsageSnapshot) else usage
    scores = [
        score
        for score in (window_urgency(w, now) for w in windows)
        if score is not None
    ]
    return max(scores) if scores else None


def recommend_account(
    usages: Mapping[str, Optional[Union[UsageSnapshot, Sequence[RateWindow]]]],
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Pick the key with the lowest urgency.

    Entries whose usage is None or has no computable urgency never win. Ties
    go to the first key in iteration order. Returns None when nothing is
    comparable.
    """
    best_key: Optional[str] = None
    lowest: Optional[float] = None
    for key, usage in usages.items():
        urgency = compute_urgency(usage, now)
        if urgency is None:
            continue
        if lowest is None or urgency < lowest:
            lowest = urgency
            best_key = key
    return best_key


def usage_warning(windows: Iterable[RateWindow]) -> str:
    """'!!' when any window is at or above 85 %, '!' at 70 %, else ''."""
    peak = max((w.used_percent or 0 for w in windows), default=0)
    if peak >= CRITICAL_THRESHOLD:
        return "!!"
    if peak >= WARNING_THRESHOLD:
        return "!"
    return ""


# =============================================================================
# KEY REORGANIZATION
# =============================================================================


def reorganize_keys(
    store: Mapping[str, Any], selected_key: str, prefix: str
) -> Dict[str, Any]:
    """
    Make ``selected_key`` the canonical entry for ``prefix``.

    Every key equal to ``prefix`` or starting with ``prefix-`` is removed from
    a copy of the store. The selected entry is re-added under ``prefix`` and
    the remaining ones under ``prefix-1``, ``prefix-2``, ... in their original
    order. Unrelated keys keep their values. The input is not modified.
    """
    result = dict(store)
    provider_keys = [key for key in store if matches_prefix(key, prefix)]
    for key in provider_keys:
        del result[key]

    if selected_key in store:
        result[prefix] = store[selected_key]
    else:
        lib_logger.warning(
            f"Selected credential '{selected_key}' not found; renumbering only"
        )

    counter = 1
    used_numbers = set()
    for key in provider_keys:
        if key == selected_key:
            continue
        while counter in used_numbers:
            counter += 1
        result[f"{prefix}-{counter}"] = store[key]
        used_numbers.add(counter)
        counter += 1
    return result


# =============================================================================
# FORMATTING
# =============================================================================


def format_relative_time(when: datetime, now: Optional[datetime] = None) -> str:
    """
    Format a reset time relative to now.

    Examples:
        in 59 minutes -> "59m"
        in 60 minutes -> "1h"
        in 2h30m -> "2h 30m"
        in 25 hours -> "1d 1h"
        in 8 days -> "Oct 26" (local calendar date)
        in the past -> "now"
    """
    when = _as_aware(when)
    seconds = round((when - _now(now)).total_seconds())
    if seconds < 0:
        return "now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
    days = hours // 24
    if days < 7:
        return f"{days}d {hours % 24}h"
    local = when.astimezone()
    return f"{local:%b} {local.day}"


def format_compact_remaining(
    when: datetime,
    window_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Short countdown for picker labels.

    Hour-scale windows give '2h13m'; day-scale windows give '3d4h', or just
    '5h' in their final day.
    """
    seconds = max(0, int((_as_aware(when) - _now(now)).total_seconds()))
    if window_seconds and window_seconds >= DAY_UNIT_THRESHOLD_SECONDS:
        days, rest = divmod(seconds, 86400)
        hours = rest // 3600
        return f"{days}d{hours}h" if days > 0 else f"{hours}h"
    hours, rest = divmod(seconds, 3600)
    return f"{hours}h{rest // 60}m"


def format_expiry(expires_ms: Optional[int], now_ms: Optional[float] = None) -> str:
    """'[<n>d]' for days until expiry (rounded up), '[EXPIRED]' once past."""
    if not expires_ms:
        return ""
    current = now_ms if now_ms is not None else time.time() * 1000
    days = -(-(expires_ms - current) // 86400000)  # ceil
    return f"[{int(days)}d]" if days > 0 else "[EXPIRED]"


def format_balance(balance: Any) -> Optional[str]:
    """Credit balance as '$x.xx'; numeric strings are accepted."""
    if balance is None:
        return None
    try:
        value = float(balance)
    except (TypeError, ValueError):
        value = 0.0
    return f"${value:.2f}"


def is_displayable(snapshot: UsageSnapshot) -> bool:
    """
    Whether a snapshot gets a row in the usage panel.

    Rows that only say "nothing configured" are hidden; real errors such as
    "http 500" are kept even without windows.
    """
    return bool(
        snapshot.windows
        or snapshot.plan
        or snapshot.error not in NO_CREDENTIAL_ERRORS
    )
