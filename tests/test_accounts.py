# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import itertools
from datetime import timedelta

import pytest

from conftest import FIXED_NOW
from pi_extensions.accounts import (
    compute_urgency,
    format_balance,
    format_compact_remaining,
    format_expiry,
    format_relative_time,
    is_displayable,
    recommend_account,
    reorganize_keys,
    usage_warning,
    window_urgency,
)
from pi_extensions.core.types import RateWindow, UsageSnapshot

FIVE_HOURS = 5 * 3600
WEEK = 7 * 86400


def _window(used, hours_left, seconds=FIVE_HOURS, label="5h"):
    return RateWindow(
        label=label,
        used_percent=used,
        resets_at=FIXED_NOW + timedelta(hours=hours_left),
        window_seconds=seconds,
    )


# =============================================================================
# REORGANIZE
# =============================================================================


def test_reorganize_promotes_selected_and_renumbers():
    store = {
        "anthropic": "A",
        "zai": "Z",
        "anthropic-1": "B",
        "anthropic-2": "C",
    }
    result = reorganize_keys(store, "anthropic-2", "anthropic")
    assert result == {
        "zai": "Z",
        "anthropic": "C",
        "anthropic-1": "A",
        "anthropic-2": "B",
    }
    assert store["anthropic"] == "A"


def test_reorganize_keeps_every_value_once():
    store = {
        "openai-codex-3": "x",
        "openai-codex-work": "y",
        "openai-codex": "z",
        "anthropic": "a",
    }
    result = reorganize_keys(store, "openai-codex-work", "openai-codex")
    assert sorted(result.values()) == sorted(store.values())
    assert result["openai-codex"] == "y"
    assert result["openai-codex-1"] == "x"
    assert result["openai-codex-2"] == "z"
    assert result["anthropic"] == "a"


def test_reorganize_with_canonical_selected_only_renumbers():
    store = {"zai": "A", "zai-5": "B"}
    assert reorganize_keys(store, "zai", "zai") == {"zai": "A", "zai-1": "B"}


@pytest.mark.parametrize(
    "order", list(itertools.permutations(["p", "p-1", "p-2"]))
)
@pytest.mark.parametrize("selected", ["p", "p-1", "p-2"])
def test_reorganize_any_order_and_selection(order, selected):
    store = {"other": "O"}
    store.update({key: f"value of {key}" for key in order})

    result = reorganize_keys(store, selected, "p")

    provider_keys = [key for key in result if key == "p" or key.startswith("p-")]
    assert sorted(provider_keys) == ["p", "p-1", "p-2"]
    assert result["p"] == f"value of {selected}"
    assert sorted(result[key] for key in provider_keys) == sorted(
        f"value of {key}" for key in order
    )
    assert result["other"] == "O"


# =============================================================================
# URGENCY
# =============================================================================


def test_lower_usage_is_recommended():
    usages = {
        "anthropic": [_window(90, 5)],
        "anthropic-1": [_window(50, 5)],
    }
    assert compute_urgency(usages["anthropic"], FIXED_NOW) == pytest.approx(18.0)
    assert recommend_account(usages, FIXED_NOW) == "anthropic-1"


def test_past_reset_uses_minimum_remaining_time():
    window = RateWindow(
        "5h", 50, FIXED_NOW - timedelta(minutes=1), window_seconds=FIVE_HOURS
    )
    assert window_urgency(window, FIXED_NOW) == pytest.approx(500.0)


def test_day_scale_windows_measure_in_days():
    window = _window(70, 48, seconds=WEEK, label="week")
    assert window_urgency(window, FIXED_NOW) == pytest.approx(35.0)


def test_urgency_is_max_over_windows():
    snapshot = UsageSnapshot(
        provider="anthropic",
        display_name="claude",
        windows=[_window(10, 4), _window(70, 48, seconds=WEEK, label="week")],
    )
    assert compute_urgency(snapshot, FIXED_NOW) == pytest.approx(35.0)


def test_windows_without_reset_are_ignored():
    assert compute_urgency([RateWindow("5h", 80, None)], FIXED_NOW) is None
    assert recommend_account({"a": None, "b": []}, FIXED_NOW) is None


def test_ties_go_to_first_key():
    usages = {"b": [_window(20, 5)], "a": [_window(20, 5)]}
    assert recommend_account(usages, FIXED_NOW) == "b"


def test_usage_warning_thresholds():
    assert usage_warning([RateWindow("5h", 85)]) == "!!"
    assert usage_warning([RateWindow("5h", 10), RateWindow("week", 70)]) == "!"
    assert usage_warning([RateWindow("5h", 69.9)]) == ""
    assert usage_warning([]) == ""


# =============================================================================
# FORMATTING
# =============================================================================


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(minutes=59), "59m"),
        (timedelta(minutes=60), "1h"),
        (timedelta(hours=2, minutes=30), "2h 30m"),
        (timedelta(hours=25), "1d 1h"),
        (timedelta(seconds=-5), "now"),
    ],
)
def test_format_relative_time(delta, expected):
    assert format_relative_time(FIXED_NOW + delta, FIXED_NOW) == expected


def test_format_relative_time_uses_calendar_date_after_a_week():
    when = FIXED_NOW + timedelta(days=8)
    local = when.astimezone()
    assert format_relative_time(when, FIXED_NOW) == f"{local:%b} {local.day}"


def test_format_compact_remaining():
    assert (
        format_compact_remaining(
            FIXED_NOW + timedelta(hours=2, minutes=13), FIVE_HOURS, FIXED_NOW
        )
        == "2h13m"
    )
    assert (
        format_compact_remaining(
            FIXED_NOW + timedelta(days=3, hours=4), WEEK, FIXED_NOW
        )
        == "3d4h"
    )
    assert (
        format_compact_remaining(FIXED_NOW + timedelta(hours=5), WEEK, FIXED_NOW)
        == "5h"
    )
    assert format_compact_remaining(FIXED_NOW - timedelta(hours=1), None, FIXED_NOW) == "0h0m"


def test_format_expiry():
    now_ms = 1_700_000_000_000
    assert format_expiry(now_ms + int(1.5 * 86400000), now_ms) == "[2d]"
    assert format_expiry(now_ms - 1000, now_ms) == "[EXPIRED]"
    assert format_expiry(None, now_ms) == ""


def test_format_balance():
    assert format_balance("4.2") == "$4.20"
    assert format_balance(0) == "$0.00"
    assert format_balance(None) is None


def test_is_displayable():
    def snap(**kwargs):
        return UsageSnapshot(provider="zai", display_name="z.ai", **kwargs)

    assert not is_displayable(snap(error="no api key"))
    assert not is_displayable(snap(error="no credentials"))
    assert is_displayable(snap(error="http 500"))
    assert is_displayable(snap(error="timeout"))
    assert is_displayable(snap(plan="pro"))
    assert is_displayable(snap(windows=[RateWindow("5h", 1)]))
