# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
from datetime import timedelta

import pytest

from conftest import FIXED_NOW
from pi_extensions.usage.session_costs import (
    delete_provider_from_sessions,
    format_provider_name,
    scan_session_logs,
)


def _assistant(provider, model, total, days_ago, **cost):
    when = FIXED_NOW - timedelta(days=days_ago)
    return {
        "type": "message",
        "timestamp": when.isoformat().replace("+00:00", "Z"),
        "message": {
            "role": "assistant",
            "provider": provider,
            "model": model,
            "usage": {"cost": {"total": total, **cost}},
        },
    }


def _write_session(root, name, entries, extra_lines=()):
    session = root / name
    session.mkdir(parents=True, exist_ok=True)
    path = session / "log.jsonl"
    lines = [json.dumps(e) for e in entries] + list(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def sessions(tmp_path):
    root = tmp_path / "sessions"
    first = _write_session(
        root,
        "a",
        [
            {"type": "message", "message": {"role": "user", "content": "hi"}},
            _assistant("anthropic", "claude-sonnet-4", 0.5, 1, input=0.2, output=0.3),
            _assistant("anthropic", "claude-opus-4", 1.25, 2),
            _assistant("openai-codex", "gpt-5", 0.1, 1),
        ],
        extra_lines=["{broken", ""],
    )
    second = _write_session(
        root,
        "b",
        [
            _assistant("anthropic", "claude-sonnet-4", 2.0, 40),
            _assistant("zai", "glm-5", 0.05, 3),
        ],
    )
    third = _write_session(root, "c", [_assistant("openai-codex", "gpt-5", 0.2, 5)])
    return root, first, second, third


def test_scan_aggregates_recent_costs(sessions):
    root = sessions[0]
    costs = scan_session_logs(30, root, now=FIXED_NOW)

    assert [pc.provider for pc in costs] == ["anthropic", "openai-codex", "zai"]
    claude = costs[0]
    assert claude.display_name == "Claude"
    assert claude.total_cost == pytest.approx(1.75)
    assert claude.total_requests == 2
    assert claude.top_models(1) == [("claude-opus-4", 1.25)]

    recent = claude.recent_days()
    assert [d.date for d in recent] == ["2026-03-09", "2026-03-08"]
    assert recent[0].input == pytest.approx(0.2)
    assert recent[0].output == pytest.approx(0.3)

    assert costs[1].display_name == "Codex"
    assert costs[1].total_cost == pytest.approx(0.3)


def test_scan_all_time_includes_old_messages(sessions):
    costs = scan_session_logs(None, sessions[0], now=FIXED_NOW)
    claude = next(pc for pc in costs if pc.provider == "anthropic")
    assert claude.total_cost == pytest.approx(3.75)
    assert claude.total_requests == 3


def test_scan_missing_directory(tmp_path):
    assert scan_session_logs(7, tmp_path / "nope") == []


def test_delete_provider_rewrites_only_affected_files(sessions):
    root, first, second, third = sessions
    untouched = third.read_text(encoding="utf-8")

    removed = delete_provider_from_sessions("anthropic", root)

    assert removed == 3
    assert third.read_text(encoding="utf-8") == untouched
    first_lines = first.read_text(encoding="utf-8").splitlines()
    assert len(first_lines) == 3  # user message, codex message, broken line
    assert "{broken" in first_lines
    assert not list(root.rglob("*.tmp"))

    costs = scan_session_logs(None, root, now=FIXED_NOW)
    assert "anthropic" not in {pc.provider for pc in costs}


def test_format_provider_name():
    assert format_provider_name("anthropic") == "Claude"
    assert format_provider_name("kilo") == "kilo"
