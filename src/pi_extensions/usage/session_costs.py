# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Cost aggregation over the host's session logs.

Sessions live in ``~/.pi/agent/sessions/<session-dir>/<file>.jsonl``. Each line
is one JSON entry; assistant messages carry the provider, model and a
``usage.cost`` breakdown in dollars:

    {"type": "message", "timestamp": "2026-01-02T10:00:00Z",
     "message": {"role": "assistant", "provider": "anthropic",
                 "model": "claude-sonnet-4", "usage": {"cost": {
                     "input": 0.01, "output": 0.02, "cacheRead": 0.0,
                     "cacheWrite": 0.0, "total": 0.03}}}}
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..config import sessions_dir
from ..providers.utilities.usage_fetcher import parse_timestamp

lib_logger = logging.getLogger("pi_extensions")

PROVIDER_DISPLAY_NAMES = {
    "anthropic": "Claude",
    "openai": "OpenAI",
    "openai-codex": "Codex",
    "google": "Gemini",
    "google-gemini-cli": "Gemini",
    "github-copilot": "Copilot",
}


def format_provider_name(provider: str) -> str:
    return PROVIDER_DISPLAY_NAMES.get(provider, provider)


@dataclass
class DailyCost:
    date: str  # YYYY-MM-DD (UTC)
    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0
    total: float = 0.0
    requests: int = 0


@dataclass
class ProviderCost:
    provider: str
    display_name: str
    days: Dict[str, DailyCost] = field(default_factory=dict)
    total_cost: float = 0.0
    total_requests: int = 0
    models: Dict[str, float] = field(default_factory=dict)

    def top_models(self, limit: int = 3) -> List[tuple]:
        """(model, cost) pairs, most expensive first."""
        return sorted(self.models.items(), key=lambda item: item[1], reverse=True)[
            :limit
        ]

    def recent_days(self, limit: int = 5) -> List[DailyCost]:
        return sorted(self.days.values(), key=lambda d: d.date, reverse=True)[:limit]


def _session_files(root: Path) -> Iterator[Path]:
    if not root.is_dir():
        return
    for session in sorted(p for p in root.iterdir() if p.is_dir()):
        yield from sorted(session.glob("*.jsonl"))


def _assistant_message(entry: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(entry, dict) or entry.get("type") != "message":
        return None
    message = entry.get("message")
    if isinstance(message, dict) and message.get("role") == "assistant":
        return message
    return None


def _cost_value(cost: Dict[str, Any], name: str) -> float:
    try:
        return float(cost.get(name) or 0)
    except (TypeError, ValueError):
        return 0.0


def scan_session_file(
    path: Path,
    cutoff: Optional[datetime],
    costs: Dict[str, ProviderCost],
) -> None:
    """Add the assistant costs recorded in one session file to ``costs``."""
    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        lib_logger.warning(f"Could not read session log {path}: {e}")
        return

    with f:
        for line in f:
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue

            message = _assistant_message(entry)
            if message is None:
                continue
            usage = message.get("usage") or {}
            cost = usage.get("cost") if isinstance(usage, dict) else None
            if not isinstance(cost, dict):
                continue

            timestamp = parse_timestamp(
                entry.get("timestamp") or message.get("timestamp")
            )
            if timestamp is None:
                continue
            if cutoff is not None and timestamp < cutoff:
                continue

            provider = message.get("provider") or "unknown"
            model = message.get("model") or "unknown"
            date_key = timestamp.astimezone(timezone.utc).date().isoformat()

            pc = costs.get(provider)
            if pc is None:
                pc = costs[provider] = ProviderCost(
                    provider=provider, display_name=format_provider_name(provider)
                )
            day = pc.days.get(date_key)
            if day is None:
                day = pc.days[date_key] = DailyCost(date=date_key)

            total = _cost_value(cost, "total")
            day.input += _cost_value(cost, "input")
            day.output += _cost_value(cost, "output")
            day.cache_read += _cost_value(cost, "cacheRead")
            day.cache_write += _cost_value(cost, "cacheWrite")
            day.total += total
            day.requests += 1
            pc.total_cost += total
            pc.total_requests += 1
            pc.models[model] = pc.models.get(model, 0.0) + total


def scan_session_logs(
    days_back: Optional[int] = 30,
    root: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> List[ProviderCost]:
    """
    Aggregate assistant costs per provider.

    Args:
        days_back: Only count messages newer than this many days (None = all)
        root: Sessions directory (default ~/.pi/agent/sessions)
        now: Reference time for the cutoff

    Returns:
        Providers sorted by total cost, most expensive first
    """
    root = sessions_dir() if root is None else root
    cutoff = None
    if days_back is not None:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days_back)

    costs: Dict[str, ProviderCost] = {}
    for path in _session_files(root):
        scan_session_file(path, cutoff, costs)

    lib_logger.debug(
        f"Scanned session logs in {root}: {len(costs)} providers "
        f"(days_back={days_back})"
    )
    return sorted(costs.values(), key=lambda pc: pc.total_cost, reverse=True)


def _keep_line(line: str, provider: str) -> bool:
    try:
        entry = json.loads(line)
    except json.JSONDecodeError:
        return True
    message = _assistant_message(entry)
    if message is None:
        return True
    return (message.get("provider") or "unknown") != provider


def delete_provider_from_sessions(provider: str, root: Optional[Path] = None) -> int:
    """
    Remove a provider's assistant messages from every session log.

    Files that contain none of them are left untouched; the others are
    rewritten through a temp file. Blank lines are dropped from rewritten
    files.

    Returns:
        Number of removed lines
    """
    root = sessions_dir() if root is None else root
    removed = 0
    for path in _session_files(root):
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = [line.rstrip("\n") for line in f if line.strip()]
        kept = [line for line in lines if _keep_line(line, provider)]
        if len(kept) == len(lines):
            continue

        removed += len(lines) - len(kept)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write("\n".join(kept) + "\n" if kept else "")
        os.replace(tmp_path, path)

    lib_logger.info(f"Removed {removed} '{provider}' messages from session logs")
    return removed
