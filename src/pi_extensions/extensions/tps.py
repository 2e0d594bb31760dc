# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Tokens-per-second summary after each agent run.

On ``agent_end`` the assistant messages of the run are summed and a one-line
notification is shown:

    ↑1.2k ↓35.0k R120.0k W2.1k $0.04 D12.3s 97.6tps [anthropic, me@example.com]
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from ..auth.store import load
from ..core.host import ExtensionAPI, ExtensionContext

lib_logger = logging.getLogger("pi_extensions")


def _field(obj: Any, *names: str) -> Any:
    """First present attribute or key among ``names``."""
    for name in names:
        if isinstance(obj, dict):
            if obj.get(name) is not None:
                return obj[name]
        elif getattr(obj, name, None) is not None:
            return getattr(obj, name)
    return None


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def format_count(n: float) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}m"
    if n >= 1_000:
        return f"{n / 1_000:.1f}k"
    return str(int(n))


def format_price(cost: float) -> str:
    return f"${cost:.2f}" if cost >= 0.01 else f"${cost:.4f}"


@dataclass
class RunTotals:
    input: float = 0
    output: float = 0
    cache_read: float = 0
    cache_write: float = 0
    cost: float = 0.0

    @classmethod
    def from_messages(cls, messages: Iterable[Any]) -> "RunTotals":
        totals = cls()
        for message in messages or []:
            if _field(message, "role") != "assistant":
                continue
            usage = _field(message, "usage")
            if usage is None:
                continue
            totals.input += _number(_field(usage, "input"))
            totals.output += _number(_field(usage, "output"))
            totals.cache_read += _number(_field(usage, "cacheRead", "cache_read"))
            totals.cache_write += _number(_field(usage, "cacheWrite", "cache_write"))
            cost = _field(usage, "cost")
            if cost is not None:
                totals.cost += _number(_field(cost, "total"))
        return totals


def login_label(provider: str, auth_file: Optional[Path] = None) -> str:
    """'provider, email' when auth.json has a cached email for the provider."""
    entry = load(auth_file).get(provider)
    if entry is not None and entry.email:
        return f"{provider}, {entry.email}"
    return provider


def format_summary(totals: RunTotals, elapsed: float, label: str) -> str:
    tps = totals.output / elapsed
    return (
        f"↑{format_count(totals.output)} ↓{format_count(totals.input)} "
        f"R{format_count(totals.cache_read)} W{format_count(totals.cache_write)} "
        f"{format_price(totals.cost)} D{elapsed:.1f}s {tps:.1f}tps [{label}]"
    )


class TurnTimer:
    """
    Per-extension run timer.

    ``started_at`` is set on agent_start and consumed by agent_end, so a
    summary is shown at most once per run.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        auth_file: Optional[Path] = None,
    ):
        self.clock = clock
        self.auth_file = auth_file
        self.started_at: Optional[float] = None

    def on_agent_start(self, _event: Any = None, _ctx: Any = None) -> None:
        self.started_at = self.clock()

    def on_agent_end(self, event: Any, ctx: ExtensionContext) -> Optional[str]:
        if not ctx.has_ui or self.started_at is None:
            return None
        elapsed = self.clock() - self.started_at
        self.started_at = None
        if elapsed <= 0:
            return None

        totals = RunTotals.from_messages(_field(event, "messages") or [])
        if totals.output <= 0:
            return None

        provider = _field(getattr(ctx, "model", None), "provider") or "?"
        message = format_summary(
            totals, elapsed, login_label(provider, self.auth_file)
        )
        ctx.ui.notify(message, "info")
        return message


def register(api: ExtensionAPI) -> TurnTimer:
    timer = TurnTimer()
    api.on("agent_start", timer.on_agent_start)
    api.on("agent_end", timer.on_agent_end)
    return timer
