# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""``cost [days]`` command: spend per provider from the session logs."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from ..config import default_cost_days
from ..core.host import ExtensionAPI, ExtensionContext, Theme, TUI
from ..ui.keys import Key, matches_key
from ..ui.panel import BoxRenderer
from ..usage.session_costs import (
    ProviderCost,
    delete_provider_from_sessions,
    scan_session_logs,
)

lib_logger = logging.getLogger("pi_extensions")

MAX_PANEL_WIDTH = 65
MODEL_NAME_LIMIT = 25
TOP_MODELS = 3
RECENT_DAYS = 5

# (label, days back); None means no cutoff
Tab = Tuple[str, Optional[int]]


def build_tabs(custom_days: Optional[int] = None) -> Tuple[List[Tab], int]:
    """
    Tabs for the panel and the index of the one shown first.

    A custom day count matching a built-in tab selects that tab instead of
    adding a new one.
    """
    tabs: List[Tab] = [("week", 7), ("month", default_cost_days()), ("all", None)]
    if custom_days is None:
        return tabs, 1
    for idx, (_, days) in enumerate(tabs):
        if days == custom_days:
            return tabs, idx
    tabs.append((f"{custom_days}d", custom_days))
    return tabs, len(tabs) - 1


def parse_days(args: Optional[str]) -> Optional[int]:
    """Positive day count from the command argument, else None."""
    try:
        days = int((args or "").strip())
    except ValueError:
        return None
    return days if days > 0 else None


def shorten_model(model: str) -> str:
    if len(model) > MODEL_NAME_LIMIT:
        return model[: MODEL_NAME_LIMIT - 3] + "..."
    return model


class CostPanel:
    """Per-provider cost report with tabs for the time range."""

    def __init__(
        self,
        tui: TUI,
        theme: Theme,
        on_close: Callable[[], None],
        custom_days: Optional[int] = None,
        sessions_root: Optional[Path] = None,
    ):
        self.tui = tui
        self.theme = theme
        self.on_close = on_close
        self.sessions_root = sessions_root
        self.tabs, self.tab_index = build_tabs(custom_days)

        self.costs: List[ProviderCost] = []
        self.cursor = 0
        self.expanded: Optional[str] = None
        self.loading = True
        self.busy = False
        self.task: Optional[asyncio.Task] = None
        self.reload()

    @property
    def days_back(self) -> Optional[int]:
        return self.tabs[self.tab_index][1]

    def reload(self) -> None:
        """Rescan the logs for the active tab in the background."""
        self.loading = True
        self.tui.request_render()
        self.task = asyncio.get_running_loop().create_task(self._load())

    async def _load(self) -> None:
        try:
            costs = await asyncio.to_thread(
                scan_session_logs, self.days_back, self.sessions_root
            )
        except OSError as e:
            lib_logger.error(f"Could not scan session logs: {e}")
            costs = []
        self.costs = costs
        self.cursor = min(self.cursor, max(0, len(costs) - 1))
        self.loading = False
        self.tui.request_render()

    async def _delete(self, provider: str) -> None:
        self.busy = True
        self.tui.request_render()
        try:
            await asyncio.to_thread(
                delete_provider_from_sessions, provider, self.sessions_root
            )
        except OSError as e:
            lib_logger.error(f"Could not remove '{provider}' from session logs: {e}")
        else:
            self.costs = [pc for pc in self.costs if pc.provider != provider]
            if self.expanded == provider:
                self.expanded = None
            self.cursor = min(self.cursor, max(0, len(self.costs) - 1))
        finally:
            self.busy = False
            self.tui.request_render()

    # =========================================================================
    # INPUT
    # =========================================================================

    def handle_input(self, data: str) -> None:
        if matches_key(data, Key.escape):
            self.on_close()
            return
        if self.loading or self.busy:
            return

        if matches_key(data, Key.left):
            self.tab_index = (self.tab_index - 1) % len(self.tabs)
            self.expanded = None
            self.reload()
        elif matches_key(data, Key.right):
            self.tab_index = (self.tab_index + 1) % len(self.tabs)
            self.expanded = None
            self.reload()
        elif not self.costs:
            return
        elif matches_key(data, Key.up):
            self.cursor = (self.cursor - 1) % len(self.costs)
            self.tui.request_render()
        elif matches_key(data, Key.down):
            self.cursor = (self.cursor + 1) % len(self.costs)
            self.tui.request_render()
        elif matches_key(data, Key.enter):
            provider = self.costs[self.cursor].provider
            self.expanded = None if self.expanded == provider else provider
            self.tui.request_render()
        elif matches_key(data, Key.backspace):
            provider = self.costs[self.cursor].provider
            self.task = asyncio.get_running_loop().create_task(self._delete(provider))

    # =========================================================================
    # RENDERING
    # =========================================================================

    def _title(self) -> str:
        if self.days_back is None:
            return "cost (all time)"
        return f"cost ({self.days_back} days)"

    def _tab_line(self, box: BoxRenderer) -> str:
        parts = []
        for idx, (label, _) in enumerate(self.tabs):
            if idx == self.tab_index:
                parts.append(box.bold(box.accent(f"[{label}]")))
            else:
                parts.append(box.dim(f" {label} "))
        return " ".join(parts)

    def _provider_lines(self, box: BoxRenderer, idx: int, pc: ProviderCost) -> List[str]:
        t = self.theme
        color = "warning" if pc.total_cost > 1 else "success"
        mark = box.bold(box.accent("> ")) if idx == self.cursor else "  "
        lines = [
            box.row(
                f"{mark}{box.bold(pc.display_name.lower())} "
                f"{t.fg(color, f'${pc.total_cost:.4f}')} "
                f"{box.dim(f'({pc.total_requests} requests)')}"
            )
        ]
        if self.expanded != pc.provider:
            return lines

        for model, cost in pc.top_models(TOP_MODELS):
            lines.append(
                box.row(box.dim(f"    {shorten_model(model).lower()}: ${cost:.4f}"))
            )
        recent = pc.recent_days(RECENT_DAYS)
        if recent:
            lines.append(box.row(box.dim("    recent:")))
            for day in recent:
                lines.append(
                    box.row(
                        box.dim(
                            f"      {day.date}: ${day.total:.4f} ({day.requests} req)"
                        )
                    )
                )
        return lines

    def render(self, width: int) -> List[str]:
        box = BoxRenderer(self.theme, width, max_width=MAX_PANEL_WIDTH)
        body = [box.row(self._tab_line(box)), box.divider()]

        if self.loading:
            body.append(box.row("scanning session logs..."))
        elif self.busy:
            body.append(box.row("removing..."))
        elif not self.costs:
            body.append(box.row(box.dim("no usage data found")))
        else:
            grand_total = 0.0
            for idx, pc in enumerate(self.costs):
                grand_total += pc.total_cost
                body.extend(self._provider_lines(box, idx, pc))
            body.append(box.divider())
            total_color = "warning" if grand_total > 10 else "success"
            body.append(
                box.row(
                    f"{box.bold('total:')} "
                    f"{self.theme.fg(total_color, f'${grand_total:.4f}')}"
                )
            )

        return box.frame(
            self._title(),
            body,
            "←→ range  ↑↓ navigate  enter expand  backspace hide  esc close",
        )

    def invalidate(self) -> None:
        pass

    def dispose(self) -> None:
        pass


def register(api: ExtensionAPI) -> None:
    async def handler(args: str, ctx: ExtensionContext) -> Any:
        if not ctx.has_ui:
            ctx.ui.notify("Cost report requires interactive mode", "error")
            return
        custom_days = parse_days(args)
        await ctx.ui.custom(
            lambda tui, theme, _kb, done: CostPanel(
                tui, theme, lambda: done(None), custom_days
            )
        )

    api.register_command(
        "cost",
        {"description": "Show cost report from session logs", "handler": handler},
    )
