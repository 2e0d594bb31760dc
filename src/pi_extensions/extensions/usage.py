# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
``usage`` command: quota windows for every configured provider account.

Providers with more than one stored account get a cursor over the accounts
that are not currently selected; enter makes the highlighted account the
canonical one.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..accounts import format_relative_time, reorganize_keys
from ..auth.store import load, save
from ..core.host import ExtensionAPI, ExtensionContext, ModelRegistry, Theme, TUI
from ..core.types import ProviderStatus, RateWindow, UsageSnapshot
from ..ui.keys import Key, matches_key
from ..ui.panel import BoxRenderer
from ..usage.collector import collect_usage, prefix_for_provider

lib_logger = logging.getLogger("pi_extensions")

BAR_WIDTH = 12
LABEL_WIDTH = 7
DESCRIPTION_LIMIT = 40

STATUS_INDICATORS = {
    "none": "[ok]",
    "minor": "[!]",
    "major": "[!!]",
    "critical": "[!!!]",
    "maintenance": "[maint]",
}

UsageLoader = Callable[[Optional[ModelRegistry]], Awaitable[List[UsageSnapshot]]]


def status_indicator(status: Optional[ProviderStatus]) -> str:
    if status is None:
        return ""
    return STATUS_INDICATORS.get(status.indicator, "")


def remaining_color(remaining: float) -> str:
    if remaining <= 10:
        return "error"
    if remaining <= 30:
        return "warning"
    return "success"


def format_incident(description: str) -> str:
    """Lowercased incident text, cut to fit one panel row."""
    if len(description) > DESCRIPTION_LIMIT:
        return description[: DESCRIPTION_LIMIT - 3].lower() + "..."
    return description.lower()


class UsagePanel:
    """
    Interactive usage panel.

    States: loading -> ready -> (switching -> closed), or closed on escape.
    Loading starts as soon as the panel is created; closing the panel does not
    cancel it.
    """

    def __init__(
        self,
        tui: TUI,
        theme: Theme,
        on_close: Callable[[], None],
        model_registry: Optional[ModelRegistry] = None,
        loader: Optional[UsageLoader] = None,
        auth_file: Optional[Path] = None,
    ):
        self.tui = tui
        self.theme = theme
        self.on_close = on_close
        self.model_registry = model_registry
        self.auth_file = auth_file
        self._loader = loader or collect_usage

        self.usages: List[UsageSnapshot] = []
        self.selectable: List[int] = []
        self.cursor = 0
        self.loading = True
        self.switching = False
        self.error: Optional[str] = None

        self.load_task = asyncio.get_running_loop().create_task(self._load())
        self.switch_task: Optional[asyncio.Task] = None

    async def _load(self) -> None:
        try:
            usages = await self._loader(self.model_registry)
        except Exception as e:
            lib_logger.error(f"Usage collection failed: {e}", exc_info=True)
            usages = []
            self.error = str(e)
        self.set_usages(usages)

    def set_usages(self, usages: List[UsageSnapshot]) -> None:
        """Install fetched snapshots and work out which rows can be selected."""
        self.usages = usages
        groups: Dict[str, List[int]] = {}
        for idx, usage in enumerate(usages):
            groups.setdefault(usage.provider, []).append(idx)

        self.selectable = [
            idx
            for indices in groups.values()
            if len(indices) > 1
            for idx in indices
            if not usages[idx].selected
        ]
        self.cursor = 0
        self.loading = False
        self.tui.request_render()

    # =========================================================================
    # SWITCHING
    # =========================================================================

    async def switch_account(self, usage: UsageSnapshot) -> None:
        """Make ``usage.auth_key`` canonical, persist and reload host credentials."""
        if not usage.auth_key:
            return
        self.switching = True
        self.tui.request_render()

        prefix = prefix_for_provider(usage.provider)
        try:
            store = load(self.auth_file)
            save(reorganize_keys(store, usage.auth_key, prefix), self.auth_file)
            lib_logger.info(f"Switched {prefix} to '{usage.auth_key}'")
            auth_storage = getattr(self.model_registry, "auth_storage", None)
            if auth_storage is not None:
                auth_storage.reload()
        except Exception as e:
            lib_logger.error(f"Account switch failed: {e}")
            self.error = f"switch failed: {e}"
            self.switching = False
            self.tui.request_render()
            return

        self.switching = False
        self.on_close()

    # =========================================================================
    # INPUT
    # =========================================================================

    def handle_input(self, data: str) -> None:
        if self.switching:
            return
        if matches_key(data, Key.escape):
            self.on_close()
            return
        if self.loading or not self.selectable:
            return

        if matches_key(data, Key.up) or matches_key(data, "k"):
            if self.cursor > 0:
                self.cursor -= 1
                self.tui.request_render()
        elif matches_key(data, Key.down) or matches_key(data, "j"):
            if self.cursor < len(self.selectable) - 1:
                self.cursor += 1
                self.tui.request_render()
        elif matches_key(data, Key.enter):
            usage = self.usages[self.selectable[self.cursor]]
            if not usage.selected:
                self.switch_task = asyncio.get_running_loop().create_task(
                    self.switch_account(usage)
                )

    # =========================================================================
    # RENDERING
    # =========================================================================

    def _window_line(self, box: BoxRenderer, window: RateWindow) -> str:
        used = max(0.0, window.used_percent or 0.0)
        remaining = window.remaining_percent
        filled = min(BAR_WIDTH, round(used / 100 * BAR_WIDTH))
        bar = self.theme.fg(remaining_color(remaining), "█" * filled) + box.dim(
            "░" * (BAR_WIDTH - filled)
        )
        reset = ""
        if window.resets_at is not None:
            reset = box.dim(f" {format_relative_time(window.resets_at)}")
        return f"  {window.label:<{LABEL_WIDTH}} {bar} {remaining:>3.0f}%{reset}"

    def _header_line(self, box: BoxRenderer, idx: int, usage: UsageSnapshot) -> str:
        plan = box.dim(f" ({usage.plan})") if usage.plan else ""
        indicator = status_indicator(usage.status)
        status = f" {indicator}" if indicator else ""

        radio = ""
        if usage.selected:
            radio = f" {box.accent('●')}"
        elif idx in self.selectable:
            is_cursor = self.selectable[self.cursor] == idx
            pointer = box.accent("› ") if is_cursor else "  "
            radio = f" {pointer}{box.dim('○')}"
        return box.bold(usage.display_name) + plan + status + radio

    def render(self, width: int) -> List[str]:
        box = BoxRenderer(self.theme, width)
        body: List[str] = []

        if self.loading or self.switching:
            body.append(box.row("switching..." if self.switching else "loading..."))
        else:
            if self.error:
                body.append(box.row(self.theme.fg("error", self.error)))
            for idx, usage in enumerate(self.usages):
                body.append(box.row(self._header_line(box, idx, usage)))

                status = usage.status
                if (
                    status is not None
                    and status.indicator not in ("none", "unknown")
                    and status.description
                ):
                    body.append(
                        box.row(
                            self.theme.fg(
                                "warning", f"  {format_incident(status.description)}"
                            )
                        )
                    )

                if usage.error:
                    body.append(box.row(box.dim(f"  {usage.error}")))
                elif not usage.windows:
                    body.append(box.row(box.dim("  no data")))
                else:
                    for window in usage.windows:
                        body.append(box.row(self._window_line(box, window)))
                body.append(box.row())

        hint = (
            "↑↓ navigate  enter switch  esc close"
            if self.selectable
            else "press esc to close"
        )
        return box.frame("usage", body, hint)

    def invalidate(self) -> None:
        pass

    def dispose(self) -> None:
        pass


def register(api: ExtensionAPI) -> None:
    async def handler(args: str, ctx: ExtensionContext) -> Any:
        if not ctx.has_ui:
            ctx.ui.notify("usage requires interactive mode", "error")
            return
        model_registry = ctx.model_registry
        await ctx.ui.custom(
            lambda tui, theme, _kb, done: UsagePanel(
                tui, theme, lambda: done(None), model_registry
            )
        )

    api.register_command(
        "usage",
        {"description": "show ai provider usage statistics", "handler": handler},
    )
