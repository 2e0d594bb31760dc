# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Terminal host for the pi extensions.

Implements just enough of the agent's extension API to run the commands
outside the agent: notifications and selections go through rich prompts and
custom panels are redrawn on every render request.
"""

import asyncio
import inspect
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console
from rich.prompt import Prompt
from rich.style import Style
from rich.text import Text

from pi_extensions.auth import load_raw
from pi_extensions.core.host import Component, ComponentFactory
from pi_extensions.core.types import ProviderConfig
from pi_extensions.ui.keys import Key, sequence_for

logger = logging.getLogger("pi_usage_app")

# Theme colour name -> rich style
THEME_STYLES = {
    "accent": "cyan",
    "muted": "bright_black",
    "dim": "bright_black",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

NOTIFY_STYLES = {"info": "cyan", "warning": "yellow", "error": "bold red"}

# Typed words -> named keys for the line-based panel input
KEY_ALIASES = {
    "": Key.enter,
    "enter": Key.enter,
    "q": Key.escape,
    "esc": Key.escape,
    "up": Key.up,
    "down": Key.down,
    "left": Key.left,
    "right": Key.right,
    "del": Key.backspace,
    "x": Key.backspace,
    "tab": Key.tab,
}

PANEL_HINT = "key (up/down/left/right, enter, x=delete, q=close)"


def clear_screen():
    """Clear the terminal screen."""
    os.system("cls" if os.name == "nt" else "clear")


def key_input(typed: str) -> str:
    """Raw key data for a typed word; unknown input is passed through."""
    word = typed.strip().lower()
    if word in KEY_ALIASES:
        return sequence_for(KEY_ALIASES[word])
    return word[:1]


class RichTheme:
    """ANSI colouring through rich styles."""

    def __init__(self, styles: Optional[Dict[str, str]] = None):
        self.styles = styles or THEME_STYLES

    def fg(self, name: str, text: str) -> str:
        return Style.parse(self.styles.get(name, "default")).render(text)

    def bold(self, text: str) -> str:
        return Style(bold=True).render(text)


class ConsoleTUI:
    """Collects render requests so the host knows when to redraw."""

    def __init__(self):
        self.render_requested = asyncio.Event()

    def request_render(self) -> None:
        self.render_requested.set()


class FileAuthStorage:
    """Read-only view of auth.json, reloaded on demand."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._data: Dict[str, Any] = load_raw(path)

    def reload(self) -> None:
        self._data = load_raw(self.path)

    def get(self, provider: str) -> Optional[Dict[str, Any]]:
        entry = self._data.get(provider)
        return entry if isinstance(entry, dict) else None

    async def get_api_key(self, provider: str) -> Optional[str]:
        entry = self.get(provider)
        if not entry:
            return None
        return entry.get("access") or entry.get("key")


class ModelRegistry:
    def __init__(self, auth_storage: FileAuthStorage):
        self.auth_storage = auth_storage


class ActiveModel:
    def __init__(self, provider: Optional[str] = None):
        self.provider = provider


class ConsoleUI:
    """Extension UI backed by a rich console."""

    def __init__(self, console: Optional[Console] = None, theme: Any = None):
        self.console = console or Console()
        self.theme = theme or RichTheme()
        self.widgets: Dict[str, List[str]] = {}

    def notify(self, message: str, type: str = "info") -> None:
        self.console.print(Text(message, style=NOTIFY_STYLES.get(type, "cyan")))

    async def select(self, title: str, options: List[str]) -> Optional[str]:
        if not options:
            return None
        self.console.print()
        self.console.print(f"[bold]{title}[/bold]")
        for idx, option in enumerate(options, 1):
            self.console.print(f"   {idx}. {option}")
        self.console.print()
        choices = [str(i) for i in range(1, len(options) + 1)] + ["q"]
        choice = await asyncio.to_thread(
            Prompt.ask,
            "Select option (q to cancel)",
            choices=choices,
            show_choices=False,
            console=self.console,
        )
        if choice == "q":
            return None
        return options[int(choice) - 1]

    def set_widget(self, key: str, lines: Optional[List[str]]) -> None:
        if not lines:
            self.widgets.pop(key, None)
            return
        self.widgets[key] = list(lines)
        for line in lines:
            self.console.print(Text.from_ansi(line))

    async def custom(self, factory: ComponentFactory) -> Any:
        """
        Drive a component until it calls ``done``.

        Input is line based: each prompt answer is translated to one key.
        Render requests from background work redraw the panel while the
        prompt is waiting.
        """
        finished = asyncio.Event()
        result: Dict[str, Any] = {}

        def done(value: Any = None) -> None:
            result["value"] = value
            finished.set()

        tui = ConsoleTUI()
        component = factory(tui, self.theme, None, done)
        try:
            while not finished.is_set():
                self._draw(component)
                read = asyncio.ensure_future(
                    asyncio.to_thread(Prompt.ask, PANEL_HINT, default="", console=self.console)
                )
                while not read.done():
                    redraw = asyncio.ensure_future(tui.render_requested.wait())
                    await asyncio.wait(
                        {read, redraw}, return_when=asyncio.FIRST_COMPLETED
                    )
                    redraw.cancel()
                    if tui.render_requested.is_set() and not read.done():
                        tui.render_requested.clear()
                        if finished.is_set():
                            self.console.print("[dim]Press Enter to continue[/dim]")
                        else:
                            self._draw(component)
                            self.console.print(f"{PANEL_HINT}: ", end="")
                typed = read.result()
                tui.render_requested.clear()
                if finished.is_set():
                    break
                component.handle_input(key_input(typed))
                # Let tasks started by the input run before the next draw
                await asyncio.sleep(0)
        finally:
            component.dispose()
        return result.get("value")

    def _draw(self, component: Component) -> None:
        clear_screen()
        width = min(self.console.width, 100)
        for line in component.render(width):
            self.console.print(Text.from_ansi(line))


class ConsoleContext:
    """Extension context for one command invocation."""

    def __init__(
        self,
        ui: ConsoleUI,
        auth_file: Optional[Path] = None,
        provider: Optional[str] = None,
    ):
        self.ui = ui
        self.has_ui = True
        self.model_registry = ModelRegistry(FileAuthStorage(auth_file))
        self.model = ActiveModel(provider)

    async def reload(self) -> None:
        self.model_registry.auth_storage.reload()
        logger.debug("Reloaded credentials")


class HostAPI:
    """Records what the extensions register and dispatches to it."""

    def __init__(self):
        self.commands: Dict[str, Dict[str, Any]] = {}
        self.providers: Dict[str, ProviderConfig] = {}
        self.handlers: Dict[str, List[Callable[..., Any]]] = {}

    def register_command(self, name: str, options: Dict[str, Any]) -> None:
        self.commands[name] = options

    def register_provider(self, name: str, config: ProviderConfig) -> None:
        self.providers[name] = config

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def emit(self, event: str, payload: Any, ctx: ConsoleContext) -> None:
        for handler in self.handlers.get(event, []):
            result = handler(payload, ctx)
            if inspect.isawaitable(result):
                await result

    async def run_command(self, name: str, args: str, ctx: ConsoleContext) -> None:
        command = self.commands.get(name)
        if command is None:
            raise KeyError(name)
        await command["handler"](args, ctx)
