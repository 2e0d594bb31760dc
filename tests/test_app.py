# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

import io

import pytest
from rich.console import Console

from pi_usage_app import host
from pi_usage_app.host import (
    ConsoleContext,
    ConsoleUI,
    FileAuthStorage,
    HostAPI,
    RichTheme,
    key_input,
)
from pi_usage_app.main import parse_args
from pi_extensions.ui.keys import Key, matches_key


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=100, force_terminal=False)


@pytest.fixture
def answers(monkeypatch):
    """Feed prompt answers in order."""
    queue = []

    def ask(*_args, **_kwargs):
        return queue.pop(0)

    monkeypatch.setattr(host.Prompt, "ask", ask)
    monkeypatch.setattr(host, "clear_screen", lambda: None)
    return queue


class ClosingComponent:
    def __init__(self, done):
        self.done = done
        self.keys = []
        self.disposed = False

    def handle_input(self, data):
        self.keys.append(data)
        if matches_key(data, Key.escape):
            self.done("closed")

    def render(self, width):
        return [f"keys: {len(self.keys)}"]

    def invalidate(self):
        pass

    def dispose(self):
        self.disposed = True


def test_key_input_aliases():
    assert matches_key(key_input(""), Key.enter)
    assert matches_key(key_input("Up"), Key.up)
    assert matches_key(key_input("q"), Key.escape)
    assert matches_key(key_input("x"), Key.backspace)
    assert key_input("j") == "j"


def test_rich_theme_keeps_text():
    theme = RichTheme()
    coloured = theme.fg("error", "boom")
    assert "boom" in coloured
    assert coloured.startswith("\x1b[")
    assert "ok" in theme.bold("ok")


async def test_file_auth_storage(write_auth):
    write_auth({"zai": {"type": "api_key", "key": "zk"}, "bad": "x"})
    storage = FileAuthStorage()
    assert await storage.get_api_key("zai") == "zk"
    assert storage.get("bad") is None
    write_auth({"zai": {"type": "api_key", "key": "new"}})
    storage.reload()
    assert await storage.get_api_key("zai") == "new"


async def test_console_select(console, answers):
    ui = ConsoleUI(console)
    answers.extend(["2", "q"])
    assert await ui.select("Pick", ["a", "b"]) == "b"
    assert await ui.select("Pick", ["a", "b"]) is None
    assert await ui.select("Pick", []) is None


async def test_console_custom_runs_until_done(console, answers):
    ui = ConsoleUI(console)
    created = []

    def factory(tui, theme, _kb, done):
        component = ClosingComponent(done)
        created.append(component)
        return component

    answers.extend(["down", "q"])
    assert await ui.custom(factory) == "closed"
    (component,) = created
    assert len(component.keys) == 2
    assert component.disposed


async def test_host_api_dispatch(console):
    api = HostAPI()
    seen = []

    async def command(args, ctx):
        seen.append(("command", args))

    def sync_handler(event, ctx):
        seen.append(("sync", event))

    async def async_handler(event, ctx):
        seen.append(("async", event))

    api.register_command("demo", {"description": "demo", "handler": command})
    api.on("session_start", sync_handler)
    api.on("session_start", async_handler)

    ctx = ConsoleContext(ConsoleUI(console))
    await api.run_command("demo", "7", ctx)
    await api.emit("session_start", {"n": 1}, ctx)
    assert seen == [("command", "7"), ("sync", {"n": 1}), ("async", {"n": 1})]

    with pytest.raises(KeyError):
        await api.run_command("missing", "", ctx)


def test_parse_args():
    args = parse_args(["cost", "14", "--debug"])
    assert args.command == "cost"
    assert args.args == ["14"]
    assert args.debug
    with pytest.raises(SystemExit):
        parse_args(["nope"])
