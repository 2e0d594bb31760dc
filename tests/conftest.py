# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

FIXED_NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

ENV_VARS = (
    "PI_CODING_AGENT_DIR",
    "Z_AI_API_KEY",
    "PI_USAGE_FETCH_TIMEOUT",
    "PI_SELECT_FETCH_TIMEOUT",
    "PI_USAGE_RACE_TIMEOUT",
    "PI_STATUS_RACE_TIMEOUT",
    "PI_COST_DEFAULT_DAYS",
    "KILOCODE_ORGANIZATION_ID",
    "KILOCODE_PROJECT_ID",
    "KILOCODE_MODE",
    "KILOCODE_TASK_ID",
    "KILOCODE_MACHINE_ID",
    "KILOCODE_TESTER",
)


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    """Point HOME and CODEX_HOME at a scratch directory for every test."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("CODEX_HOME", str(tmp_path / ".codex"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def auth_file(home):
    return home / ".pi" / "agent" / "auth.json"


@pytest.fixture
def write_auth(auth_file):
    def _write(data: Dict[str, Any]):
        auth_file.parent.mkdir(parents=True, exist_ok=True)
        auth_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return auth_file

    return _write


@pytest.fixture
def read_auth(auth_file):
    def _read() -> Dict[str, Any]:
        return json.loads(auth_file.read_text(encoding="utf-8"))

    return _read


# =============================================================================
# HTTP
# =============================================================================


def make_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def bearer(request: httpx.Request) -> str:
    return request.headers.get("Authorization", "").replace("Bearer ", "")


class Router:
    """
    Routes requests by URL (without query) to canned responses.

    A route value may be a response, a JSON-able object (200) or a callable
    taking the request. Unrouted requests get a 404. Every request is kept in
    ``requests``.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def urls(self) -> List[str]:
        return [str(r.url).split("?")[0] for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return make_client(self)


# =============================================================================
# HOST FAKES
# =============================================================================


class FakeTheme:
    def fg(self, name: str, text: str) -> str:
        return text

    def bold(self, text: str) -> str:
        return text


class FakeTUI:
    def __init__(self):
        self.renders = 0

    def request_render(self) -> None:
        self.renders += 1


class FakeUI:
    def __init__(self, answer: Any = None):
        self.answer = answer
        self.notifications: List[tuple] = []
        self.selects: List[tuple] = []
        self.widgets: Dict[str, Optional[List[str]]] = {}

    def notify(self, message: str, type: str = "info") -> None:
        self.notifications.append((message, type))

    async def select(self, title: str, options: List[str]) -> Optional[str]:
        self.selects.append((title, list(options)))
        if callable(self.answer):
            return self.answer(options)
        return self.answer

    async def custom(self, factory):
        return None

    def set_widget(self, key: str, lines: Optional[List[str]]) -> None:
        self.widgets[key] = lines


class FakeAuthStorage:
    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data = data or {}
        self.reloads = 0

    async def get_api_key(self, provider: str) -> Optional[str]:
        entry = self.data.get(provider) or {}
        return entry.get("access") or entry.get("key")

    def get(self, provider: str) -> Optional[Dict[str, Any]]:
        return self.data.get(provider)

    def reload(self) -> None:
        self.reloads += 1


class FakeModelRegistry:
    def __init__(self, auth_storage: Optional[FakeAuthStorage] = None):
        self.auth_storage = auth_storage or FakeAuthStorage()


class FakeModel:
    def __init__(self, provider: str):
        self.provider = provider


class FakeContext:
    def __init__(self, ui: Optional[FakeUI] = None, provider: str = "", has_ui: bool = True):
        self.ui = ui or FakeUI()
        self.has_ui = has_ui
        self.model_registry = FakeModelRegistry()
        self.model = FakeModel(provider)
        self.reloads = 0

    async def reload(self) -> None:
        self.reloads += 1


class FakeAPI:
    def __init__(self):
        self.commands: Dict[str, Dict[str, Any]] = {}
        self.providers: Dict[str, Any] = {}
        self.handlers: Dict[str, List[Callable]] = {}

    def register_command(self, name: str, options: Dict[str, Any]) -> None:
        self.commands[name] = options

    def register_provider(self, name: str, config: Any) -> None:
        self.providers[name] = config

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)


@pytest.fixture
def theme():
    return FakeTheme()


@pytest.fixture
def tui():
    return FakeTUI()
