# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Narrow capability interfaces for the host agent.

The extensions only ever call a handful of methods on the objects the host
hands them. These protocols name exactly those methods so the extensions can
be driven by the real host, by the standalone terminal host in
``pi_usage_app`` or by test fakes.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .types import ProviderConfig


class Theme(Protocol):
    """Colour helpers used by the panels."""

    def fg(self, name: str, text: str) -> str: ...

    def bold(self, text: str) -> str: ...


class TUI(Protocol):
    def request_render(self) -> None: ...


class Component(Protocol):
    """A custom UI component driven by the host render loop."""

    def handle_input(self, data: str) -> None: ...

    def render(self, width: int) -> List[str]: ...

    def invalidate(self) -> None: ...

    def dispose(self) -> None: ...


# (tui, theme, keybindings, done) -> component
ComponentFactory = Callable[[TUI, Theme, Any, Callable[..., None]], Component]


class AuthStorage(Protocol):
    """Host credential cache backed by the same auth.json file."""

    async def get_api_key(self, provider: str) -> Optional[str]: ...

    def get(self, provider: str) -> Optional[Dict[str, Any]]: ...

    def reload(self) -> None: ...


class ModelRegistry(Protocol):
    auth_storage: AuthStorage


class ExtensionUI(Protocol):
    def notify(self, message: str, type: str = "info") -> None: ...

    async def select(self, title: str, options: List[str]) -> Optional[str]: ...

    async def custom(self, factory: ComponentFactory) -> Any: ...

    def set_widget(self, key: str, lines: Optional[List[str]]) -> None: ...


class ExtensionContext(Protocol):
    """Context passed to command and event handlers."""

    ui: ExtensionUI
    has_ui: bool
    model_registry: Optional[ModelRegistry]
    model: Any  # Active model; exposes ``provider``

    async def reload(self) -> None: ...


CommandHandler = Callable[[str, ExtensionContext], Awaitable[None]]
EventHandler = Callable[[Any, ExtensionContext], Any]


class ExtensionAPI(Protocol):
    """API passed to each extension's ``register`` function."""

    def register_command(self, name: str, options: Dict[str, Any]) -> None: ...

    def register_provider(self, name: str, config: ProviderConfig) -> None: ...

    def on(self, event: str, handler: EventHandler) -> None: ...


class OAuthLoginCallbacks(Protocol):
    """Callbacks the host passes to a provider login flow."""

    def on_auth(self, info: Dict[str, str]) -> None: ...

    async def on_prompt(self, prompt: Dict[str, str]) -> str: ...

    # Optional members: ``on_device_code(info)`` and ``signal`` (has ``aborted``)
