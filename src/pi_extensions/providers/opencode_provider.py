# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
OpenCode model providers.

- ``opencode-go``: paid OpenCode Go subscription (pasted API key). Models that
  speak the Anthropic Messages API are served from a different base URL.
- ``opencode-zen``: OpenCode Zen free models with a pasted API key.
- ``zen``: the same free models through the public token, no login needed.
"""

from dataclasses import replace
from typing import Any, List, Optional

from ..core.host import ExtensionAPI, OAuthLoginCallbacks
from ..core.types import (
    ModelCost,
    OAuthCredentials,
    ProviderConfig,
    ProviderModel,
    ProviderOAuth,
)
from .utilities.login_helpers import (
    access_token,
    expires_in_a_year,
    keep_credentials,
    paste_key_login,
)

ZEN_HEADERS = {
    "HTTP-Referer": "https://opencode.ai/",
    "X-Title": "opencode",
}

# =============================================================================
# OPENCODE GO
# =============================================================================

GO_PROVIDER_ID = "opencode-go"
GO_BASE_URL = "https://opencode.ai/zen/go/v1"
GO_ANTHROPIC_BASE_URL = "https://opencode.ai/zen/go"

GO_MODELS: List[ProviderModel] = [
    ProviderModel(
        id="glm-5",
        name="GLM-5",
        reasoning=True,
        input=["text"],
        context_window=204800,
        max_tokens=131072,
        cost=ModelCost(input=1.0, output=3.2, cache_read=0.2),
        api="openai-completions",
        provider=GO_PROVIDER_ID,
    ),
    ProviderModel(
        id="kimi-k2.5",
        name="Kimi K2.5",
        reasoning=True,
        input=["text", "image", "video"],
        context_window=262144,
        max_tokens=65536,
        cost=ModelCost(input=0.6, output=3.0, cache_read=0.08),
        api="openai-completions",
        provider=GO_PROVIDER_ID,
    ),
    ProviderModel(
        id="minimax-m2.5",
        name="MiniMax M2.5",
        reasoning=True,
        input=["text"],
        context_window=204800,
        max_tokens=131072,
        cost=ModelCost(input=0.3, output=1.2, cache_read=0.06),
        api="anthropic-messages",
        provider=GO_PROVIDER_ID,
    ),
]


async def login_opencode_go(callbacks: OAuthLoginCallbacks) -> OAuthCredentials:
    return await paste_key_login(
        callbacks, "Paste OpenCode Go API key:", "OpenCode Go API key is required"
    )


def route_go_models(
    models: List[ProviderModel], _credentials: Optional[OAuthCredentials] = None
) -> List[ProviderModel]:
    """Point OpenCode Go's Anthropic-API models at the Anthropic base URL."""
    return [
        replace(model, base_url=GO_ANTHROPIC_BASE_URL)
        if model.provider == GO_PROVIDER_ID and model.api == "anthropic-messages"
        else model
        for model in models
    ]


def build_go_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=GO_BASE_URL,
        api="openai-completions",
        models=list(GO_MODELS),
        oauth=ProviderOAuth(
            name="OpenCode Go",
            login=login_opencode_go,
            refresh_token=keep_credentials,
            get_api_key=access_token,
            modify_models=route_go_models,
        ),
    )


# =============================================================================
# OPENCODE ZEN (FREE MODELS)
# =============================================================================

ZEN_BASE_URL = "https://opencode.ai/zen/v1"
OPENCODE_ZEN_PROVIDER_ID = "opencode-zen"
PUBLIC_ZEN_PROVIDER_ID = "zen"
PUBLIC_TOKEN = "public"

# (id, name, input, context window, max tokens)
_FREE_MODEL_SPECS = [
    ("kimi-k2.5-free", "Kimi K2.5", ["text", "image"], 262144, 262144),
    ("glm-5-free", "GLM-5", ["text"], 204800, 131072),
    ("big-pickle", "Big Pickle", ["text"], 200000, 128000),
    ("minimax-m2.5-free", "MiniMax M2.5", ["text"], 204800, 131072),
    ("gpt-5-nano", "GPT-5 Nano", ["text", "image"], 400000, 128000),
]


def free_models(provider: str, free_suffix: bool = False) -> List[ProviderModel]:
    """
    The Zen free model list.

    Args:
        provider: Provider id stamped on each model
        free_suffix: Append ' Free' to names of models whose id ends in -free
    """
    models = []
    for model_id, name, inputs, context_window, max_tokens in _FREE_MODEL_SPECS:
        if free_suffix and model_id.endswith("-free"):
            name = f"{name} Free"
        models.append(
            ProviderModel(
                id=model_id,
                name=name,
                reasoning=True,
                input=list(inputs),
                context_window=context_window,
                max_tokens=max_tokens,
                provider=provider,
            )
        )
    return models


async def login_opencode_zen(callbacks: OAuthLoginCallbacks) -> OAuthCredentials:
    return await paste_key_login(
        callbacks, "Paste OpenCode Zen API key:", "OpenCode Zen API key is required"
    )


async def login_public_zen(_callbacks: Any = None) -> OAuthCredentials:
    return OAuthCredentials(
        access=PUBLIC_TOKEN, refresh=PUBLIC_TOKEN, expires=expires_in_a_year()
    )


def public_token(_credentials: Any = None) -> str:
    return PUBLIC_TOKEN


def build_opencode_zen_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=ZEN_BASE_URL,
        api="openai-completions",
        auth_header=True,
        headers=dict(ZEN_HEADERS),
        models=free_models(OPENCODE_ZEN_PROVIDER_ID),
        oauth=ProviderOAuth(
            name="OpenCode Zen",
            login=login_opencode_zen,
            refresh_token=keep_credentials,
            get_api_key=access_token,
        ),
    )


def build_public_zen_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=ZEN_BASE_URL,
        api="openai-completions",
        auth_header=True,
        headers=dict(ZEN_HEADERS),
        models=free_models(PUBLIC_ZEN_PROVIDER_ID, free_suffix=True),
        oauth=ProviderOAuth(
            name="OpenCode Zen (Free)",
            login=login_public_zen,
            refresh_token=keep_credentials,
            get_api_key=public_token,
        ),
    )


# =============================================================================
# REGISTRATION
# =============================================================================


def register_opencode_go(api: ExtensionAPI) -> None:
    api.register_provider(GO_PROVIDER_ID, build_go_config())


def register_opencode_zen(api: ExtensionAPI) -> None:
    api.register_provider(OPENCODE_ZEN_PROVIDER_ID, build_opencode_zen_config())


def register_public_zen(api: ExtensionAPI) -> None:
    api.register_provider(PUBLIC_ZEN_PROVIDER_ID, build_public_zen_config())


def register(api: ExtensionAPI) -> None:
    register_opencode_go(api)
    register_opencode_zen(api)
    register_public_zen(api)
