# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Z.AI GLM models through Z.AI's Anthropic-compatible endpoint.

The API key is resolved by the host from the ``zai`` credential entry.
"""

from typing import List

from ..core.host import ExtensionAPI
from ..core.types import ProviderConfig, ProviderModel

PROVIDER_ID = "zai"
BASE_URL = "https://api.z.ai/api/anthropic"

CONTEXT_WINDOW = 200000
MAX_TOKENS = 64000


def _glm(model_id: str, name: str, reasoning: bool) -> ProviderModel:
    return ProviderModel(
        id=model_id,
        name=name,
        reasoning=reasoning,
        input=["text", "image"],
        context_window=CONTEXT_WINDOW,
        max_tokens=MAX_TOKENS,
        provider=PROVIDER_ID,
    )


MODELS: List[ProviderModel] = [
    _glm("glm-5", "GLM-5 (Z.AI)", reasoning=True),
    _glm("glm-4.7", "GLM-4.7 (Z.AI)", reasoning=True),
    _glm("glm-4.7-flash", "GLM-4.7 Flash (Z.AI)", reasoning=False),
]


def build_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=BASE_URL,
        api="anthropic-messages",
        api_key="zai",
        models=list(MODELS),
    )


def register(api: ExtensionAPI) -> None:
    api.register_provider(PROVIDER_ID, build_config())
