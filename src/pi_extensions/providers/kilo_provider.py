# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Kilo Code gateway (OpenRouter-compatible) with device-code login.

Login flow:
    POST https://api.kilo.ai/api/device-auth/codes  -> {code, verificationUrl, expiresIn}
    GET  https://api.kilo.ai/api/device-auth/codes/{code} every 3 s
        202 pending, 403 denied, 410 expired, 200 {status, token}

Tokens minted for a development environment (JWT payload ``env`` is
"development") are routed to http://localhost:3000 instead of api.kilo.ai.

Environment variables (forwarded as request headers when set):
    KILOCODE_ORGANIZATION_ID, KILOCODE_PROJECT_ID, KILOCODE_MODE,
    KILOCODE_TASK_ID, KILOCODE_MACHINE_ID, KILOCODE_TESTER
"""

import asyncio
import base64
import binascii
import json
import logging
import os
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..core.host import ExtensionAPI, OAuthLoginCallbacks
from ..core.types import OAuthCredentials, ProviderConfig, ProviderModel, ProviderOAuth
from .utilities.login_helpers import access_token, expires_in_a_year

lib_logger = logging.getLogger("pi_extensions")

PROVIDER_ID = "kilo"
API_BASE = "https://api.kilo.ai/api"
DEFAULT_BASE_URI = "https://api.kilo.ai"
DEVELOPMENT_BASE_URI = "http://localhost:3000"
DEVICE_CODES_URL = f"{API_BASE}/device-auth/codes"
POLL_INTERVAL_SECONDS = 3.0

DEFAULT_HEADERS = {
    "HTTP-Referer": "https://kilocode.ai",
    "X-Title": "Kilo Code",
    "X-KiloCode-Version": "pi-extension",
    "X-KiloCode-EditorName": "pi",
    "User-Agent": "Kilo-Code/pi-extension",
}

# env var -> header
OPTIONAL_ENV_HEADERS = {
    "KILOCODE_ORGANIZATION_ID": "X-KiloCode-OrganizationId",
    "KILOCODE_PROJECT_ID": "X-KiloCode-ProjectId",
    "KILOCODE_MODE": "X-KiloCode-Mode",
    "KILOCODE_TASK_ID": "X-KiloCode-TaskId",
    "KILOCODE_MACHINE_ID": "X-KiloCode-MachineId",
    "KILOCODE_TESTER": "X-KILOCODE-TESTER",
}

# (id, name, input, context window, max tokens)
_FREE_MODEL_SPECS = [
    ("corethink:free", "CoreThink", ["text"], 78000, 8192),
    ("minimax/minimax-m2.5:free", "MiniMax M2.5", ["text"], 204800, 131072),
    ("z-ai/glm-5:free", "GLM 5", ["text"], 202800, 131072),
    ("giga-potato", "Giga Potato", ["text", "image"], 256000, 32000),
    (
        "arcee-ai/trinity-large-preview:free",
        "Trinity Large Preview",
        ["text"],
        131000,
        8192,
    ),
    (
        "x-ai/grok-code-fast-1:optimized:free",
        "Grok Code Fast 1 Optimized",
        ["text"],
        256000,
        10000,
    ),
    ("openrouter/aurora-alpha", "Aurora Alpha", ["text"], 128000, 50000),
    ("openrouter/free", "OpenRouter Models", ["text", "image"], 200000, 8192),
    ("stepfun/step-3.5-flash:free", "Step 3.5 Flash", ["text"], 256000, 256000),
]

FREE_MODELS: List[ProviderModel] = [
    ProviderModel(
        id=model_id,
        name=name,
        reasoning=False,
        input=list(inputs),
        context_window=context_window,
        max_tokens=max_tokens,
        provider=PROVIDER_ID,
    )
    for model_id, name, inputs, context_window, max_tokens in _FREE_MODEL_SPECS
]


class DeviceAuthError(Exception):
    """Device login failed; the message is shown to the user as-is."""


def build_headers() -> Dict[str, str]:
    """Default headers plus any non-empty KILOCODE_* overrides."""
    headers = dict(DEFAULT_HEADERS)
    for env_name, header in OPTIONAL_ENV_HEADERS.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            headers[header] = value
    return headers


# =============================================================================
# TOKEN ENVIRONMENT
# =============================================================================


def _jwt_payload(token: str) -> Optional[Dict[str, Any]]:
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def kilo_base_uri_from_token(token: Optional[str]) -> str:
    """API origin for a token: localhost for development tokens."""
    if not token:
        return DEFAULT_BASE_URI
    payload = _jwt_payload(token)
    if payload and payload.get("env") == "development":
        return DEVELOPMENT_BASE_URI
    return DEFAULT_BASE_URI


def kilo_url_from_token(target_url: str, token: Optional[str]) -> str:
    """``target_url`` with its scheme and host swapped for the token's origin."""
    base = kilo_base_uri_from_token(token)
    if not base.startswith("http"):
        base = f"https://{base}"
    origin = urlsplit(base)
    target = urlsplit(target_url)
    return urlunsplit(
        (origin.scheme, origin.netloc, target.path, target.query, target.fragment)
    )


def route_models_for_token(
    models: List[ProviderModel], credentials: Optional[OAuthCredentials] = None
) -> List[ProviderModel]:
    """Rewrite Kilo model base URLs for development tokens."""
    token = credentials.access if credentials else None
    if kilo_base_uri_from_token(token) == DEFAULT_BASE_URI:
        return models
    return [
        replace(
            model,
            base_url=kilo_url_from_token(model.base_url or f"{API_BASE}/openrouter/", token),
        )
        if model.provider == PROVIDER_ID
        else model
        for model in models
    ]


# =============================================================================
# DEVICE LOGIN
# =============================================================================


class KiloDeviceLogin:
    """
    Device authorization flow.

    The HTTP client, sleep and clock are injectable so the polling loop can be
    driven without waiting in real time.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.clock = clock

    async def login(self, callbacks: OAuthLoginCallbacks) -> OAuthCredentials:
        if self.client is not None:
            return await self._login(self.client, callbacks)
        async with httpx.AsyncClient(timeout=30.0) as client:
            return await self._login(client, callbacks)

    async def _login(
        self, client: httpx.AsyncClient, callbacks: OAuthLoginCallbacks
    ) -> OAuthCredentials:
        response = await client.post(
            DEVICE_CODES_URL, headers={"Content-Type": "application/json"}
        )
        if response.status_code == 429:
            raise DeviceAuthError(
                "Too many pending authorization requests. Please try again later."
            )
        if not response.is_success:
            raise DeviceAuthError(
                f"Failed to initiate device authorization: {response.status_code}"
            )

        data = response.json()
        code = data["code"]
        verification_url = data["verificationUrl"]
        expires_in = float(data.get("expiresIn") or 0)

        on_device_code = getattr(callbacks, "on_device_code", None)
        if on_device_code is not None:
            on_device_code({"user_code": code, "verification_uri": verification_url})
        else:
            callbacks.on_auth(
                {"url": verification_url, "instructions": f"Enter code: {code}"}
            )
        lib_logger.info(f"Kilo device login started; waiting up to {expires_in:.0f}s")

        deadline = self.clock() + expires_in
        signal = getattr(callbacks, "signal", None)
        while self.clock() < deadline:
            if signal is not None and getattr(signal, "aborted", False):
                raise DeviceAuthError("Login cancelled")
            await self.sleep(self.poll_interval)

            poll = await client.get(f"{DEVICE_CODES_URL}/{code}")
            if poll.status_code == 202:
                continue
            if poll.status_code == 403:
                raise DeviceAuthError("Authorization was denied")
            if poll.status_code == 410:
                raise DeviceAuthError("Authorization code expired. Please try again.")
            if not poll.is_success:
                raise DeviceAuthError(
                    f"Failed to poll device authorization: {poll.status_code}"
                )

            result = poll.json()
            status = result.get("status")
            if status == "approved" and result.get("token"):
                lib_logger.info("Kilo device login approved")
                return OAuthCredentials(
                    access=result["token"], refresh="", expires=expires_in_a_year()
                )
            if status == "denied":
                raise DeviceAuthError("Authorization was denied")
            if status == "expired":
                raise DeviceAuthError("Authorization code expired. Please try again.")

        raise DeviceAuthError("Authentication timed out. Please try again.")


async def login_kilo(callbacks: OAuthLoginCallbacks) -> OAuthCredentials:
    return await KiloDeviceLogin().login(callbacks)


async def refresh_kilo_token(_credentials: OAuthCredentials) -> OAuthCredentials:
    raise DeviceAuthError("Kilo tokens do not expire. Please re-login if you have issues.")


def build_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=f"{API_BASE}/openrouter/",
        api="openai-completions",
        api_key="KILO_TOKEN",
        headers=build_headers(),
        models=list(FREE_MODELS),
        oauth=ProviderOAuth(
            name="Kilo",
            login=login_kilo,
            refresh_token=refresh_kilo_token,
            get_api_key=access_token,
            modify_models=route_models_for_token,
        ),
    )


def register(api: ExtensionAPI) -> None:
    api.register_provider(PROVIDER_ID, build_config())
