# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the pi extensions.

This module contains the dataclasses passed between the credential store,
the provider usage fetchers, the account scorer and the panels.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional


# =============================================================================
# CREDENTIAL TYPES
# =============================================================================

# JSON field name -> attribute name for the known credential fields
_ENTRY_FIELDS = {
    "type": "type",
    "access": "access",
    "refresh": "refresh",
    "key": "key",
    "expires": "expires",
    "accountId": "account_id",
    "email": "email",
}


@dataclass
class CredentialEntry:
    """
    One stored credential (OAuth token or raw API key).

    The entry has no identity of its own; it is addressed by its key in the
    credential store (e.g. "anthropic", "anthropic-1", "openai-codex-3").
    Fields the host writes that we do not model are kept in ``extra`` so a
    read-modify-write cycle never drops them. A stored value that is not a
    JSON object is held in ``raw`` and written back unchanged.
    """

    type: Optional[Literal["oauth", "api_key"]] = None
    access: Optional[str] = None
    refresh: Optional[str] = None
    key: Optional[str] = None
    expires: Optional[int] = None  # Epoch milliseconds
    account_id: Optional[str] = None
    email: Optional[str] = None  # Cached profile email
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)
    raw: Any = field(default=None, repr=False)
    opaque: bool = field(default=False, repr=False)

    @property
    def token(self) -> Optional[str]:
        """Bearer token for this entry (OAuth access token or API key)."""
        return self.access or self.key

    @property
    def is_usable(self) -> bool:
        return bool(self.token)

    @property
    def is_oauth(self) -> bool:
        return self.type == "oauth"

    @classmethod
    def from_dict(cls, data: Any) -> "CredentialEntry":
        if not isinstance(data, dict):
            return cls(raw=data, opaque=True)
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for json_name, value in data.items():
            attr = _ENTRY_FIELDS.get(json_name)
            if attr:
                kwargs[attr] = value
            else:
                extra[json_name] = value
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> Any:
        if self.opaque:
            return self.raw
        result: Dict[str, Any] = {}
        for json_name, attr in _ENTRY_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[json_name] = value
        result.update(self.extra)
        return result


# Ordered mapping of store key -> entry. Insertion order is the enumeration
# order used by every lookup.
CredentialStore = Dict[str, CredentialEntry]


# =============================================================================
# USAGE TYPES
# =============================================================================


@dataclass
class RateWindow:
    """A provider quota window (5-hour, weekly, monthly, per-model)."""

    label: str
    used_percent: Optional[float]  # 0-100
    resets_at: Optional[datetime] = None  # Timezone-aware
    window_seconds: Optional[int] = None  # Length of the window, if known

    @property
    def remaining_percent(self) -> float:
        return max(0.0, 100.0 - (self.used_percent or 0.0))


@dataclass
class ProviderStatus:
    """Provider status page summary (statuspage.io indicator)."""

    indicator: Literal[
        "none", "minor", "major", "critical", "maintenance", "unknown"
    ] = "none"
    description: Optional[str] = None


@dataclass
class UsageSnapshot:
    """
    Normalized usage for one credential of one provider.

    Derived per fetch and never persisted. ``auth_key`` is the store key the
    snapshot was fetched for; ``selected`` marks the canonical entry.
    """

    provider: str  # "anthropic", "codex", "zai"
    display_name: str
    windows: List[RateWindow] = field(default_factory=list)
    plan: Optional[str] = None
    error: Optional[str] = None
    status: Optional[ProviderStatus] = None
    selected: bool = False
    auth_key: Optional[str] = None
    balance: Optional[str] = None  # Formatted credit balance, e.g. "$4.20"


@dataclass
class AccountProfile:
    """Profile details used for labels and de-duplication."""

    email: Optional[str] = None
    full_name: Optional[str] = None
    uuid: Optional[str] = None
    plan: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        return self.email or self.full_name


# =============================================================================
# MODEL PROVIDER TYPES
# =============================================================================


@dataclass
class ModelCost:
    """Per-million-token prices."""

    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0


@dataclass
class ProviderModel:
    """A model exposed by a registered provider."""

    id: str
    name: str
    reasoning: bool
    input: List[str]
    context_window: int
    max_tokens: int
    cost: ModelCost = field(default_factory=ModelCost)
    api: Optional[str] = None  # "openai-completions" | "anthropic-messages"
    base_url: Optional[str] = None
    provider: Optional[str] = None


@dataclass
class OAuthCredentials:
    """Credentials returned by a provider login flow."""

    access: str
    refresh: str = ""
    expires: Optional[int] = None  # Epoch milliseconds


@dataclass
class ProviderOAuth:
    """Login hooks handed to the host for a provider."""

    name: str
    login: Any  # async (callbacks) -> OAuthCredentials
    refresh_token: Any  # async (credentials) -> OAuthCredentials
    get_api_key: Any  # (credentials) -> str
    modify_models: Optional[Any] = None  # (models, credentials) -> models


@dataclass
class ProviderConfig:
    """Configuration passed to ``ExtensionAPI.register_provider``."""

    base_url: str
    api: str
    models: List[ProviderModel] = field(default_factory=list)
    api_key: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    auth_header: bool = False
    oauth: Optional[ProviderOAuth] = None
