# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from . import kilo_provider, opencode_provider, zai_provider

PROVIDER_MODULES = [zai_provider, kilo_provider, opencode_provider]


def register_providers(api) -> None:
    """Register every bundled model provider with the host."""
    for module in PROVIDER_MODULES:
        module.register(api)


__all__ = [
    "PROVIDER_MODULES",
    "kilo_provider",
    "opencode_provider",
    "register_providers",
    "zai_provider",
]
