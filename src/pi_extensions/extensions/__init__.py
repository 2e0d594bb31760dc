# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging

from ..core.host import ExtensionAPI
from ..providers import register_providers
from . import account_select, cost, tps, usage

lib_logger = logging.getLogger("pi_extensions")

EXTENSIONS = {
    "usage": usage.register,
    "cost": cost.register,
    "account-select": account_select.register,
    "tps": tps.register,
    "providers": register_providers,
}


def register_all(api: ExtensionAPI) -> None:
    for name, register in EXTENSIONS.items():
        register(api)
        lib_logger.debug(f"Registered extension '{name}'")


__all__ = ["EXTENSIONS", "register_all"]
