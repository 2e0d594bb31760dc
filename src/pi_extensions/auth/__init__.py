# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .store import (
    cache_email,
    entries_for_prefix,
    load,
    load_raw,
    open_store,
    save,
    selected_key_for_prefix,
)

__all__ = [
    "cache_email",
    "entries_for_prefix",
    "load",
    "load_raw",
    "open_store",
    "save",
    "selected_key_for_prefix",
]
