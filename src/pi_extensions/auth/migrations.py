# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential store migrations.

Each migration is a pure function ``store -> (store, changed)`` registered
with a version and a name. They run in version order every time the store is
opened and must be idempotent: there is no version marker inside auth.json
because the host owns that file's schema.
"""

import logging
from typing import Callable, List, Tuple

from ..core.types import CredentialStore

lib_logger = logging.getLogger("pi_extensions")

Migration = Callable[[CredentialStore], Tuple[CredentialStore, bool]]


def migrate_codex_keys(store: CredentialStore) -> Tuple[CredentialStore, bool]:
    """
    Rename legacy ``codex*`` keys to ``openai-codex*``.

    Only runs when no ``openai-codex*`` key exists yet, so a store that
    already uses the new names is left alone. Key order is kept except that
    the renamed entries move to the end.
    """
    result = dict(store)
    has_new_keys = any(key.startswith("openai-codex") for key in result)
    legacy_keys = [key for key in result if key.startswith("codex")]
    if has_new_keys or not legacy_keys:
        return result, False

    for key in legacy_keys:
        value = result.pop(key)
        new_key = "openai-codex" + key[len("codex"):]
        result[new_key] = value
        lib_logger.info(f"Renamed credential '{key}' -> '{new_key}'")
    return result, True


MIGRATIONS: List[Tuple[int, str, Migration]] = [
    (1, "codex_to_openai_codex", migrate_codex_keys),
]


def run_migrations(store: CredentialStore) -> Tuple[CredentialStore, List[str]]:
    """
    Apply every registered migration in order.

    Returns:
        (migrated store, names of migrations that changed something)
    """
    applied: List[str] = []
    for version, name, migration in sorted(MIGRATIONS, key=lambda m: m[0]):
        store, changed = migration(store)
        if changed:
            applied.append(f"{version:04d}_{name}")
    return store, applied
