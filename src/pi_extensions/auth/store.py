# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential store accessor for ~/.pi/agent/auth.json.

The file is a single JSON object mapping keys such as "anthropic",
"anthropic-1" or "openai-codex-2" to credential entries. For each provider
prefix the bare key is the selected (canonical) account and numbered siblings
are alternates.

The store is loaded fresh for every command and written back immediately
after a mutation. There is no locking: a concurrent writer (for example a
login running in the host) is overwritten by the later save.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..config import auth_path
from ..core.types import CredentialEntry, CredentialStore

lib_logger = logging.getLogger("pi_extensions")


def _resolve(path: Optional[Path]) -> Path:
    return Path(path) if path is not None else auth_path()


def _extract_key_number(key: str, prefix: str) -> Optional[int]:
    """Numeric suffix of ``prefix-<n>``, or None for other keys.

    Examples:
        anthropic-1 -> 1
        anthropic-10 -> 10
        anthropic -> None
    """
    match = re.fullmatch(re.escape(prefix) + r"-(\d+)", key)
    return int(match.group(1)) if match else None


def _entry_token(entry: Any) -> Optional[str]:
    if isinstance(entry, CredentialEntry):
        return entry.token
    if isinstance(entry, dict):
        return entry.get("access") or entry.get("key")
    return None


# =============================================================================
# LOAD / SAVE
# =============================================================================


def load_raw(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the raw JSON object.

    Returns an empty dict when the file is absent, unreadable or not a JSON
    object. A corrupted file is therefore indistinguishable from "no logins
    yet"; the warning in the log is the only trace.
    """
    target = _resolve(path)
    if not target.exists():
        return {}
    try:
        with open(target, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        lib_logger.warning(f"Could not read credential store {target}: {e}")
        return {}
    if not isinstance(data, dict):
        lib_logger.warning(f"Credential store {target} is not a JSON object")
        return {}
    return data


def load(path: Optional[Path] = None) -> CredentialStore:
    """Load the credential store without running migrations."""
    return {
        key: CredentialEntry.from_dict(value)
        for key, value in load_raw(path).items()
    }


def open_store(path: Optional[Path] = None) -> CredentialStore:
    """
    Load the store and apply pending migrations.

    Migrations that change the store are flushed to disk right away so the
    host sees the same keys we do.
    """
    from .migrations import run_migrations

    store = load(path)
    migrated, applied = run_migrations(store)
    if applied:
        lib_logger.info(
            f"Applied credential store migrations: {', '.join(applied)}"
        )
        save(migrated, path)
    return migrated


def to_json_dict(store: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: entry.to_dict() if isinstance(entry, CredentialEntry) else entry
        for key, entry in store.items()
    }


def save(store: Mapping[str, Any], path: Optional[Path] = None) -> None:
    """
    Write the store as 2-space indented JSON.

    The data goes to a sibling temp file that is then renamed over the
    target, so readers never observe a half-written file. Permissions of an
    existing file are kept; a new file is created owner-only.
    """
    target = _resolve(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    mode = 0o600
    if target.exists():
        try:
            mode = target.stat().st_mode & 0o777
        except OSError:
            pass

    payload = json.dumps(to_json_dict(store), indent=2, ensure_ascii=False)
    tmp_path = target.with_suffix(target.suffix + ".tmp")
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except OSError:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise
    lib_logger.debug(f"Saved {len(store)} credential entries to {target}")


# =============================================================================
# LOOKUPS
# =============================================================================


def matches_prefix(key: str, prefix: str) -> bool:
    return key == prefix or key.startswith(prefix + "-")


def entries_for_prefix(store: Mapping[str, Any], prefix: str) -> List[str]:
    """Keys equal to ``prefix`` or starting with ``prefix-``, in store order."""
    return [key for key in store if matches_prefix(key, prefix)]


def selected_key_for_prefix(
    store: Mapping[str, Any], prefix: str
) -> Optional[str]:
    """
    The key currently in use for a provider.

    The bare prefix key wins when it holds a usable credential. Otherwise the
    numbered sibling with the lowest suffix is picked; siblings without a
    numeric suffix come last, in store order.
    """
    if _entry_token(store.get(prefix)):
        return prefix

    keys = entries_for_prefix(store, prefix)
    if not keys:
        return None

    def sort_key(item):
        position, key = item
        number = _extract_key_number(key, prefix)
        if key == prefix:
            return (2, 0, position)
        if number is None:
            return (1, 0, position)
        return (0, number, position)

    return sorted(enumerate(keys), key=sort_key)[0][1]


def cache_email(key: str, email: str, path: Optional[Path] = None) -> bool:
    """
    Store a looked-up profile email on an entry.

    Reads the file again right before writing so a switch made in between is
    not undone. Returns True when the file changed.
    """
    store = load(path)
    entry = store.get(key)
    if entry is None or entry.email == email:
        return False
    entry.email = email
    save(store, path)
    lib_logger.debug(f"Cached email for credential '{key}'")
    return True
