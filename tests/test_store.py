# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import os
import stat

import pytest

from pi_extensions.accounts import reorganize_keys
from pi_extensions.auth import (
    cache_email,
    entries_for_prefix,
    load,
    load_raw,
    open_store,
    save,
    selected_key_for_prefix,
)
from pi_extensions.core.types import CredentialEntry


def test_missing_file_is_empty_store(auth_file):
    assert not auth_file.exists()
    assert load() == {}


def test_corrupted_file_is_empty_store(auth_file):
    auth_file.parent.mkdir(parents=True)
    auth_file.write_text("{not json", encoding="utf-8")
    assert load_raw() == {}


def test_non_object_file_is_empty_store(write_auth):
    write_auth(["anthropic"])
    assert load() == {}


def test_save_keeps_unknown_fields_and_order(write_auth, read_auth):
    write_auth(
        {
            "zai": {"type": "api_key", "key": "zk"},
            "openai-codex": {
                "type": "oauth",
                "access": "at",
                "refresh": "rt",
                "expires": 1700000000000,
                "accountId": "acct-1",
                "hostField": {"nested": True},
            },
        }
    )
    store = load()
    codex = store["openai-codex"]
    assert codex.account_id == "acct-1"
    assert codex.extra == {"hostField": {"nested": True}}

    save(store)
    data = read_auth()
    assert list(data) == ["zai", "openai-codex"]
    assert data["openai-codex"]["accountId"] == "acct-1"
    assert data["openai-codex"]["hostField"] == {"nested": True}
    assert "account_id" not in data["openai-codex"]


def test_save_writes_indented_json_and_no_temp_file(auth_file):
    save({"zai": CredentialEntry(type="api_key", key="k")})
    text = auth_file.read_text(encoding="utf-8")
    assert text.startswith('{\n  "zai"')
    assert json.loads(text) == {"zai": {"type": "api_key", "key": "k"}}
    assert list(auth_file.parent.iterdir()) == [auth_file]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_new_store_is_owner_only(auth_file):
    save({"zai": CredentialEntry(type="api_key", key="k")})
    assert stat.S_IMODE(auth_file.stat().st_mode) == 0o600


def test_entries_for_prefix_is_literal(write_auth):
    write_auth(
        {
            "anthropic": {"access": "a"},
            "zai": {"key": "z"},
            "anthropic-2": {"access": "b"},
            "anthropicold": {"access": "c"},
            "anthropic-work": {"access": "d"},
        }
    )
    store = load()
    assert entries_for_prefix(store, "anthropic") == [
        "anthropic",
        "anthropic-2",
        "anthropic-work",
    ]


def test_bare_key_with_token_is_selected():
    store = {
        "anthropic-1": CredentialEntry(access="b"),
        "anthropic": CredentialEntry(access="a"),
    }
    assert selected_key_for_prefix(store, "anthropic") == "anthropic"


def test_lowest_numbered_key_selected_without_usable_bare_key():
    store = {
        "anthropic": CredentialEntry(),
        "anthropic-work": CredentialEntry(access="w"),
        "anthropic-10": CredentialEntry(access="x"),
        "anthropic-2": CredentialEntry(access="y"),
    }
    assert selected_key_for_prefix(store, "anthropic") == "anthropic-2"


def test_unnumbered_sibling_selected_last():
    store = {
        "anthropic-work": CredentialEntry(access="w"),
        "anthropic": CredentialEntry(),
    }
    assert selected_key_for_prefix(store, "anthropic") == "anthropic-work"
    assert selected_key_for_prefix(store, "zai") is None


def test_cache_email_only_writes_changes(write_auth, read_auth):
    write_auth({"openai-codex": {"type": "oauth", "access": "t"}})
    assert cache_email("openai-codex", "me@example.com") is True
    assert read_auth()["openai-codex"]["email"] == "me@example.com"
    assert cache_email("openai-codex", "me@example.com") is False
    assert cache_email("openai-codex-9", "x@example.com") is False


def test_open_store_persists_migrations(write_auth, read_auth):
    write_auth({"codex": {"type": "oauth", "access": "t"}, "zai": {"key": "z"}})
    store = open_store()
    assert "openai-codex" in store
    assert set(read_auth()) == {"zai", "openai-codex"}


def test_reorganize_round_trip_leaves_other_entries_untouched(write_auth, read_auth):
    untouched = {
        "zai": {"key": "z"},
        "note": "hello",
        "flags": [1, 2],
        "openai-codex": {"type": "api_key", "key": "sk", "hostField": None},
    }
    write_auth(
        {
            "anthropic": {"type": "oauth", "access": "a"},
            "anthropic-1": {"type": "oauth", "access": "b"},
            **untouched,
        }
    )

    save(reorganize_keys(load(), "anthropic-1", "anthropic"))

    data = read_auth()
    for key, value in untouched.items():
        assert data[key] == value
    assert data["anthropic"] == {"type": "oauth", "access": "b"}
    assert data["anthropic-1"] == {"type": "oauth", "access": "a"}


def test_entry_without_type_is_not_oauth():
    entry = CredentialEntry.from_dict({"access": "a"})
    assert entry.type is None
    assert not entry.is_oauth
    assert entry.to_dict() == {"access": "a"}

    opaque = CredentialEntry.from_dict("hello")
    assert not opaque.is_usable
    assert opaque.to_dict() == "hello"
