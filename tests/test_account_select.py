# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from datetime import datetime, timedelta, timezone

import httpx

from conftest import FIXED_NOW, FakeContext, FakeUI, Router, bearer
from pi_extensions.core.types import AccountProfile, CredentialEntry, RateWindow
from pi_extensions.extensions.account_select import (
    CLAUDE_SELECTOR,
    CODEX_SELECTOR,
    CODEX_WIDGET_KEY,
    AccountChoice,
    build_label,
    codex_widget_line,
    dedupe_by_account,
    run_selector,
    update_codex_widget,
)
from pi_extensions.providers.utilities.anthropic_usage import (
    ANTHROPIC_PROFILE_URL,
    ANTHROPIC_USAGE_URL,
)
from pi_extensions.providers.utilities.codex_usage import (
    CODEX_PROFILE_URL,
    CODEX_USAGE_URL,
    OPENAI_ME_URL,
)


def _iso_in(hours):
    when = datetime.now(timezone.utc) + timedelta(hours=hours)
    return when.isoformat().replace("+00:00", "Z")


def _claude_usage(five_hour):
    return {
        "five_hour": {"utilization": five_hour, "resets_at": _iso_in(3)},
        "seven_day": {"utilization": 20, "resets_at": _iso_in(72)},
    }


def _pick(fragment):
    def answer(options):
        return next(option for option in options if fragment in option)

    return answer


# =============================================================================
# LABELS
# =============================================================================


def test_build_label():
    choice = AccountChoice(
        key="anthropic-1",
        entry=CredentialEntry(),
        windows=[
            RateWindow("5h", 72, FIXED_NOW + timedelta(hours=1, minutes=20), 18000),
            RateWindow("week", 30, FIXED_NOW + timedelta(days=3, hours=4), 604800),
        ],
        profile=AccountProfile(email="me@example.com"),
    )
    assert build_label(choice, recommended=True, now=FIXED_NOW) == (
        "! me@example.com | 5h: 72% (1h20m) | week: 30% (3d4h) (recommended)"
    )


def test_build_label_without_usage_falls_back_to_key():
    choice = AccountChoice(key="openai-codex-2", entry=CredentialEntry(), balance="$1.00")
    assert build_label(choice) == "openai-codex-2 | $1.00"


def test_dedupe_by_account_keeps_first_login():
    def choice(key, uuid):
        return AccountChoice(key=key, entry=CredentialEntry(), profile=AccountProfile(uuid=uuid))

    choices = [choice("a", "u1"), choice("b", None), choice("c", "u1"), choice("d", None)]
    assert [c.key for c in dedupe_by_account(choices)] == ["a", "b", "d"]


def test_codex_widget_line():
    windows = [
        RateWindow("5h", 12, FIXED_NOW + timedelta(hours=2, minutes=30)),
        RateWindow("week", 50, FIXED_NOW + timedelta(hours=25)),
    ]
    assert codex_widget_line("me@x.com", windows, "$4.20", FIXED_NOW) == (
        "me@x.com • 12% 2h 30m • 50% 1d 1h • $4.20"
    )


# =============================================================================
# CLAUDE SELECT
# =============================================================================


def _claude_router():
    def usage(request):
        return _claude_usage(90 if bearer(request) == "tok-a" else 10)

    def profile(request):
        token = bearer(request)
        return {"account": {"email": f"{token}@x.com", "uuid": token}}

    return Router({ANTHROPIC_USAGE_URL: usage, ANTHROPIC_PROFILE_URL: profile})


async def test_claude_select_switches_to_chosen_login(write_auth, read_auth):
    write_auth(
        {
            "anthropic": {"type": "oauth", "access": "tok-a"},
            "anthropic-1": {"type": "oauth", "access": "tok-b"},
        }
    )
    ui = FakeUI(answer=_pick("tok-b@x.com"))
    ctx = FakeContext(ui)

    async with _claude_router().client() as client:
        selected = await run_selector(CLAUDE_SELECTOR, ctx, client)

    assert selected == "anthropic-1"
    title, options = ui.selects[0]
    assert title == "Select Anthropic Login"
    assert options[0].startswith("!! tok-a@x.com | 5h: 90%")
    assert options[1].startswith("tok-b@x.com | 5h: 10%")
    assert options[1].endswith("(recommended)")

    data = read_auth()
    assert data["anthropic"]["access"] == "tok-b"
    assert data["anthropic-1"]["access"] == "tok-a"
    assert ctx.reloads == 1
    assert ui.notifications[-1] == ("Account switched to tok-b@x.com", "success")


async def test_claude_select_hides_duplicate_account(write_auth):
    write_auth(
        {
            "anthropic": {"type": "oauth", "access": "tok-a"},
            "anthropic-1": {"type": "oauth", "access": "tok-a"},
            "anthropic-2": {"type": "oauth", "access": "tok-b"},
        }
    )
    ui = FakeUI(answer=None)
    async with _claude_router().client() as client:
        assert await run_selector(CLAUDE_SELECTOR, FakeContext(ui), client) is None
    _, options = ui.selects[0]
    assert len(options) == 2


async def test_duplicate_labels_get_key_suffix(write_auth):
    write_auth(
        {
            "anthropic": {"type": "oauth", "access": "tok-a"},
            "anthropic-1": {"type": "oauth", "access": "tok-b"},
        }
    )
    router = Router(
        {
            ANTHROPIC_USAGE_URL: httpx.Response(500),
            ANTHROPIC_PROFILE_URL: {"account": {"email": "same@x.com"}},
        }
    )
    ui = FakeUI(answer=None)
    async with router.client() as client:
        await run_selector(CLAUDE_SELECTOR, FakeContext(ui), client)
    _, options = ui.selects[0]
    assert options == ["same@x.com", "same@x.com [anthropic-1]"]


async def test_claude_select_messages(write_auth):
    ui = FakeUI()
    ctx = FakeContext(ui)
    assert await run_selector(CLAUDE_SELECTOR, ctx) is None
    assert ui.notifications == [("No Anthropic logins found in auth.json", "warning")]

    write_auth({"anthropic": {"type": "oauth", "access": "tok-a"}})
    await run_selector(CLAUDE_SELECTOR, ctx)
    assert ui.notifications[-1] == ("Only one Anthropic login available", "info")
    assert ui.selects == []


async def test_cancelled_select_changes_nothing(write_auth, read_auth):
    original = {
        "anthropic": {"type": "oauth", "access": "tok-a"},
        "anthropic-1": {"type": "oauth", "access": "tok-b"},
    }
    write_auth(original)
    ctx = FakeContext(FakeUI(answer=None))
    async with _claude_router().client() as client:
        assert await run_selector(CLAUDE_SELECTOR, ctx, client) is None
    assert read_auth() == original
    assert ctx.reloads == 0


# =============================================================================
# CODEX SELECT AND WIDGET
# =============================================================================


def _codex_router():
    def usage(request):
        used = 80 if bearer(request) == "c1" else 5
        return {
            "plan_type": "plus",
            "rate_limit": {
                "primary_window": {
                    "used_percent": used,
                    "reset_at": int(datetime.now(timezone.utc).timestamp()) + 3600,
                    "limit_window_seconds": 18000,
                }
            },
            "credits": {"balance": 2},
        }

    def profile(request):
        if bearer(request) == "c1":
            return {"account": {"email": "one@x.com", "uuid": "u1"}}
        return {"account": {"uuid": "u2"}}

    return Router(
        {
            CODEX_USAGE_URL: usage,
            CODEX_PROFILE_URL: profile,
            OPENAI_ME_URL: {"email": "two@x.com"},
        }
    )


async def test_codex_select_caches_email_and_updates_widget(write_auth, read_auth):
    write_auth(
        {
            "openai-codex": {"type": "oauth", "access": "c1", "accountId": "a1"},
            "openai-codex-1": {"type": "oauth", "access": "c2", "accountId": "a2"},
        }
    )
    ui = FakeUI(answer=_pick("two@x.com"))
    ctx = FakeContext(ui, provider="openai-codex")
    router = _codex_router()

    async with router.client() as client:
        selected = await run_selector(CODEX_SELECTOR, ctx, client)

    assert selected == "openai-codex-1"
    _, options = ui.selects[0]
    assert options[0].startswith("!! one@x.com | 5h: 80% (")
    assert options[1].startswith("two@x.com | 5h: 5% (")
    assert options[1].endswith("| $2.00 (recommended)")

    data = read_auth()
    assert data["openai-codex"]["access"] == "c2"
    assert data["openai-codex"]["email"] == "two@x.com"
    assert data["openai-codex-1"]["access"] == "c1"

    (line,) = ui.widgets[CODEX_WIDGET_KEY]
    assert line.startswith("two@x.com • 5% ")
    assert line.endswith("• $2.00")
    assert ui.notifications[-1] == ("Account switched to two@x.com", "success")


async def test_widget_skipped_for_other_providers(write_auth):
    write_auth({"openai-codex": {"type": "oauth", "access": "c1"}})
    ui = FakeUI()
    router = _codex_router()
    async with router.client() as client:
        await update_codex_widget(FakeContext(ui, provider="anthropic"), client)
    assert ui.widgets == {}
    assert router.requests == []


async def test_widget_shows_active_codex_account(write_auth):
    write_auth({"openai-codex": {"type": "oauth", "access": "c1"}})
    ui = FakeUI()
    async with _codex_router().client() as client:
        await update_codex_widget(FakeContext(ui, provider="openai"), client)
    (line,) = ui.widgets[CODEX_WIDGET_KEY]
    assert line.startswith("one@x.com • 80% ")


async def test_widget_left_alone_on_failure(write_auth):
    write_auth({"openai-codex": {"type": "oauth", "access": "c1"}})
    ui = FakeUI()
    router = Router({CODEX_USAGE_URL: httpx.Response(401)})
    async with router.client() as client:
        await update_codex_widget(FakeContext(ui, provider="openai-codex"), client)
    assert ui.widgets == {}
