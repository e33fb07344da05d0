"""Tests for OutreachAggregator — ApiClient over MockTransport, real cache storage."""

import httpx
import pytest

from recruit_sync.api.client import ApiClient
from recruit_sync.outreach.aggregator import (
    EMAIL_STATUS_KEY,
    SAVED_CONTACTS_KEY,
    SOCIAL_FOLLOWERS_KEY,
    OutreachAggregator,
    OutreachUnavailableError,
)
from recruit_sync.outreach.types import OutreachStatus

SAVED = [
    {
        "id": "s1",
        "collegeCoach": {"id": "c1", "name": "Pat Smith", "email": "pat@state.edu", "twitter": "coachpat"},
        "engagement": {"lastEmailSent": "2026-03-05T12:00:00Z"},
    },
    {
        "id": "s2",
        "collegeCoach": {"id": "c2", "name": "Lee Jones", "email": "lee@tech.edu"},
    },
]
FOLLOWERS = {
    "connected": True,
    "username": "athlete",
    "matches": [
        {"id": "m1", "coach": {"id": "c1", "name": "Pat Smith"}, "discoveredAt": "2026-03-09T12:00:00Z"},
    ],
}
EMAIL_STATUS = {"connected": True, "activeConnection": {"email": "me@x.com"}}


# ── Helpers ────────────────────────────────────────────────────────────────────


def make_api(failing: set[str] | None = None, saved: object = None) -> ApiClient:
    failing = failing or set()
    routes = {
        "/api/saved-coaches": SAVED if saved is None else saved,
        "/api/twitter/followers": FOLLOWERS,
        "/api/email/status": EMAIL_STATUS,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path in failing:
            return httpx.Response(500, json={"error": "down"})
        return httpx.Response(200, json=routes[path])

    return ApiClient("http://backend.test", transport=httpx.MockTransport(handler))


# ── Refresh ────────────────────────────────────────────────────────────────────


class TestRefresh:
    async def test_merges_all_sources(self, make_context) -> None:
        api = make_api()
        view = await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

        assert view.social_connected
        assert view.email_connected
        assert not view.is_stale
        assert view.failed_sources == ()
        engaged = view.section(OutreachStatus.ENGAGED).items
        assert [i.contact.name for i in engaged] == ["Pat Smith"]
        assert engaged[0].is_following and engaged[0].is_hot
        assert [i.contact.name for i in view.section(OutreachStatus.NEED_CONTACT).items] == ["Lee Jones"]

    async def test_populates_cache_for_each_source(self, make_context) -> None:
        context = make_context(online=True)
        api = make_api()
        await OutreachAggregator(api, context).refresh()
        await api.close()

        for key in (SAVED_CONTACTS_KEY, SOCIAL_FOLLOWERS_KEY, EMAIL_STATUS_KEY):
            assert await context.cache.get(key) is not None

    async def test_social_failure_keeps_saved_items(self, make_context) -> None:
        api = make_api(failing={"/api/twitter/followers"})
        aggregator = OutreachAggregator(api, make_context(online=True))
        view = await aggregator.refresh()
        await api.close()

        assert view.failed_sources == (SOCIAL_FOLLOWERS_KEY,)
        items = [i for s in view.sections for i in s.items]
        assert sorted(i.contact.name for i in items) == ["Lee Jones", "Pat Smith"]
        assert all(not i.has_social and not i.is_following for i in items)
        assert aggregator.view is view

    async def test_all_sources_failing_raises(self, make_context) -> None:
        api = make_api(failing={"/api/saved-coaches", "/api/twitter/followers", "/api/email/status"})
        with pytest.raises(OutreachUnavailableError):
            await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

    async def test_failed_fetch_falls_back_to_cache(self, make_context) -> None:
        context = make_context(online=True)
        good = make_api()
        await OutreachAggregator(good, context).refresh()
        await good.close()

        bad = make_api(failing={"/api/saved-coaches", "/api/twitter/followers", "/api/email/status"})
        view = await OutreachAggregator(bad, context).refresh()
        await bad.close()

        assert view.is_stale
        assert view.failed_sources == ()
        assert view.engaged_count == 1

    async def test_offline_serves_cache_and_marks_stale_when_old(self, make_context, clock) -> None:
        online = make_context(online=True)
        api = make_api()
        await OutreachAggregator(api, online).refresh()

        clock.advance(minutes=10)
        offline = make_context(online=False)
        view = await OutreachAggregator(api, offline).refresh()
        await api.close()

        assert view.is_stale
        assert len([i for s in view.sections for i in s.items]) == 2

    async def test_offline_without_cache_raises(self, make_context) -> None:
        api = make_api()
        with pytest.raises(OutreachUnavailableError):
            await OutreachAggregator(api, make_context(online=False)).refresh()
        await api.close()

    async def test_malformed_saved_record_is_skipped(self, make_context) -> None:
        api = make_api(saved=[SAVED[1], {"id": "broken"}])
        view = await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

        names = [i.contact.name for s in view.sections for i in s.items]
        assert sorted(names) == ["Lee Jones", "Pat Smith"]


# ── Unreadable payloads ────────────────────────────────────────────────────────


def make_api_with_body(path: str, response: httpx.Response) -> ApiClient:
    """Backend where ``path`` answers with ``response`` and everything else is healthy."""
    routes = {
        "/api/saved-coaches": SAVED,
        "/api/twitter/followers": FOLLOWERS,
        "/api/email/status": EMAIL_STATUS,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == path:
            return response
        return httpx.Response(200, json=routes[request.url.path])

    return ApiClient("http://backend.test", transport=httpx.MockTransport(handler))


def html_page() -> httpx.Response:
    return httpx.Response(200, text="<html>maintenance</html>", headers={"Content-Type": "text/html"})


def list_body() -> httpx.Response:
    return httpx.Response(200, json=["unexpected"])


SOURCE_PATHS = [
    ("/api/saved-coaches", SAVED_CONTACTS_KEY),
    ("/api/twitter/followers", SOCIAL_FOLLOWERS_KEY),
    ("/api/email/status", EMAIL_STATUS_KEY),
]


class TestUnreadablePayloads:
    @pytest.mark.parametrize("path,key", SOURCE_PATHS)
    async def test_html_body_marks_source_failed(self, make_context, path: str, key: str) -> None:
        api = make_api_with_body(path, html_page())
        view = await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

        assert view.failed_sources == (key,)

    @pytest.mark.parametrize("path,key", SOURCE_PATHS)
    async def test_list_body_marks_source_failed(self, make_context, path: str, key: str) -> None:
        # A list is the right shape for saved contacts, but its entries are not records.
        api = make_api_with_body(path, list_body())
        view = await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

        if key == SAVED_CONTACTS_KEY:
            assert view.failed_sources == ()
            names = [i.contact.name for s in view.sections for i in s.items]
            assert names == ["Pat Smith"]
        else:
            assert view.failed_sources == (key,)

    async def test_cached_unreadable_payload_does_not_break_offline_refresh(self, make_context) -> None:
        online = make_context(online=True)
        api = make_api_with_body("/api/twitter/followers", html_page())
        await OutreachAggregator(api, online).refresh()

        view = await OutreachAggregator(api, make_context(online=False)).refresh()
        await api.close()

        assert view.failed_sources == (SOCIAL_FOLLOWERS_KEY,)
        names = sorted(i.contact.name for s in view.sections for i in s.items)
        assert names == ["Lee Jones", "Pat Smith"]

    async def test_non_dict_saved_record_is_skipped(self, make_context) -> None:
        api = make_api(saved=["oops", 42, SAVED[1]])
        view = await OutreachAggregator(api, make_context(online=True)).refresh()
        await api.close()

        names = sorted(i.contact.name for s in view.sections for i in s.items)
        assert names == ["Lee Jones", "Pat Smith"]
