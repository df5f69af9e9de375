"""Tests for the Graph client against a mocked transport."""

import asyncio
import json

import httpx
import pytest

from hydration_kit.cache.catalog import RemoteCatalog
from hydration_kit.engine.kinds import DEVICE_FILTER
from hydration_kit.engine.outcomes import Action
from hydration_kit.engine.reconciler import Reconciler
from hydration_kit.graph import client as client_module
from hydration_kit.graph.client import GraphAPIError, GraphClient, PaginationLimitError, extract_error_message
from hydration_kit.safety.guardian import SafetyGuardian, SafetyViolation

BASE = "https://graph.microsoft.com/beta"


def make_client(handler, dry_run=False):
    client = GraphClient("token", SafetyGuardian(dry_run=dry_run))
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def run(client, coro_factory):
    async def go():
        try:
            return await coro_factory(client)
        finally:
            await client._client.aclose()
    return asyncio.run(go())


class TestPagination:
    def test_follows_next_link(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            if "skiptoken" in str(request.url):
                return httpx.Response(200, json={"value": [{"id": "3"}]})
            return httpx.Response(200, json={
                "value": [{"id": "1"}, {"id": "2"}],
                "@odata.nextLink": f"{BASE}/deviceManagement/assignmentFilters?$skiptoken=abc",
            })

        client = make_client(handler)
        items = run(client, lambda c: c.get_all_pages("deviceManagement/assignmentFilters", beta=True))

        assert [i["id"] for i in items] == ["1", "2", "3"]
        assert len(seen) == 2
        assert seen[0].params["$top"] == "100"
        assert "$top" not in seen[1].params

    def test_skip_top(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json={"value": []})

        client = make_client(handler)
        run(client, lambda c: c.get_all_pages("subscribedSkus", skip_top=True))

        assert "$top" not in seen[0].params
        assert str(seen[0]).startswith("https://graph.microsoft.com/v1.0/subscribedSkus")

    def test_forbidden_listing_raises(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"code": "Forbidden", "message": "Missing scope"}})

        client = make_client(handler)

        with pytest.raises(GraphAPIError) as err:
            run(client, lambda c: c.get_all_pages("groups"))
        assert err.value.status_code == 403

    def test_page_cap_raises(self, monkeypatch):
        """Hitting the page cap is an incomplete listing, not a finished one."""
        monkeypatch.setattr(client_module, "MAX_PAGES_PER_ENDPOINT", 2)

        def handler(request):
            return httpx.Response(200, json={
                "value": [{"id": "x"}],
                "@odata.nextLink": f"{BASE}/groups?$skiptoken=more",
            })

        client = make_client(handler)

        with pytest.raises(PaginationLimitError):
            run(client, lambda c: c.get_all_pages("groups", beta=True))

    def test_page_cap_marks_catalog_unavailable(self, monkeypatch):
        monkeypatch.setattr(client_module, "MAX_PAGES_PER_ENDPOINT", 1)

        def handler(request):
            return httpx.Response(200, json={
                "value": [{"id": "x", "displayName": "G"}],
                "@odata.nextLink": f"{BASE}/groups?$skiptoken=more",
            })

        client = make_client(handler)
        catalog = RemoteCatalog(client)
        objects = run(client, lambda c: catalog.list_all("groups"))

        assert [o["id"] for o in objects] == ["x"]
        assert not catalog.is_available("groups")


class TestWrites:
    def test_post_returns_created_object(self):
        def handler(request):
            assert request.method == "POST"
            assert json.loads(request.content) == {"displayName": "Filter"}
            return httpx.Response(201, json={"id": "abc", "displayName": "Filter"})

        client = make_client(handler)
        created = run(client, lambda c: c.post("deviceManagement/assignmentFilters", {"displayName": "Filter"}, beta=True))

        assert created["id"] == "abc"
        assert client.guardian.writes_allowed == 1

    def test_delete_no_content(self):
        client = make_client(lambda request: httpx.Response(204))

        assert run(client, lambda c: c.delete("deviceManagement/assignmentFilters/abc", beta=True)) == {}

    def test_error_body_is_preserved(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": "BadRequest", "message": "Invalid rule"}})

        client = make_client(handler)

        with pytest.raises(GraphAPIError) as err:
            run(client, lambda c: c.post("groups", {"displayName": "G"}))
        assert err.value.status_code == 400
        assert extract_error_message(err.value) == "BadRequest: Invalid rule"

    def test_throttled_request_is_retried(self, monkeypatch):
        """A 429 is waited out and the request repeated."""
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(201, json={"id": "g1"}),
        ])

        client = make_client(lambda request: next(responses))
        created = run(client, lambda c: c.post("groups", {"displayName": "G"}))

        assert created == {"id": "g1"}
        stats = client.get_stats()
        assert stats["total_requests"] == 2
        assert stats["throttle_events"] == 1
        assert stats["requests_by_method"] == {"POST": 2}

    def test_persistent_throttling_gives_up(self, monkeypatch):
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        monkeypatch.setattr(client_module, "MAX_RETRIES", 2)
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"error": {"code": "ServiceUnavailable", "message": "Busy"}})

        client = make_client(handler)

        with pytest.raises(GraphAPIError) as err:
            run(client, lambda c: c.get("organization"))
        assert err.value.status_code == 503
        assert len(calls) == 3
        assert client.get_stats()["retries"] == 2

    def test_dropped_connection_is_retried(self, monkeypatch):
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, json={"value": [{"id": "o1"}]})

        client = make_client(handler)

        assert run(client, lambda c: c.get("organization")) == {"value": [{"id": "o1"}]}
        assert len(attempts) == 2

    @pytest.mark.parametrize("status", [503, 504])
    def test_gateway_error_on_write_is_not_retried(self, monkeypatch, status):
        """A write answered with a gateway error may already be applied; sending it again could duplicate it."""
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        calls = []

        def handler(request):
            calls.append(request.method)
            return httpx.Response(status)

        client = make_client(handler)

        with pytest.raises(GraphAPIError) as err:
            run(client, lambda c: c.post("deviceManagement/assignmentFilters", {"displayName": "F"}, beta=True))
        assert err.value.status_code == status
        assert calls == ["POST"]

    def test_dropped_write_is_not_retried(self, monkeypatch):
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        calls = []

        def handler(request):
            calls.append(request.method)
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(GraphAPIError, match="ReadTimeout during DELETE"):
            run(client, lambda c: c.delete("deviceManagement/assignmentFilters/abc", beta=True))
        assert calls == ["DELETE"]

    def test_dry_run_blocks_before_transport(self):
        """The guardian stops the write before any request is sent."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={})

        client = make_client(handler, dry_run=True)

        with pytest.raises(SafetyViolation):
            run(client, lambda c: c.post("groups", {"displayName": "G"}))
        assert calls == []


class TestCreateConvergence:
    def test_committed_create_answered_with_gateway_error(self, monkeypatch, make_ctx, make_definition):
        """The filter exists after the 504, so the failed run and the rerun leave exactly one copy."""
        monkeypatch.setattr(client_module, "INITIAL_BACKOFF_SECONDS", 0)
        store = []

        def handler(request):
            if request.method == "POST":
                store.append({**json.loads(request.content), "id": f"f{len(store) + 1}"})
                return httpx.Response(504)
            return httpx.Response(200, json={"value": store})

        definition = make_definition(
            {"displayName": "Windows 11", "platform": "windows10AndLater", "rule": "x"}, folder="DeviceFilters"
        )

        def ensure():
            client = make_client(handler)
            return run(client, lambda c: Reconciler(make_ctx(c)).ensure(DEVICE_FILTER, definition))

        first = ensure()
        second = ensure()

        assert first.action is Action.FAILED
        assert second.action is Action.SKIPPED
        assert [o["displayName"] for o in store] == ["Windows 11"]


class TestExtractErrorMessage:
    def test_plain_exception(self):
        assert extract_error_message(ValueError("boom")) == "boom"
        assert extract_error_message(ValueError()) == "ValueError"

    def test_message_without_code(self):
        err = GraphAPIError(500, "fallback", "u", {"error": {"message": "Server error"}})
        assert extract_error_message(err) == "Server error"

    def test_message_attribute_when_no_body(self):
        assert extract_error_message(GraphAPIError(500, "fallback", "u")) == "fallback"
