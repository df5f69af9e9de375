"""Shared fixtures: an in-memory Graph stand-in and a fresh run context."""

import copy
import itertools
import re
from pathlib import Path
from typing import Optional

import pytest

from hydration_kit.config import MARKER_TEXT
from hydration_kit.engine.context import HydrationContext
from hydration_kit.engine.templates import ObjectDefinition
from hydration_kit.graph.client import GraphAPIError

FILTER_RE = re.compile(r"^(\w+) eq '(.*)'$")
SUB_RESOURCES = ("targetApps", "localizedNotificationMessages")


def graph_error(status: int, code: str, message: str, url: str = "") -> GraphAPIError:
    return GraphAPIError(status, message, url, {"error": {"code": code, "message": message}})


class FakeGraph:
    """
    Collections keyed by endpoint, served in pages like Graph does.

    Failure switches:
      fail_listing[endpoint] = n   full listings raise after n objects
      fail_filter                  endpoints whose $filter lookups raise
      fail_post[name]              message for a rejected create of that name
      fail_post_path               sub-resource paths whose POST is rejected
      fail_delete                  ids whose DELETE is rejected
    """

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.collections: dict[str, list[dict]] = {}
        self.responses: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.pages_served = 0
        self.fail_listing: dict[str, int] = {}
        self.fail_filter: set[str] = set()
        self.fail_post: dict[str, str] = {}
        self.fail_post_path: set[str] = set()
        self.fail_delete: set[str] = set()
        self._ids = itertools.count(1)

    # --- seeding & inspection ---

    def seed(self, endpoint: str, *objects: dict) -> list[dict]:
        stored = []
        for obj in objects:
            obj = copy.deepcopy(obj)
            obj.setdefault("id", f"seed-{next(self._ids)}")
            self.collections.setdefault(endpoint, []).append(obj)
            stored.append(obj)
        return stored

    def objects(self, endpoint: str) -> list[dict]:
        return self.collections.get(endpoint, [])

    def writes(self, method: Optional[str] = None) -> list[tuple]:
        methods = {method} if method else {"POST", "DELETE"}
        return [c for c in self.calls if c[0] in methods]

    def posted(self, endpoint: str) -> list[dict]:
        return [c[2] for c in self.calls if c[0] == "POST" and c[1] == endpoint]

    def lookups(self, endpoint: str) -> list[str]:
        return [c[2]["$filter"] for c in self.calls if c[0] == "LIST" and c[1] == endpoint and "$filter" in c[2]]

    # --- GraphClient surface ---

    async def get(self, endpoint: str, params: Optional[dict] = None, beta: bool = False) -> dict:
        self.calls.append(("GET", endpoint, dict(params or {})))
        return copy.deepcopy(self.responses.get(endpoint, {}))

    async def get_all_pages(self, endpoint, params=None, beta=False, skip_top=False) -> list[dict]:
        return [o async for o in self.get_all_pages_stream(endpoint, params, beta, skip_top=skip_top)]

    async def get_all_pages_stream(self, endpoint, params=None, beta=False, skip_top=False):
        params = dict(params or {})
        self.calls.append(("LIST", endpoint, params))
        items = list(self.collections.get(endpoint, []))

        if "$filter" in params:
            if endpoint in self.fail_filter:
                raise graph_error(503, "ServiceUnavailable", "lookup unavailable", endpoint)
            field, value = FILTER_RE.match(params["$filter"]).groups()
            value = value.replace("''", "'")
            # Graph string comparison is case-insensitive
            items = [o for o in items if str(o.get(field, "")).lower() == value.lower()]
            limit = None
        else:
            limit = self.fail_listing.get(endpoint)

        for start in range(0, max(len(items), 1), self.page_size):
            self.pages_served += 1
            for offset, item in enumerate(items[start:start + self.page_size]):
                if limit is not None and start + offset >= limit:
                    raise graph_error(500, "InternalServerError", "listing interrupted", endpoint)
                yield copy.deepcopy(item)

    async def post(self, endpoint: str, body: dict, beta: bool = False) -> dict:
        self.calls.append(("POST", endpoint, copy.deepcopy(body)))
        if endpoint.rsplit("/", 1)[-1] in SUB_RESOURCES:
            if endpoint in self.fail_post_path:
                raise graph_error(400, "BadRequest", "sub-resource rejected", endpoint)
            return {}
        name = body.get("displayName") or body.get("name")
        if name in self.fail_post:
            raise graph_error(400, "BadRequest", self.fail_post[name], endpoint)
        created = {**copy.deepcopy(body), "id": f"new-{next(self._ids)}"}
        self.collections.setdefault(endpoint, []).append(created)
        return copy.deepcopy(created)

    async def delete(self, endpoint: str, beta: bool = False) -> dict:
        self.calls.append(("DELETE", endpoint))
        collection, remote_id = endpoint.rsplit("/", 1)
        if remote_id in self.fail_delete:
            raise graph_error(403, "Forbidden", "delete denied", endpoint)
        self.collections[collection] = [
            o for o in self.collections.get(collection, []) if o.get("id") != remote_id
        ]
        return {}


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def graph_factory():
    return FakeGraph


@pytest.fixture
def make_ctx(tmp_path):
    """Fresh context per call; a new context means a new run."""
    def factory(graph, dry_run=False, **kwargs):
        kwargs.setdefault("template_root", tmp_path / "templates")
        return HydrationContext.create(graph, dry_run=dry_run, call_delay=0, **kwargs)
    return factory


@pytest.fixture
def ctx(graph, make_ctx):
    return make_ctx(graph)


@pytest.fixture
def make_definition():
    def factory(data: dict, file_name: str = "template.json", folder: str = "Templates"):
        return ObjectDefinition(data=copy.deepcopy(data), source=Path("/templates") / folder / file_name)
    return factory


@pytest.fixture
def write_template(tmp_path):
    """Write a JSON template under tmp_path/templates/<folder>/<file_name>."""
    import json

    def factory(folder: str, file_name: str, data) -> Path:
        path = tmp_path / "templates" / folder / file_name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path
    return factory


@pytest.fixture
def marker_text():
    return MARKER_TEXT


@pytest.fixture(autouse=True)
def package_logger():
    """configure_logging() detaches the package logger from root; undo it after each test."""
    import logging

    logger = logging.getLogger("hydration_kit")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in logger.handlers:
            logger.addHandler(h)
    logger.setLevel(level)
    logger.propagate = propagate
