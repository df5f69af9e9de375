"""
Per-run catalog of existing remote objects.

Each collection is enumerated once (following every continuation token) and
kept in memory for the rest of the run. Objects created, or planned in a dry
run, are recorded alongside so later lookups in the same run see them.
Nothing is persisted between runs.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger("hydration_kit.cache")

RemoteObject = dict[str, Any]
Predicate = Callable[[RemoteObject], bool]
CollectionKey = tuple[str, bool]


def _odata_literal(value: str) -> str:
    return value.replace("'", "''")


class RemoteCatalog:
    """
    Paginated enumeration and name indexing of remote collections.

    Listing failures are not fatal: whatever was read before the failure is
    kept, the collection is flagged unavailable, and callers fall back to
    scoped lookups through find_by_name().
    """

    def __init__(self, graph):
        self.graph = graph
        self._fetched: dict[CollectionKey, list[RemoteObject]] = {}
        self._session: dict[CollectionKey, list[RemoteObject]] = {}
        self._unavailable: set[CollectionKey] = set()
        self._indexes: dict[tuple[str, bool, str, Optional[str]], dict[str, RemoteObject]] = {}

    async def list_all(
        self,
        endpoint: str,
        beta: bool = False,
        skip_top: bool = False,
    ) -> list[RemoteObject]:
        """Every object in the collection, fetched on first use."""
        key = (endpoint, beta)
        if key not in self._fetched:
            self._fetched[key] = await self._fetch(endpoint, beta, skip_top)
        return self._fetched[key] + self._session.get(key, [])

    async def _fetch(self, endpoint: str, beta: bool, skip_top: bool) -> list[RemoteObject]:
        objects: list[RemoteObject] = []
        try:
            async for item in self.graph.get_all_pages_stream(
                endpoint, beta=beta, skip_top=skip_top
            ):
                objects.append(item)
        except Exception as e:
            self._unavailable.add((endpoint, beta))
            logger.warning(
                f"Listing {endpoint} failed after {len(objects)} objects: "
                f"{type(e).__name__}: {e}"
            )
        else:
            logger.debug(f"Catalogued {len(objects)} objects from {endpoint}")
        return objects

    def is_available(self, endpoint: str, beta: bool = False) -> bool:
        return (endpoint, beta) not in self._unavailable

    @staticmethod
    def build_index(objects: Iterable[RemoteObject], name_field: str) -> dict[str, RemoteObject]:
        """Name → object. The first occurrence of a duplicate name wins."""
        index: dict[str, RemoteObject] = {}
        for obj in objects:
            name = obj.get(name_field)
            if isinstance(name, str) and name not in index:
                index[name] = obj
        return index

    async def index(
        self,
        endpoint: str,
        name_field: str,
        beta: bool = False,
        skip_top: bool = False,
        include: Optional[Predicate] = None,
        scope: Optional[str] = None,
    ) -> Optional[dict[str, RemoteObject]]:
        """
        Name index for a collection, or None when the listing was incomplete.

        include narrows a shared collection to one kind of object; scope names
        that narrowing so differently filtered indexes are cached apart.
        """
        objects = await self.list_all(endpoint, beta=beta, skip_top=skip_top)
        if not self.is_available(endpoint, beta):
            return None

        cache_key = (endpoint, beta, name_field, scope)
        if cache_key not in self._indexes:
            selected = objects if include is None else [o for o in objects if include(o)]
            self._indexes[cache_key] = self.build_index(selected, name_field)
        return self._indexes[cache_key]

    async def find_by_name(
        self,
        endpoint: str,
        name_field: str,
        name: str,
        beta: bool = False,
        include: Optional[Predicate] = None,
    ) -> Optional[RemoteObject]:
        """
        Scoped lookup for one display name: objects recorded this run first,
        then a server-side exact filter.

        Graph compares filter strings case-insensitively, so server results
        are re-checked for an exact match here.
        """
        for obj in self._session.get((endpoint, beta), []):
            if obj.get(name_field) == name and (include is None or include(obj)):
                return obj

        params = {"$filter": f"{name_field} eq '{_odata_literal(name)}'"}
        async for obj in self.graph.get_all_pages_stream(
            endpoint, params=params, beta=beta, skip_top=True
        ):
            if obj.get(name_field) == name and (include is None or include(obj)):
                return obj
        return None

    def remember(self, endpoint: str, obj: RemoteObject, beta: bool = False):
        """Record an object created (or planned) during this run."""
        self._session.setdefault((endpoint, beta), []).append(obj)
        self._drop_indexes(endpoint, beta)

    def forget(self, endpoint: str, remote_id: Optional[str], beta: bool = False):
        """Drop an object deleted (or planned for deletion) during this run."""
        if remote_id is None:
            return
        key = (endpoint, beta)
        for store in (self._fetched, self._session):
            if key in store:
                store[key] = [o for o in store[key] if o.get("id") != remote_id]
        self._drop_indexes(endpoint, beta)

    def _drop_indexes(self, endpoint: str, beta: bool):
        for k in [k for k in self._indexes if k[0] == endpoint and k[1] == beta]:
            del self._indexes[k]
