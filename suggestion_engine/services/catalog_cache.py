"""Run-scoped catalog cache.

One :class:`RunCatalog` is created per engine run and dropped when the run
ends.  It wraps the real catalog and memoises every lookup for the life of
the run, so when the tag provider, the developer provider and the veto
hydration all ask for the same game, the upstream sees one request.

Lookups are memoised as futures, which also collapses *concurrent*
requests for the same key into one upstream call.  Failed lookups are not
cached.  Nothing here outlives the run; there is no module-level state.

Use it as ``async with RunCatalog(catalog) as run:``.  Leaving the block
cancels lookups still in flight (a provider that timed out abandons its
waiters but not the shared lookup) and waits for them, so no request keeps
holding an upstream rate-limiter slot after the run has ended.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.models.game import Game


class RunCatalog(ICatalogProvider):
    """Memoising :class:`ICatalogProvider` wrapper scoped to one engine run."""

    def __init__(self, catalog: ICatalogProvider) -> None:
        self._catalog = catalog
        self._memo: dict[Hashable, asyncio.Future[Any]] = {}
        self._upstream_calls = 0
        self._closed = False

    @property
    def upstream_calls(self) -> int:
        """Number of lookups actually forwarded to the wrapped catalog."""
        return self._upstream_calls

    @property
    def pending(self) -> int:
        """Lookups started but not finished."""
        return sum(1 for future in self._memo.values() if not future.done())

    async def aclose(self) -> None:
        """Cancel in-flight lookups, wait for them and drop the memo."""
        self._closed = True
        futures = list(self._memo.values())
        self._memo.clear()
        for future in futures:
            if not future.done():
                future.cancel()
        if futures:
            await asyncio.wait(futures)
        for future in futures:
            # Retrieve failures nobody awaited so they aren't reported as lost.
            if not future.cancelled():
                future.exception()

    async def __aenter__(self) -> RunCatalog:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _cached(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        if self._closed:
            raise RuntimeError("RunCatalog used after its run ended")
        future = self._memo.get(key)
        if future is None:
            self._upstream_calls += 1
            future = asyncio.ensure_future(factory())
            self._memo[key] = future
        try:
            # Shield so one cancelled waiter doesn't cancel the shared lookup.
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            raise
        except Exception:
            if self._memo.get(key) is future:
                del self._memo[key]
            raise

    # ------------------------------------------------------------------
    # ICatalogProvider implementation
    # ------------------------------------------------------------------

    async def get_game(self, appid: int) -> Game | None:
        return await self._cached(("game", appid), lambda: self._catalog.get_game(appid))

    async def search_by_tag(self, tag: str) -> list[int]:
        key = ("tag", tag.strip().lower())
        return list(await self._cached(key, lambda: self._catalog.search_by_tag(tag)))

    async def search_by_developer(self, name: str) -> list[int]:
        key = ("developer", name.strip().lower())
        return list(await self._cached(key, lambda: self._catalog.search_by_developer(name)))

    async def search_by_publisher(self, name: str) -> list[int]:
        key = ("publisher", name.strip().lower())
        return list(await self._cached(key, lambda: self._catalog.search_by_publisher(name)))

    async def embedding_pool(self, facet: str, limit: int) -> list[tuple[int, list[float]]]:
        key = ("embedding", facet, limit)
        return list(await self._cached(key, lambda: self._catalog.embedding_pool(facet, limit)))

    async def list_appids(self, limit: int | None = None) -> list[int]:
        return await self._catalog.list_appids(limit)

    def get_provider_name(self) -> str:
        return self._catalog.get_provider_name()
