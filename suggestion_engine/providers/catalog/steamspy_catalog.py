"""Catalog adapter over SteamSpy and the Steam store search page.

- ``get_game`` and ``search_by_tag`` use the SteamSpy JSON API
  (``request=appdetails`` / ``request=tag``).
- ``search_by_developer`` / ``search_by_publisher`` parse the Steam store
  search results page, where each result row carries a ``data-ds-appid``
  attribute.

Both upstreams are slow and ban aggressive clients, so every request first
passes through the shared per-upstream limiter from the
:class:`RateLimiterRegistry`.  Transient failures (timeouts, 429, 5xx) are
retried with backoff.  Once retries are exhausted, searches degrade to an
empty result, but :meth:`get_game` raises
:class:`ProviderUnavailableError`: "SteamSpy is down" must not read as
"no such game".

SteamSpy has no embeddings, so :meth:`embedding_pool` is always empty and
the facet provider contributes nothing when this catalog is in use.
"""

from __future__ import annotations

from typing import Any

import httpx
from bs4 import BeautifulSoup

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.models.game import Game
from suggestion_engine.utils.errors import (
    ProviderUnavailableError,
    RateLimitError,
    SuggestionEngineError,
)
from suggestion_engine.utils.logging import get_logger
from suggestion_engine.utils.rate_limiter import RateLimiterRegistry
from suggestion_engine.utils.retry import RetryConfig, is_retryable_exception, retry_call

_STEAMSPY_URL = "https://steamspy.com/api.php"
_STORE_URL = "https://store.steampowered.com"
_USER_AGENT = "suggestion-engine/0.1.0"
_STEAMSPY = "steamspy"
_STEAM_STORE = "steam_store"


class SteamSpyCatalogProvider(ICatalogProvider):
    """Live catalog backed by SteamSpy and the Steam store.

    The ``httpx.AsyncClient`` and the limiter registry are injected so the
    app shares one connection pool and one limiter per upstream.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        limiters: RateLimiterRegistry,
        steamspy_url: str = _STEAMSPY_URL,
        store_url: str = _STORE_URL,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._http = http_client
        self._limiters = limiters
        self._steamspy_url = steamspy_url
        self._store_url = store_url.rstrip("/")
        self._retry = retry_config or RetryConfig(max_attempts=3, base_delay=1.0)
        self._logger = get_logger(__name__)

    # -- Private helpers -------------------------------------------------------

    async def _request(self, upstream: str, url: str, params: dict[str, Any]) -> httpx.Response:
        """Issue one rate-limited GET; raise on retryable failures."""
        await self._limiters.get(upstream).acquire()
        response = await self._http.get(
            url,
            params=params,
            headers={"User-Agent": _USER_AGENT},
            follow_redirects=True,
        )
        if response.status_code == 429:
            raise RateLimitError(
                message=f"{upstream} returned 429",
                provider_name=upstream,
            )
        response.raise_for_status()
        return response

    async def _fetch(
        self,
        upstream: str,
        url: str,
        params: dict[str, Any],
        required: bool = False,
    ) -> httpx.Response | None:
        """Fetch with retries; ``None`` once the upstream has given up.

        With *required*, a transient failure that outlasts the retries
        raises :class:`ProviderUnavailableError` instead.  A definite answer
        such as a 404 is still ``None``.
        """
        try:
            return await retry_call(self._request, upstream, url, params, config=self._retry)
        except (httpx.HTTPError, SuggestionEngineError) as exc:
            self._logger.warning(
                "catalog_request_failed",
                upstream=upstream,
                url=url,
                params=params,
                error=str(exc),
            )
            if required and is_retryable_exception(exc, self._retry):
                raise ProviderUnavailableError(
                    message=f"{upstream} unavailable: {exc}",
                    provider_name=upstream,
                ) from exc
            return None

    async def _fetch_json(self, params: dict[str, Any], required: bool = False) -> Any:
        response = await self._fetch(_STEAMSPY, self._steamspy_url, params, required=required)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as exc:
            self._logger.warning(
                "catalog_malformed_payload",
                upstream=_STEAMSPY,
                params=params,
                error=str(exc),
            )
            return None

    @staticmethod
    def _parse_store_appids(html: str) -> list[int]:
        """Extract appids from Steam store search result rows.

        Bundle rows list several comma-separated appids and are skipped.
        """
        soup = BeautifulSoup(html, "html.parser")
        seen: set[int] = set()
        appids: list[int] = []
        for row in soup.find_all(attrs={"data-ds-appid": True}):
            raw = str(row.get("data-ds-appid", "")).strip()
            if not raw.isdigit():
                continue
            appid = int(raw)
            if appid > 0 and appid not in seen:
                seen.add(appid)
                appids.append(appid)
        return appids

    async def _store_search(self, field: str, name: str) -> list[int]:
        if not name.strip():
            return []
        response = await self._fetch(
            _STEAM_STORE,
            f"{self._store_url}/search/",
            {field: name.strip()},
        )
        if response is None:
            return []
        return self._parse_store_appids(response.text)

    # ------------------------------------------------------------------
    # ICatalogProvider implementation
    # ------------------------------------------------------------------

    async def get_game(self, appid: int) -> Game | None:
        data = await self._fetch_json({"request": "appdetails", "appid": appid}, required=True)
        if not isinstance(data, dict) or not data.get("appid"):
            return None
        try:
            return Game(
                appid=int(data["appid"]),
                title=data.get("name") or "",
                developer=data.get("developer") or "",
                publisher=data.get("publisher") or "",
                tags=data.get("tags") or {},
            )
        except (TypeError, ValueError) as exc:
            self._logger.warning("catalog_game_invalid", appid=appid, error=str(exc))
            return None

    async def search_by_tag(self, tag: str) -> list[int]:
        if not tag.strip():
            return []
        data = await self._fetch_json({"request": "tag", "tag": tag.strip()})
        if not isinstance(data, dict):
            return []
        appids: list[int] = []
        for key, entry in data.items():
            raw = entry.get("appid") if isinstance(entry, dict) else key
            try:
                appids.append(int(raw))
            except (TypeError, ValueError):
                continue
        return appids

    async def search_by_developer(self, name: str) -> list[int]:
        return await self._store_search("developer", name)

    async def search_by_publisher(self, name: str) -> list[int]:
        return await self._store_search("publisher", name)

    async def embedding_pool(self, facet: str, limit: int) -> list[tuple[int, list[float]]]:
        return []

    async def list_appids(self, limit: int | None = None) -> list[int]:
        # SteamSpy has no cheap "all games" listing; batch generation needs a
        # seeded catalog.
        return []

    def get_provider_name(self) -> str:
        return "steamspy"
