"""Suggestion engine FastAPI application entry point.

Wires together the catalog, signal providers, stores and services via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml``, configures structured logging, and runs the job
worker as a background task for the life of the app.

``build_components`` is shared with the CLI so both entry points wire
exactly the same objects.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from suggestion_engine import __version__
from suggestion_engine.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from suggestion_engine.api.routes import router as api_router
from suggestion_engine.config.loader import load_config
from suggestion_engine.config.settings import Settings
from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.providers.catalog.memory_catalog import InMemoryCatalogProvider
from suggestion_engine.providers.catalog.steamspy_catalog import SteamSpyCatalogProvider
from suggestion_engine.providers.llm.anthropic_provider import AnthropicLLMProvider
from suggestion_engine.providers.llm.openai_provider import OpenAILLMProvider
from suggestion_engine.providers.signals.external_ranker import ExternalRankerProvider
from suggestion_engine.providers.signals.facet_embedding import (
    DEFAULT_FACETS,
    FacetEmbeddingProvider,
)
from suggestion_engine.providers.signals.same_developer import (
    DEFAULT_TITLE_DENYLIST,
    SameDeveloperProvider,
)
from suggestion_engine.providers.signals.tag_overlap import TagOverlapProvider
from suggestion_engine.providers.store.sqlite_job_store import SQLiteJobStore
from suggestion_engine.providers.store.sqlite_suggestion_store import SQLiteSuggestionStore
from suggestion_engine.services.fuser import CandidateFuser
from suggestion_engine.services.scheduler import SuggestionScheduler
from suggestion_engine.services.status_notifier import StatusNotifier
from suggestion_engine.services.suggestion_engine import SuggestionEngine
from suggestion_engine.services.vibe_filter import VibeConflictFilter
from suggestion_engine.utils.logging import configure_logging, get_logger
from suggestion_engine.utils.rate_limiter import RateLimiterRegistry

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


_LLM_FACTORIES: dict[str, Callable[[Settings], ILLMProvider]] = {
    "anthropic": AnthropicLLMProvider,
    "openai": OpenAILLMProvider,
}


def _build_llm_provider(app_settings: Settings) -> ILLMProvider | None:
    """Select the first LLM provider with a configured key (Anthropic, then OpenAI)."""
    available = app_settings.get_available_llm_providers()
    if not available:
        return None
    return _LLM_FACTORIES[available[0]](app_settings)


def _build_catalog(
    app_settings: Settings,
    http_client: httpx.AsyncClient,
    limiters: RateLimiterRegistry,
) -> ICatalogProvider:
    if app_settings.catalog_seed_path:
        return InMemoryCatalogProvider.from_json_file(app_settings.catalog_seed_path)
    return SteamSpyCatalogProvider(
        http_client=http_client,
        limiters=limiters,
        steamspy_url=app_settings.steamspy_base_url,
        store_url=app_settings.steam_store_base_url,
    )


def _build_signal_providers(
    cfg: dict[str, Any],
    catalog: ICatalogProvider,
    llm: ILLMProvider | None,
) -> list[ISignalProvider]:
    """Explicit, ordered provider list.  Order here is the fan-out order."""
    provider_cfg = cfg.get("providers", {})
    tag_cfg = provider_cfg.get("tag_overlap", {})
    dev_cfg = provider_cfg.get("same_developer", {})
    facet_cfg = provider_cfg.get("facet_embedding", {})
    ranker_cfg = provider_cfg.get("external_ranker", {})

    providers: list[ISignalProvider] = [
        SameDeveloperProvider(
            catalog,
            score=dev_cfg.get("score", 0.8),
            max_credits=dev_cfg.get("max_credits", 2),
            title_denylist=dev_cfg.get("title_denylist", DEFAULT_TITLE_DENYLIST),
        ),
        TagOverlapProvider(
            catalog,
            source_tag_count=tag_cfg.get("source_tag_count", 4),
            pool_size=tag_cfg.get("pool_size", 25),
            min_score=tag_cfg.get("min_score", 0.13),
            compare_top=tag_cfg.get("compare_top", 15),
        ),
        FacetEmbeddingProvider(
            catalog,
            facets=facet_cfg.get("facets", DEFAULT_FACETS),
            pool_size=facet_cfg.get("pool_size", 500),
            similarity_floor=facet_cfg.get("similarity_floor", 0.3),
            top_k=facet_cfg.get("top_k", 15),
        ),
    ]
    if llm is not None and ranker_cfg.get("enabled", True):
        ranker = ExternalRankerProvider(
            catalog,
            llm,
            pool_size=ranker_cfg.get("pool_size", 20),
            threshold=ranker_cfg.get("threshold", 7),
        )
        if ranker.is_available():
            providers.append(ranker)
        else:
            _logger.warning("external_ranker_unavailable", llm=llm.get_provider_name())
    return providers


def build_components(
    app_settings: Settings,
    cfg: dict[str, Any],
    catalog: ICatalogProvider | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout)
    limiters = RateLimiterRegistry(intervals=cfg.get("rate_limits", {}))

    # -- Catalog + signals --
    if catalog is None:
        catalog = _build_catalog(app_settings, http_client, limiters)
    llm = _build_llm_provider(app_settings)
    providers = _build_signal_providers(cfg, catalog, llm)

    # -- Engine --
    engine_cfg = cfg.get("engine", {})
    fuser = CandidateFuser(
        vibe_filter=VibeConflictFilter.from_config(cfg.get("vibe_conflicts")),
        result_size=engine_cfg.get("result_size", 12),
        provider_priority={p.name: p.priority for p in providers},
    )
    engine = SuggestionEngine(
        catalog=catalog,
        providers=providers,
        fuser=fuser,
        provider_timeout=engine_cfg.get("provider_timeout", 45.0),
    )

    # -- Persistence (one SQLite file, two tables) --
    job_store = SQLiteJobStore(db_path=app_settings.suggestions_db_path)
    suggestion_store = SQLiteSuggestionStore(db_path=app_settings.suggestions_db_path)

    # -- Scheduling + status --
    worker_cfg = cfg.get("worker", {})
    stream_cfg = cfg.get("stream", {})
    scheduler = SuggestionScheduler(
        engine=engine,
        job_store=job_store,
        suggestion_store=suggestion_store,
        poll_interval=worker_cfg.get("poll_interval", 2.0),
        max_concurrent_jobs=worker_cfg.get("max_concurrent_jobs", 1),
    )
    status_notifier = StatusNotifier(
        job_store=job_store,
        suggestion_store=suggestion_store,
        poll_interval=stream_cfg.get("poll_interval", 2.0),
        max_no_change=stream_cfg.get("max_no_change", 30),
    )

    provider_info = {
        "catalog": catalog.get_provider_name(),
        "signals": [p.name for p in providers],
        "llm": llm.get_provider_name() if llm else None,
    }

    return {
        "http_client": http_client,
        "rate_limiters": limiters,
        "catalog": catalog,
        "engine": engine,
        "job_store": job_store,
        "suggestion_store": suggestion_store,
        "scheduler": scheduler,
        "status_notifier": status_notifier,
        "provider_info": provider_info,
    }


async def initialize_stores(components: dict[str, Any], cfg: dict[str, Any]) -> None:
    """Create tables and fail any jobs a previous worker left ``running``."""
    await components["job_store"].initialize()
    await components["suggestion_store"].initialize()
    stale_after = cfg.get("worker", {}).get("stale_after_seconds", 0)
    await components["job_store"].reset_stale_running(older_than_seconds=stale_after)


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all components on startup, clean up on shutdown."""
    components = build_components(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await initialize_stores(components, config)

    scheduler: SuggestionScheduler = components["scheduler"]
    if settings.worker_enabled:
        scheduler.start()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        **components["provider_info"],
    )

    yield

    # -- Shutdown: stop the worker, close shared httpx client --
    await scheduler.stop()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Worker stopped, HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Game Suggestion Engine API",
        version=__version__,
        description=(
            "Enqueue a game and receive a ranked list of similar games, fused "
            "from tag overlap, shared credits, facet embeddings and an "
            "optional LLM ranker, with live status over server-sent events."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "suggestion_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
