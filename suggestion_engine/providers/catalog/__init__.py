"""Catalog adapters.

Two concrete implementations of ICatalogProvider
(suggestion_engine/interfaces/catalog_provider.py):
    - InMemoryCatalogProvider  - seeded from a JSON file; has embeddings
    - SteamSpyCatalogProvider  - live SteamSpy + Steam store search; no embeddings

main.py uses the in-memory catalog when CATALOG_SEED_PATH is set.
"""

from suggestion_engine.providers.catalog.memory_catalog import InMemoryCatalogProvider
from suggestion_engine.providers.catalog.steamspy_catalog import SteamSpyCatalogProvider

__all__ = ["InMemoryCatalogProvider", "SteamSpyCatalogProvider"]
