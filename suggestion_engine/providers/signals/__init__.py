"""Signal providers.

Four concrete implementations of ISignalProvider
(suggestion_engine/interfaces/signal_provider.py), in tie-break priority
order:
    - SameDeveloperProvider  (0) - shared developer / publisher credits
    - TagOverlapProvider     (1) - catalog tag index + top-15 tag overlap
    - FacetEmbeddingProvider (1) - per-facet embedding nearest neighbours
    - ExternalRankerProvider (2) - LLM vibe judgement over a bounded pool
"""

from suggestion_engine.providers.signals.external_ranker import ExternalRankerProvider
from suggestion_engine.providers.signals.facet_embedding import FacetEmbeddingProvider
from suggestion_engine.providers.signals.same_developer import SameDeveloperProvider
from suggestion_engine.providers.signals.tag_overlap import TagOverlapProvider

__all__ = [
    "ExternalRankerProvider",
    "FacetEmbeddingProvider",
    "SameDeveloperProvider",
    "TagOverlapProvider",
]
