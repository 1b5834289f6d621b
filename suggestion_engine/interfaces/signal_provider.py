"""Abstract base class for candidate-generating signal providers.

Each provider turns one kind of weak evidence (shared tags, shared credits,
embedding proximity, an LLM's opinion) into scored :class:`Candidate`
objects.  The engine keeps an explicit, ordered list of providers and fans
out to all of them concurrently.

Providers may raise; the engine's fan-out boundary converts any exception
or timeout into an empty contribution, so one broken provider never fails
the whole job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game


# Concrete implementations: TagOverlapProvider, SameDeveloperProvider,
# FacetEmbeddingProvider, ExternalRankerProvider
# Located in: suggestion_engine/providers/signals/
class ISignalProvider(ABC):
    """Contract for a single signal source.

    Attributes
    ----------
    name:
        Stable key recorded in ``Candidate.raw_scores_by_source``.
    priority:
        Tie-break rank used by the fuser when fused scores are equal;
        lower wins.
    """

    name: str = ""
    priority: int = 1

    @abstractmethod
    async def generate(
        self,
        source: Game,
        limit: int,
        catalog: ICatalogProvider | None = None,
    ) -> list[Candidate]:
        """Produce up to *limit* candidates for *source*.

        Must never include ``source.appid`` itself.  *catalog* overrides
        the provider's own catalog for this call; the engine passes its
        run-scoped cache here.
        """

    def get_provider_name(self) -> str:
        return self.name

    def is_available(self) -> bool:
        """Return ``True`` if the provider's collaborators are configured."""
        return True
