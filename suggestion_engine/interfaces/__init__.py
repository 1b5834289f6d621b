"""Abstract interfaces (ports) implemented by the concrete providers."""

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.job_store import IJobStore
from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.interfaces.suggestion_store import ISuggestionStore

__all__ = [
    "ICatalogProvider",
    "IJobStore",
    "ILLMProvider",
    "ISignalProvider",
    "ISuggestionStore",
]
