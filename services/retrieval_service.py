"""
Registry of retrieval back-ends, one per retrieval intent.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class RetrievalBackend(Protocol):
    """A search back-end; result shapes differ per back-end."""

    async def search(self, query: str,
                     collection: Optional[str] = None,
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...


class RetrievalService:
    """Routes retrieval intents to their registered back-ends."""

    def __init__(self, backends: Optional[Dict[str, RetrievalBackend]] = None,
                 collections: Optional[Dict[str, str]] = None):
        """
        Initialize the retrieval service.

        Args:
            backends: Mapping of intent to back-end
            collections: Optional mapping of intent to collection name
        """
        self._backends: Dict[str, RetrievalBackend] = dict(backends or {})
        self._collections: Dict[str, str] = dict(collections or {})

    def register(self, intent: str, backend: RetrievalBackend, collection: Optional[str] = None):
        """Register the back-end serving an intent."""
        logger.info(f"Registering retrieval back-end for {intent}")
        self._backends[intent] = backend
        if collection:
            self._collections[intent] = collection

    def has_backend(self, intent: str) -> bool:
        return intent in self._backends

    async def search(self, intent: str, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Run a query against the back-end registered for an intent.

        Raises:
            KeyError: No back-end is registered for the intent
        """
        backend = self._backends.get(intent)
        if backend is None:
            raise KeyError(f"No retrieval back-end registered for intent '{intent}'")
        collection = self._collections.get(intent)
        logger.debug(f"Searching {intent} (collection={collection}, limit={limit}): '{query}'")
        return await backend.search(query, collection=collection, limit=limit)


class InMemoryRetrievalBackend:
    """Keyword search over a fixed list of documents, for local runs and tests."""

    def __init__(self, documents: List[Dict[str, Any]]):
        self.documents = list(documents)

    async def search(self, query: str,
                     collection: Optional[str] = None,
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        terms = [t for t in query.lower().split() if len(t) > 2]
        scored = []
        for doc in self.documents:
            haystack = f"{doc.get('title', '')} {doc.get('content', '')}".lower()
            hits = sum(1 for t in terms if t in haystack)
            if hits:
                scored.append({**doc, "score": hits / len(terms)})
        scored.sort(key=lambda d: d["score"], reverse=True)
        return scored[:limit] if limit else scored
