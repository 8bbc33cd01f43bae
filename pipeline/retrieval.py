"""
Retrieval component for the chat pipeline.
"""
import time
import logging
from typing import Any, Dict, List, Optional

from config import PipelineSettings
from models.state import ChatState
from models.results import NormalizedResult
from models.classification import (
    DEEP_RESEARCH,
    EXAMPLE_SEARCH,
    INFORMATIONAL_SEARCH,
    PARTY_DOCUMENT_SEARCH,
    WEB_SEARCH,
    requires_retrieval,
)
from pipeline.normalization import normalize_results, build_citations
from services.retrieval_service import RetrievalService

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    INFORMATIONAL_SEARCH: "knowledge-base",
    PARTY_DOCUMENT_SEARCH: "party-documents",
    WEB_SEARCH: "web",
    EXAMPLE_SEARCH: "examples",
    DEEP_RESEARCH: "research",
}


def is_tool_enabled(state: ChatState, intent: Optional[str]) -> bool:
    """Tools are enabled unless the request switches them off explicitly."""
    return bool((state.get("enabled_tools") or {}).get(intent, True))


def research_queries(state: ChatState) -> List[str]:
    """Primary research query (brief first) followed by the sub-queries, without repeats."""
    primary = state.get("research_brief") or state.get("search_query") or state.get("user_message", "")
    queries = []
    for query in [primary] + list(state.get("sub_queries") or []):
        query = (query or "").strip()
        if query and query not in queries:
            queries.append(query)
    return queries


def merge_research_results(result_lists: List[List[NormalizedResult]]) -> List[NormalizedResult]:
    """De-duplicate by url keeping the first occurrence, then order by relevance."""
    seen_urls = set()
    merged = []
    for results in result_lists:
        for result in results:
            if result.url:
                if result.url in seen_urls:
                    continue
                seen_urls.add(result.url)
            merged.append(result)
    return sorted(merged, key=lambda r: r.relevance, reverse=True)


class ResultRetriever:
    """Retrieval node: runs the intent's back-end and normalizes its hits."""

    def __init__(self, settings: PipelineSettings, retrieval_service: RetrievalService):
        self.settings = settings
        self.retrieval_service = retrieval_service

    async def _search(self, intent: str, query: str, events: List[Dict[str, Any]]) -> Optional[List[NormalizedResult]]:
        try:
            raw_results = await self.retrieval_service.search(intent, query, limit=self.settings.retrieval_limit)
        except Exception as e:
            logger.error(f"Retrieval failed for {intent} query '{query}': {str(e)}")
            events.append({"type": "retrieval_failed", "intent": intent, "query": query, "error": str(e)})
            return None

        events.append({"type": "search_executed", "intent": intent, "query": query})
        results = normalize_results(raw_results, SOURCE_LABELS.get(intent, intent))
        logger.info(f"{intent} search for '{query}' returned {len(results)} results")
        return results

    async def __call__(self, state: ChatState) -> Dict[str, Any]:
        """
        Retrieves and normalizes results for the classified intent.

        Args:
            state: The current chat state

        Returns:
            Partial state update with results and citations
        """
        start_time = time.time()
        intent = state.get("intent")

        if not requires_retrieval(intent) or not is_tool_enabled(state, intent):
            logger.info(f"No retrieval for intent {intent}")
            return {"search_results": [], "citations": [], "searched_queries": []}

        events: List[Dict[str, Any]] = []
        if intent == DEEP_RESEARCH:
            queries = research_queries(state)
        else:
            queries = [state.get("search_query") or state.get("user_message", "")]

        collected = []
        for query in queries:
            results = await self._search(intent, query, events)
            if results is not None:
                collected.append(results)

        update: Dict[str, Any] = {"searched_queries": queries}
        if not collected:
            update["error"] = f"Retrieval failed for intent {intent}"
            results = []
        elif intent == DEEP_RESEARCH:
            results = merge_research_results(collected)
        else:
            results = collected[0]

        citations = build_citations(
            results,
            max_citations=self.settings.max_citations,
            snippet_length=self.settings.citation_snippet_length,
        )
        retrieval_time_ms = (time.time() - start_time) * 1000
        logger.info(f"Retrieved {len(results)} results with {len(citations)} citations in {retrieval_time_ms:.0f}ms")

        update.update({
            "search_results": results,
            "citations": citations,
            "retrieval_time_ms": retrieval_time_ms,
            "events": events,
        })
        return update
