"""
Normalization of raw retrieval hits and citation building.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from models.results import Citation, NormalizedResult

logger = logging.getLogger(__name__)

# Back-ends disagree on field names; first present wins
TITLE_FIELDS = ("title", "name", "source")
CONTENT_FIELDS = ("content", "snippet", "excerpt", "text")
SCORE_FIELDS = ("score", "relevance", "similarity")
URL_FIELDS = ("url", "link", "source_url")

RELEVANCE_DECAY = 0.1
MAX_CITATIONS = 8
CITATION_SNIPPET_LENGTH = 200


def _first_value(raw: Dict[str, Any], fields: Iterable[str]) -> Optional[Any]:
    for field in fields:
        value = raw.get(field)
        if value is not None and value != "":
            return value
    return None


def normalize_result(raw: Dict[str, Any], index: int, source: str) -> NormalizedResult:
    """
    Map one raw hit onto a NormalizedResult.

    Args:
        raw: Back-end specific result dictionary
        index: Position in the back-end's result list, used for the default relevance
        source: Label of the back-end that produced the hit

    Returns:
        The normalized result
    """
    title = _first_value(raw, TITLE_FIELDS)
    content = _first_value(raw, CONTENT_FIELDS)
    score = _first_value(raw, SCORE_FIELDS)
    url = _first_value(raw, URL_FIELDS)

    if score is None:
        score = 1 - index * RELEVANCE_DECAY

    return NormalizedResult(
        source=source,
        title=str(title) if title is not None else f"Quelle {index + 1}",
        content=str(content) if content is not None else "",
        url=str(url) if url else None,
        relevance=score,
    )


def normalize_results(raw_results: Optional[List[Dict[str, Any]]], source: str) -> List[NormalizedResult]:
    """Normalize a back-end result list, preserving its order."""
    normalized = []
    for index, raw in enumerate(raw_results or []):
        if isinstance(raw, NormalizedResult):
            normalized.append(raw)
            continue
        if not isinstance(raw, dict):
            logger.debug(f"Skipping non-mapping result at position {index}: {type(raw).__name__}")
            continue
        normalized.append(normalize_result(raw, index, source))
    return normalized


def build_citations(results: List[NormalizedResult],
                    max_citations: int = MAX_CITATIONS,
                    snippet_length: int = CITATION_SNIPPET_LENGTH) -> List[Citation]:
    """
    Derive numbered citations from url-bearing results.

    Citations keep the order of first appearance and are numbered from 1.
    """
    citations = []
    for result in results:
        if not result.url:
            continue
        citations.append(Citation(
            ordinal=len(citations) + 1,
            title=result.title,
            url=result.url,
            snippet=result.content[:snippet_length],
        ))
        if len(citations) >= max_citations:
            break
    return citations
