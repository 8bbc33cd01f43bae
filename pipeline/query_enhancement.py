"""
Query optimization for the chat pipeline.

Strips task instructions ("Schreib eine Pressemitteilung über ...") from a
request so that retrieval only sees the factual topic.
"""
import re
import logging
from typing import Optional

from pipeline.rules import FACT_BASED_CONTENT_TYPES

logger = logging.getLogger(__name__)

TASK_VERBS = (
    "schreib", "erstell", "formulier", "verfass", "generier", "mach", "bereite",
    "entwirf", "erstelle", "schreibe", "formuliere", "verfasse",
)

CONTENT_NOUNS = FACT_BASED_CONTENT_TYPES + (
    "text", "entwurf", "zusammenfassung", "post", "tweet",
)

# Longest alternatives first so "über das thema" wins over "über"
PREPOSITIONS = (
    "über das thema", "zu dem thema", "zum thema", "bezüglich", "betreffend",
    "über", "zum", "zur", "zu",
)

ARTICLES = ("der", "die", "das", "den", "dem", "des")

MIN_TOPIC_LENGTH = 4
MIN_KEPT_RATIO = 0.1
MAX_KEPT_RATIO = 0.9


def _build_task_prefix(content_nouns) -> re.Pattern:
    nouns = sorted(set(content_nouns), key=len, reverse=True)
    return re.compile(
        r"^(" + "|".join(TASK_VERBS) + r")[etn]*\s*"
        r"(mir\s+)?(bitte\s+)?(eine?[nrms]?\s+)?"
        r"(kurze[nrms]?\s+|lange[nrms]?\s+|ausführliche[nrms]?\s+)?"
        r"(" + "|".join(re.escape(n) for n in nouns) + r")\b\s*"
        r"(?:(" + "|".join(PREPOSITIONS) + r")\s+(?:(?:" + "|".join(ARTICLES) + r")\s+)?)?",
        re.IGNORECASE,
    )


TASK_PREFIX_PATTERN = _build_task_prefix(CONTENT_NOUNS)


def extract_search_topic(query: str, content_type: Optional[str] = None) -> str:
    """
    Remove a leading task instruction and return the remaining topic.

    Args:
        query: The natural-language request
        content_type: Optional content type detected upstream (e.g. "rede")

    Returns:
        The topic, or the unchanged query when stripping would leave
        too little to search for
    """
    if not query:
        return query

    pattern = TASK_PREFIX_PATTERN
    if content_type and content_type.lower() not in CONTENT_NOUNS:
        pattern = _build_task_prefix(CONTENT_NOUNS + (content_type.lower(),))

    stripped = pattern.sub("", query.strip(), count=1).strip()

    if len(stripped) < MIN_TOPIC_LENGTH:
        return query
    if len(stripped) >= len(query) * MAX_KEPT_RATIO:
        # Nothing meaningful was removed
        return query
    if len(stripped) < len(query) * MIN_KEPT_RATIO:
        return query

    logger.debug(f"Optimized search query: '{query}' → '{stripped}'")
    return stripped
