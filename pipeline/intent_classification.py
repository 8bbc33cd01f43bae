"""
Intent classification component for the chat pipeline.

Heuristics first; the language model is only consulted when the heuristic
confidence is below HEURISTIC_CONFIDENCE_THRESHOLD.
"""
import re
import json
import time
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from config import PipelineSettings
from models.state import ChatState
from models.classification import (
    ClassificationResult,
    VALID_INTENTS,
    INTENT_ALIASES,
    RETIRED_INTENTS,
    INFORMATIONAL_SEARCH,
    PARTY_DOCUMENT_SEARCH,
    WEB_SEARCH,
    EXAMPLE_SEARCH,
    DEEP_RESEARCH,
    IMAGE_GENERATION,
    requires_retrieval,
)
from pipeline.heuristics import HeuristicClassifier, detect_complexity, detect_temporal, detect_summary_request
from pipeline.query_enhancement import extract_search_topic
from utils.llm import LLMRequest, LLMService, LLMServiceError, LLMUnavailableError, JSON_OBJECT
from utils.prompts import INTENT_CLASSIFICATION_PROMPT

logger = logging.getLogger(__name__)


LLM_CONFIDENCE = 0.9
SNIFFED_CONFIDENCE = 0.6

SHORTEST_OBJECT_PATTERN = re.compile(r"\{.*?\}", re.DOTALL)
LARGEST_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)

# Plain-text sniffing order; longer names before the generic "search"
SNIFF_KEYWORDS = (
    ("image", IMAGE_GENERATION),
    ("research", DEEP_RESEARCH),
    ("party-document", PARTY_DOCUMENT_SEARCH),
    ("informational", INFORMATIONAL_SEARCH),
    ("example", EXAMPLE_SEARCH),
    ("web", WEB_SEARCH),
    ("search", PARTY_DOCUMENT_SEARCH),
)


def extract_user_message(messages: List[Dict[str, Any]]) -> str:
    """Return the text of the most recent user message."""
    for message in reversed(messages or []):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                str(part.get("text", ""))
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        return str(content or "")
    return ""


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _process_parsed(parsed: Any, user_content: str, extracted: bool = False) -> Optional[ClassificationResult]:
    """Turn a decoded classifier payload into a result, or None if unusable."""
    if not isinstance(parsed, dict):
        return None

    if parsed.get("typoAnalysis"):
        typo = parsed["typoAnalysis"]
        if isinstance(typo, dict):
            logger.debug(f"Typo detected: '{typo.get('original')}' → '{typo.get('corrected')}'")
    if parsed.get("contentType"):
        logger.debug(f"Content type: {parsed['contentType']}, needsResearch: {parsed.get('needsResearch')}")

    intent = str(parsed.get("intent") or "").strip().lower()
    optimized = _as_text(parsed.get("optimizedSearchQuery"))
    raw_query = _as_text(parsed.get("searchQuery"))
    query = optimized or raw_query or user_content
    if optimized and raw_query and optimized != raw_query:
        logger.debug(f"Query optimized: '{raw_query}' → '{optimized}'")

    if intent in RETIRED_INTENTS:
        return ClassificationResult(
            intent=RETIRED_INTENTS[intent],
            search_query=query,
            reasoning=f"{intent.capitalize()} intent rerouted to {RETIRED_INTENTS[intent]} (feature disabled)",
            confidence=LLM_CONFIDENCE,
        )

    intent = INTENT_ALIASES.get(intent, intent)
    if intent not in VALID_INTENTS:
        return None

    sub_queries = parsed.get("subQueries")
    if isinstance(sub_queries, list):
        sub_queries = [q for q in sub_queries if isinstance(q, str)]
    else:
        sub_queries = None

    suffix = " (extracted)" if extracted else ""
    result = ClassificationResult(
        intent=intent,
        search_query=query if requires_retrieval(intent) else None,
        sub_queries=sub_queries,
        reasoning=(_as_text(parsed.get("reasoning")) or "LLM classification") + suffix,
        confidence=LLM_CONFIDENCE,
    )
    if result.sub_queries:
        logger.debug(f"Decomposed into {len(result.sub_queries)} sub-queries: {' | '.join(result.sub_queries)}")
    return result


def _try_json(candidate: str, user_content: str, extracted: bool) -> Optional[ClassificationResult]:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    try:
        return _process_parsed(parsed, user_content, extracted)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning(f"Classifier payload rejected: {str(e)}")
        return None


def parse_classifier_response(content: str,
                              user_content: str,
                              heuristic: HeuristicClassifier) -> ClassificationResult:
    """
    Parse the classifier output with a layered fallback chain.

    1. the whole response as JSON
    2. the shortest brace-delimited substring
    3. the largest brace-delimited substring
    4. intent names sniffed from plain text
    5. the heuristic classifier
    """
    content = content or ""

    result = _try_json(content, user_content, extracted=False)
    if result:
        return result

    match = SHORTEST_OBJECT_PATTERN.search(content)
    if match:
        result = _try_json(match.group(0), user_content, extracted=True)
        if result:
            return result

    match = LARGEST_OBJECT_PATTERN.search(content)
    if match:
        result = _try_json(match.group(0), user_content, extracted=True)
        if result:
            return result

    content_lower = content.lower()
    for keyword, intent in SNIFF_KEYWORDS:
        if keyword in content_lower:
            logger.warning(f"Classifier output not parseable, sniffed intent: {intent}")
            return ClassificationResult(
                intent=intent,
                search_query=user_content if requires_retrieval(intent) else None,
                reasoning=f"Fallback: {keyword} detected in response",
                confidence=SNIFFED_CONFIDENCE,
            )

    logger.warning("Classifier output unusable, falling back to heuristics")
    return heuristic.classify(user_content)


class IntentClassifier:
    """Classifier node: heuristics with a gated language-model fallback."""

    def __init__(self, settings: PipelineSettings, llm_service: LLMService,
                 heuristic: Optional[HeuristicClassifier] = None):
        self.settings = settings
        self.llm_service = llm_service
        self.heuristic = heuristic or HeuristicClassifier(settings)

    @property
    def confidence_threshold(self) -> float:
        return self.settings.heuristic_confidence_threshold

    async def classify(self, text: str) -> Tuple[ClassificationResult, bool]:
        """
        Classify a user utterance.

        Returns:
            The classification and whether the language model was consulted

        Raises:
            LLMUnavailableError: The language-model service is unreachable
        """
        heuristic = self.heuristic.classify(text)

        if len(text) < self.settings.short_message_length:
            logger.info(f"Short message, heuristics: {heuristic.intent} (confidence: {heuristic.confidence:.2f})")
            return heuristic, False

        if heuristic.confidence >= self.confidence_threshold:
            logger.info(f"Heuristics (confidence: {heuristic.confidence:.2f}): {heuristic.intent} - {heuristic.reasoning}")
            return self._optimize_heuristic(heuristic), False

        logger.debug(f"Low heuristic confidence ({heuristic.confidence:.2f}), using LLM")
        request = LLMRequest.from_prompt(
            INTENT_CLASSIFICATION_PROMPT,
            {"query": text},
            model=self.settings.classifier_model,
            max_tokens=250,
            temperature=0.1,
            response_format=JSON_OBJECT,
        )
        try:
            response = await self.llm_service.complete(request)
        except LLMUnavailableError:
            raise
        except LLMServiceError as e:
            logger.error(f"Classifier LLM call failed: {str(e)}")
            return heuristic.model_copy(update={"reasoning": f"Heuristic fallback (error: {str(e)})"}), True

        return parse_classifier_response(response.content, text, self.heuristic), True

    def _optimize_heuristic(self, result: ClassificationResult) -> ClassificationResult:
        query = result.search_query
        if query and requires_retrieval(result.intent):
            query = extract_search_topic(query)
        return result.model_copy(update={
            "search_query": query,
            "reasoning": f"{result.reasoning} (heuristic, confidence: {result.confidence:.2f})",
        })

    async def __call__(self, state: ChatState) -> Dict[str, Any]:
        """
        Identifies the user's intent.

        Args:
            state: The current chat state

        Returns:
            Partial state update with the classification
        """
        start_time = time.time()
        logger.info("Starting intent classification")

        user_content = extract_user_message(state.get("messages", []))
        complexity = detect_complexity(user_content)

        classification, used_llm = await self.classify(user_content)
        classification_time_ms = (time.time() - start_time) * 1000

        logger.info(f"Classified intent: {classification.intent} in {classification_time_ms:.0f}ms - "
                    f"{classification.reasoning}")

        events = [{
            "type": "classified",
            "intent": classification.intent,
            "confidence": classification.confidence,
            "used_llm": used_llm,
        }]
        if used_llm:
            events.append({"type": "llm_fallback_used", "heuristic_threshold": self.confidence_threshold})

        return {
            "user_message": user_content,
            "intent": classification.intent,
            "search_query": classification.search_query,
            "sub_queries": classification.sub_queries,
            "reasoning": classification.reasoning,
            "confidence": classification.confidence,
            "complexity": complexity,
            "has_temporal": detect_temporal(user_content),
            "summary_requested": detect_summary_request(user_content),
            "classification_time_ms": classification_time_ms,
            "events": events,
        }
