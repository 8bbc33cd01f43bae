"""
Heuristic intent classification.

A generic first-match-wins interpreter over the rule cascade, followed by
a fuzzy keyword tier for typos and a low-confidence default.
"""
import re
import logging
from typing import Mapping, Optional, Sequence, Tuple

from config import PipelineSettings
from models.classification import (
    ClassificationResult,
    KeywordRule,
    IMAGE_GENERATION,
    NO_RETRIEVAL,
    EXTRACTED_TOPIC,
    KEEP_ORIGINAL,
    SIMPLE,
    MODERATE,
    COMPLEX,
)
from pipeline.query_enhancement import extract_search_topic
from pipeline.rules import DEFAULT_RULES, INTENT_KEYWORDS, FUZZY_MATCH_CONFIDENCE, DEFAULT_CONFIDENCE
from utils.fuzzy import find_best_match

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\w+")

COMPLEX_PATTERNS = (
    re.compile(r"\b(vergleich|unterschied|pro\s+und\s+contra|gegenüber|im\s+vergleich|versus|vs\.?)", re.IGNORECASE),
    re.compile(r"\b(detailliert|ausführlich|umfassend|gründlich|tiefgehend|vollständig)", re.IGNORECASE),
    re.compile(r"\b(einerseits|andererseits|sowohl|als\s+auch)\b", re.IGNORECASE),
)
SIMPLE_PREFIX_PATTERN = re.compile(r"^(hallo|hi|hey|guten|servus|moin|danke)\b|^(was ist|wer ist|wo ist|wann)\b", re.IGNORECASE)
SIMPLE_LENGTH = 30

TEMPORAL_PATTERN = re.compile(
    r"\b(heute|gestern|morgen|aktuell|aktuelle[nrms]?|derzeit|momentan|kürzlich|neueste[nrms]?"
    r"|diese[nrms]? (woche|monat|jahr)|letzte[nrms]? (woche|monat|jahr)|(19|20)\d{2})\b",
    re.IGNORECASE,
)

SUMMARY_REQUEST_PATTERN = re.compile(
    r"\b(fass|fasse)\b.*\bzusammen\b|\bzusammenfass|\btl;?dr\b|\bsummar(y|ize|ise)\b",
    re.IGNORECASE,
)
CONVERSATION_REFERENCE_PATTERN = re.compile(
    r"\b(unterhaltung|gespräch|chat|verlauf|konversation|bisher)", re.IGNORECASE
)


def detect_complexity(query: str) -> str:
    """
    Estimate how much research depth a request needs.

    Independent of intent classification and its confidence.
    """
    q = query.lower().strip()

    if any(pattern.search(q) for pattern in COMPLEX_PATTERNS):
        return COMPLEX
    if len(q) < SIMPLE_LENGTH:
        return SIMPLE
    if SIMPLE_PREFIX_PATTERN.search(q):
        return SIMPLE
    return MODERATE


def detect_temporal(query: str) -> bool:
    """Whether the request refers to a point or span in time."""
    return bool(TEMPORAL_PATTERN.search(query))


def detect_summary_request(query: str) -> bool:
    """Whether the user asks for a summary of documents or the conversation."""
    return bool(SUMMARY_REQUEST_PATTERN.search(query))


def refers_to_conversation(query: str) -> bool:
    return bool(CONVERSATION_REFERENCE_PATTERN.search(query))


class HeuristicClassifier:
    """Pattern-based classifier; never raises, always returns a result."""

    def __init__(self,
                 settings: PipelineSettings,
                 rules: Sequence[KeywordRule] = DEFAULT_RULES,
                 intent_keywords: Mapping[str, Tuple[str, ...]] = INTENT_KEYWORDS):
        self.settings = settings
        self.rules = tuple(rules)
        self.intent_keywords = intent_keywords

    def classify(self, text: str) -> ClassificationResult:
        """
        Classify an utterance.

        Args:
            text: The raw user utterance

        Returns:
            ClassificationResult with the confidence of the matching tier
        """
        text = text or ""
        q = text.lower()

        for rule in self.rules:
            if rule.matches(q):
                return ClassificationResult(
                    intent=rule.intent,
                    search_query=self._apply_query_policy(rule.query_policy, text),
                    reasoning=rule.reasoning,
                    confidence=rule.confidence,
                )

        fuzzy = self.fuzzy_match_intent(q)
        if fuzzy:
            intent, word, keyword, score = fuzzy
            logger.debug(f"Fuzzy matched '{word}' to '{keyword}' ({intent}) with score {score:.2f}")
            return ClassificationResult(
                intent=intent,
                search_query=None if intent == IMAGE_GENERATION else text,
                reasoning=f"Fuzzy matched '{word}' to {intent}",
                confidence=FUZZY_MATCH_CONFIDENCE,
            )

        return ClassificationResult(
            intent=NO_RETRIEVAL,
            search_query=None,
            reasoning="No clear search intent detected",
            confidence=DEFAULT_CONFIDENCE,
        )

    def fuzzy_match_intent(self, text: str) -> Optional[Tuple[str, str, str, float]]:
        """
        Find the first word that fuzzily matches an intent keyword.

        Returns:
            (intent, word, keyword, score) or None
        """
        words = [w for w in WORD_PATTERN.findall(text.lower()) if len(w) >= self.settings.fuzzy_min_word_length]
        for word in words:
            best = None
            for intent, keywords in self.intent_keywords.items():
                match = find_best_match(word, keywords, self.settings.fuzzy_threshold)
                if match and (best is None or match[1] > best[3]):
                    best = (intent, word, match[0], match[1])
            if best:
                return best
        return None

    @staticmethod
    def _apply_query_policy(policy: str, text: str) -> Optional[str]:
        if policy == KEEP_ORIGINAL:
            return text
        if policy == EXTRACTED_TOPIC:
            return extract_search_topic(text)
        return None
