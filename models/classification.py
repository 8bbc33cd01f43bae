"""
Intent vocabulary and classification models.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple
from pydantic import BaseModel, Field, field_validator, model_validator

# Define valid intents for validation
INFORMATIONAL_SEARCH = "informational-search"
PARTY_DOCUMENT_SEARCH = "party-document-search"
WEB_SEARCH = "web-search"
EXAMPLE_SEARCH = "example-search"
DEEP_RESEARCH = "deep-research"
IMAGE_GENERATION = "image-generation"
NO_RETRIEVAL = "no-retrieval"

VALID_INTENTS = [
    INFORMATIONAL_SEARCH,   # Factual question against the knowledge base
    PARTY_DOCUMENT_SEARCH,  # Programmes, positions, resolutions
    WEB_SEARCH,             # News and external facts
    EXAMPLE_SEARCH,         # Social media examples and templates
    DEEP_RESEARCH,          # Multi-source research for fact-based content
    IMAGE_GENERATION,       # Image requests, no retrieval
    NO_RETRIEVAL            # Greetings, purely creative tasks
]

NON_RETRIEVAL_INTENTS = frozenset({IMAGE_GENERATION, NO_RETRIEVAL})

# Short names the classifier prompt historically used
INTENT_ALIASES = {
    "info": INFORMATIONAL_SEARCH,
    "search": PARTY_DOCUMENT_SEARCH,
    "web": WEB_SEARCH,
    "examples": EXAMPLE_SEARCH,
    "research": DEEP_RESEARCH,
    "image": IMAGE_GENERATION,
    "direct": NO_RETRIEVAL,
}

# Retired intents and where their traffic goes now
RETIRED_INTENTS = {
    "person": WEB_SEARCH,
}

# Query policies for heuristic rules
KEEP_ORIGINAL = "keep-original"
NO_QUERY = "null"
EXTRACTED_TOPIC = "extracted-topic"

QUERY_POLICIES = (KEEP_ORIGINAL, NO_QUERY, EXTRACTED_TOPIC)

# Complexity tiers
SIMPLE = "simple"
MODERATE = "moderate"
COMPLEX = "complex"


def requires_retrieval(intent: str) -> bool:
    """Whether the intent asks for any retrieval back-end."""
    return intent in VALID_INTENTS and intent not in NON_RETRIEVAL_INTENTS


class ClassificationResult(BaseModel):
    """Outcome of intent classification for one utterance."""
    intent: str
    search_query: Optional[str] = None
    sub_queries: Optional[List[str]] = None
    reasoning: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("intent")
    @classmethod
    def validate_intent(cls, v):
        """Only the closed intent vocabulary is accepted."""
        if v not in VALID_INTENTS:
            raise ValueError(f"Unknown intent: {v}")
        return v

    @model_validator(mode="after")
    def clear_queries_without_retrieval(self):
        """Non-retrieval intents never carry queries; sub-queries are capped at 3."""
        if not requires_retrieval(self.intent):
            self.search_query = None
            self.sub_queries = None
        elif self.sub_queries is not None:
            cleaned = [q.strip() for q in self.sub_queries if isinstance(q, str) and q.strip()]
            self.sub_queries = cleaned[:3] or None
        return self


@dataclass(frozen=True)
class KeywordRule:
    """
    One entry of the heuristic rule cascade.

    Every pattern in `patterns` has to match and `excludes` must not match.
    """
    name: str
    patterns: Tuple[Pattern, ...]
    intent: str
    confidence: float
    query_policy: str
    reasoning: str
    excludes: Optional[Pattern] = None
    anchored_to_start: bool = False

    def matches(self, text: str) -> bool:
        """Test the rule against an already lower-cased utterance."""
        candidate = text.strip() if self.anchored_to_start else text
        if not all(pattern.search(candidate) for pattern in self.patterns):
            return False
        if self.excludes is not None and self.excludes.search(candidate):
            return False
        return True


def compile_rule(name: str, patterns, intent: str, confidence: float, query_policy: str,
                 reasoning: str, excludes: Optional[str] = None,
                 anchored_to_start: bool = False) -> KeywordRule:
    """Build a KeywordRule from raw regular expression strings."""
    if intent not in VALID_INTENTS:
        raise ValueError(f"Rule {name} uses unknown intent {intent}")
    if query_policy not in QUERY_POLICIES:
        raise ValueError(f"Rule {name} uses unknown query policy {query_policy}")
    if isinstance(patterns, str):
        patterns = (patterns,)
    return KeywordRule(
        name=name,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        intent=intent,
        confidence=confidence,
        query_policy=query_policy,
        reasoning=reasoning,
        excludes=re.compile(excludes, re.IGNORECASE) if excludes else None,
        anchored_to_start=anchored_to_start,
    )
