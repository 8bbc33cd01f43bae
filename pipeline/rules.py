"""
Heuristic rule cascade and fuzzy keyword tables for intent classification.

Rule order is significant: the first matching rule wins. Greetings are
checked before anything else and explicit factual content markers before
the generic creative-task rule.
"""
from types import MappingProxyType
from typing import Mapping, Tuple

from models.classification import (
    KeywordRule,
    compile_rule,
    INFORMATIONAL_SEARCH,
    PARTY_DOCUMENT_SEARCH,
    WEB_SEARCH,
    EXAMPLE_SEARCH,
    DEEP_RESEARCH,
    IMAGE_GENERATION,
    NO_RETRIEVAL,
    KEEP_ORIGINAL,
    NO_QUERY,
    EXTRACTED_TOPIC,
)

# Confidence levels
GREETING_CONFIDENCE = 0.95
IMAGE_CONFIDENCE = 0.92
EXPLICIT_WEB_CONFIDENCE = 0.90
EXPLICIT_RESEARCH_CONFIDENCE = 0.88
PARTY_DOCUMENT_CONFIDENCE = 0.85
CURRENT_EVENTS_CONFIDENCE = 0.80
PERSON_QUERY_CONFIDENCE = 0.78
EXAMPLES_CONFIDENCE = 0.80
FACT_BASED_CONTENT_CONFIDENCE = 0.75
CREATIVE_TASK_CONFIDENCE = 0.72
FUZZY_MATCH_CONFIDENCE = 0.65
QUESTION_CONFIDENCE = 0.60
DEFAULT_CONFIDENCE = 0.50

# Content types that need facts and therefore retrieval
FACT_BASED_CONTENT_TYPES = (
    "pressemitteilung", "pressemeldung", "pm", "artikel", "beitrag", "blogpost",
    "rede", "ansprache", "statement", "argumentation", "argumente",
    "faktencheck", "analyse", "bericht", "report",
)

GREETING_PATTERN = r"^(hallo|hi|hey|guten|servus|moin|danke|vielen dank)\b"
IMAGE_PATTERN = (
    r"\b(erstell|generier|visualisier|zeichne|male|illustrier).{0,20}"
    r"(bild|grafik|illustration|foto|image|poster|sharepic)\b"
    r"|\b(bild|grafik|illustration|foto|poster|sharepic).{0,20}(erstell|generier|erzeug|mach)\b"
)
EXPLICIT_WEB_PATTERN = r"\b(such|suche|durchsuche|finde?)\s*(im|das|den|die|in)?\s*(netz|internet|web|online)\b"
EXPLICIT_RESEARCH_PATTERN = r"\b(recherchiere|recherche|recherchier)\b"
PARTY_DOCUMENT_PATTERN = r"\b(grüne|partei|programm|position|wahlprogramm|beschluss|antrag|grundsatzprogramm)\b"
CURRENT_EVENTS_PATTERN = r"\b(aktuell|heute|gestern|news|nachricht|kürzlich)\b"
PERSON_QUERY_PATTERN = r"\bwer (ist|war|sind)\b"
EXAMPLES_NOUN_PATTERN = r"\b(beispiel|vorlage|social media|post|tweet|instagram)\b"
EXAMPLES_VERB_PATTERN = r"\b(zeig|such|find)\b"
FACT_BASED_CONTENT_PATTERN = r"\b(" + "|".join(FACT_BASED_CONTENT_TYPES) + r")\b"
TOPIC_MARKER_PATTERN = r"(?:^|\s)(über|zu|zum|zur|bezüglich|betreffend|thema)(?:\s|$)"
CREATIVE_TASK_PATTERN = r"\b(schreib|erstell|formulier|verfass)[etn]*"
RESEARCH_MARKER_PATTERN = r"\b(recherch|such|find|info)\b"
QUESTION_PATTERN = r"^(was|wie|warum|wieso|weshalb|welche[rsmn]?|wann|wo|wofür)\b.*\?$"


def _base_rules() -> list:
    return [
        compile_rule(
            "greeting", GREETING_PATTERN, NO_RETRIEVAL, GREETING_CONFIDENCE, NO_QUERY,
            "Greeting detected", anchored_to_start=True,
        ),
        compile_rule(
            "image_generation", IMAGE_PATTERN, IMAGE_GENERATION, IMAGE_CONFIDENCE, NO_QUERY,
            "Image generation request detected",
        ),
        compile_rule(
            "explicit_web_search", EXPLICIT_WEB_PATTERN, WEB_SEARCH, EXPLICIT_WEB_CONFIDENCE, KEEP_ORIGINAL,
            "Explicit web search request",
        ),
        compile_rule(
            "explicit_research", EXPLICIT_RESEARCH_PATTERN, DEEP_RESEARCH, EXPLICIT_RESEARCH_CONFIDENCE,
            EXTRACTED_TOPIC, "Explicit research request",
        ),
        compile_rule(
            "party_documents", PARTY_DOCUMENT_PATTERN, PARTY_DOCUMENT_SEARCH, PARTY_DOCUMENT_CONFIDENCE,
            KEEP_ORIGINAL, "Party document query",
        ),
        compile_rule(
            "current_events", CURRENT_EVENTS_PATTERN, WEB_SEARCH, CURRENT_EVENTS_CONFIDENCE, KEEP_ORIGINAL,
            "Current events query",
        ),
        # The person intent is retired; its queries still go to web search.
        compile_rule(
            "person_query", PERSON_QUERY_PATTERN, WEB_SEARCH, PERSON_QUERY_CONFIDENCE, KEEP_ORIGINAL,
            "Person query routed to web search",
        ),
        compile_rule(
            "examples", (EXAMPLES_NOUN_PATTERN, EXAMPLES_VERB_PATTERN), EXAMPLE_SEARCH, EXAMPLES_CONFIDENCE,
            KEEP_ORIGINAL, "Social media examples query",
        ),
        compile_rule(
            "fact_based_content", (FACT_BASED_CONTENT_PATTERN, TOPIC_MARKER_PATTERN), DEEP_RESEARCH,
            FACT_BASED_CONTENT_CONFIDENCE, EXTRACTED_TOPIC, "Fact-based content type with topic detected",
        ),
        compile_rule(
            "creative_task", CREATIVE_TASK_PATTERN, NO_RETRIEVAL, CREATIVE_TASK_CONFIDENCE, NO_QUERY,
            "Creative task without research need", excludes=RESEARCH_MARKER_PATTERN,
        ),
    ]


def build_rule_set() -> Tuple[KeywordRule, ...]:
    """
    Build the ordered, immutable rule cascade.

    Any late additions happen here, before a single request is served.
    """
    rules = _base_rules()
    rules.append(
        compile_rule(
            "open_question", QUESTION_PATTERN, INFORMATIONAL_SEARCH, QUESTION_CONFIDENCE, KEEP_ORIGINAL,
            "Open factual question", anchored_to_start=True,
        )
    )
    return tuple(rules)


def build_intent_keywords() -> Mapping[str, Tuple[str, ...]]:
    """Keywords per intent for the fuzzy matching tier, in priority order."""
    return MappingProxyType({
        DEEP_RESEARCH: ("recherchiere", "recherche", "untersuche", "analysiere", "erforsche"),
        IMAGE_GENERATION: ("visualisiere", "zeichne", "illustriere", "grafik", "illustration"),
        WEB_SEARCH: ("internet", "netz", "online", "aktuell", "nachricht", "news"),
        PARTY_DOCUMENT_SEARCH: ("grüne", "partei", "programm", "position", "wahlprogramm", "beschluss"),
        EXAMPLE_SEARCH: ("beispiel", "vorlage", "tweet", "instagram", "social"),
    })


DEFAULT_RULES = build_rule_set()
INTENT_KEYWORDS = build_intent_keywords()
