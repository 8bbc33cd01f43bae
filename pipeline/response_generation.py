"""
Response-context assembly for the chat pipeline.

Concatenates the instruction payload handed to the downstream generation
call. For complex research requests the retrieved material can be replaced
by an LLM-cleaned synthesis when the capability is enabled.
"""
import time
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from config import PipelineSettings
from models.state import ChatState
from models.results import NormalizedResult
from models.classification import DEEP_RESEARCH, COMPLEX, requires_retrieval
from pipeline.context_budget import allocate_context_budget, format_results_context, smart_truncate
from utils.llm import LLMRequest, LLMService
from utils.prompts import RESEARCH_CLEANING_PROMPT

logger = logging.getLogger(__name__)

NO_RETRIEVAL_HINT = (
    "Für diese Anfrage war keine Recherche nötig. Antworte direkt aus deinem Wissen "
    "und dem Gesprächskontext."
)
RETRIEVAL_HINT = (
    "Nutze die unten aufgeführten Rechercheergebnisse als Grundlage deiner Antwort "
    "und verweise mit [n] auf die Quellen."
)
EMPTY_RETRIEVAL_HINT = (
    "Die Recherche hat keine verwertbaren Ergebnisse geliefert. Weise darauf hin, "
    "wenn dir belastbare Informationen fehlen."
)


def build_intent_hint(state: ChatState) -> str:
    if not requires_retrieval(state.get("intent")):
        return NO_RETRIEVAL_HINT
    if not state.get("search_results"):
        return EMPTY_RETRIEVAL_HINT
    return RETRIEVAL_HINT


def format_thread_attachments(attachments: List[Dict[str, str]]) -> str:
    entries = [a for a in attachments or [] if a.get("summary")]
    if not entries:
        return ""
    lines = ["## FRÜHERE ANHÄNGE"]
    for attachment in entries:
        lines.append(f"- {attachment.get('name') or 'Anhang'}: {attachment['summary']}")
    return "\n".join(lines)


def format_attachments(attachments: List[Dict[str, str]], per_document: int, total: int,
                       head_share: float = 0.6) -> str:
    """
    Render current-turn attachments within a two-tier budget.

    Each document is cut to `per_document` characters; documents stop being
    added once `total` is used up.
    """
    entries = [a for a in attachments or [] if a.get("text")]
    if not entries:
        return ""

    lines = ["## ANHÄNGE"]
    remaining = total
    for attachment in entries:
        if remaining <= 0:
            logger.warning("Attachment budget exhausted, skipping remaining attachments")
            break
        limit = min(per_document, remaining)
        text = smart_truncate(attachment["text"], limit, head_share)
        remaining -= min(len(attachment["text"]), limit)
        lines.append(f"### {attachment.get('name') or 'Anhang'}")
        lines.append(text)
    return "\n".join(lines)


class ResponseContextAssembler:
    """Assembly node; one implementation for both cleaning capabilities."""

    def __init__(self, settings: PipelineSettings, llm_service: Optional[LLMService] = None):
        self.settings = settings
        self.llm_service = llm_service

    def uses_research_cleaning(self, state: ChatState) -> bool:
        return (
            self.settings.supports_research_cleaning
            and self.llm_service is not None
            and state.get("intent") == DEEP_RESEARCH
            and state.get("complexity") == COMPLEX
            and bool(state.get("search_results"))
        )

    async def clean_research(self, raw_context: str, directive: str) -> Optional[str]:
        """
        Condense raw research results into a synthesis.

        Returns:
            The synthesis capped at the configured length, or None on any failure
        """
        limit = self.settings.research_synthesis_limit
        request = LLMRequest.from_prompt(
            RESEARCH_CLEANING_PROMPT,
            {"max_chars": limit, "directive": directive, "context": raw_context},
            model=self.settings.model,
            max_tokens=1024,
            temperature=0.2,
        )
        try:
            response = await self.llm_service.complete(request)
        except Exception as e:
            logger.warning(f"Research cleaning failed, using raw results: {str(e)}")
            return None

        synthesis = response.content.strip()
        if not synthesis:
            logger.warning("Research cleaning returned nothing, using raw results")
            return None
        return synthesis[:limit]

    async def build_retrieval_context(self, state: ChatState, events: List[Dict[str, Any]]) -> str:
        results: List[NormalizedResult] = state.get("search_results") or []
        if not results:
            return ""

        raw_context = format_results_context(allocate_context_budget(results, self.settings))
        if not self.uses_research_cleaning(state):
            return raw_context

        directive = state.get("research_brief") or state.get("search_query") or state.get("user_message", "")
        synthesis = await self.clean_research(raw_context, directive)
        if synthesis is None:
            events.append({"type": "research_cleaning_failed"})
            return raw_context
        return f"## RECHERCHE-SYNTHESE\n{synthesis}"

    async def __call__(self, state: ChatState) -> Dict[str, Any]:
        """
        Builds the instruction payload for the generation call.

        Args:
            state: The current chat state

        Returns:
            Partial state update with the response context
        """
        start_time = time.time()
        events: List[Dict[str, Any]] = []

        sections = []
        if self.settings.agent_role:
            sections.append(self.settings.agent_role)
        sections.append(build_intent_hint(state))
        if state.get("has_temporal"):
            sections.append(f"Heutiges Datum: {date.today().isoformat()}")

        if state.get("memory_context"):
            sections.append(f"## ERINNERUNGEN\n{state['memory_context']}")

        sections.append(format_thread_attachments(state.get("thread_attachments") or []))
        sections.append(format_attachments(
            state.get("attachments") or [],
            self.settings.attachment_document_budget,
            self.settings.attachment_total_budget,
            self.settings.head_share,
        ))

        if state.get("intent") == DEEP_RESEARCH and state.get("research_brief"):
            sections.append(f"## RECHERCHEAUFTRAG\n{state['research_brief']}")
        if state.get("summary_text"):
            sections.append(f"## ZUSAMMENFASSUNG\n{state['summary_text']}")

        sections.append(await self.build_retrieval_context(state, events))

        response_context = "\n\n".join(s for s in sections if s)
        assembly_time_ms = (time.time() - start_time) * 1000
        logger.info(f"Assembled response context: {len(response_context)} chars in {assembly_time_ms:.0f}ms")

        return {
            "response_context": response_context,
            "assembly_time_ms": assembly_time_ms,
            "events": events,
        }
