"""
Research brief compression for complex deep-research requests.
"""
import time
import logging
from typing import Any, Dict, List

from config import PipelineSettings
from models.state import ChatState
from models.classification import DEEP_RESEARCH, COMPLEX
from utils.llm import LLMRequest, LLMService
from utils.prompts import RESEARCH_BRIEF_PROMPT

logger = logging.getLogger(__name__)

ROLE_LABELS = {"user": "Nutzer", "assistant": "Assistent"}


def needs_research_brief(state: ChatState) -> bool:
    """A brief is only worth its LLM call for complex deep-research requests."""
    return state.get("intent") == DEEP_RESEARCH and state.get("complexity") == COMPLEX


def format_conversation(messages: List[Dict[str, Any]], max_turns: int) -> str:
    """Render the last turns of a conversation as plain text."""
    lines = []
    for message in (messages or [])[-max_turns:]:
        content = message.get("content")
        if isinstance(content, list):
            content = " ".join(
                str(part.get("text", "")) for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        if not content:
            continue
        label = ROLE_LABELS.get(message.get("role"), message.get("role", "?"))
        lines.append(f"{label}: {content}")
    return "\n".join(lines)


class ResearchBriefCompressor:
    """Condenses the recent conversation into a short research directive."""

    def __init__(self, settings: PipelineSettings, llm_service: LLMService):
        self.settings = settings
        self.llm_service = llm_service

    async def __call__(self, state: ChatState) -> Dict[str, Any]:
        """
        Builds a research brief; any failure leaves the state untouched.

        Args:
            state: The current chat state

        Returns:
            Partial state update with the research brief, if one was created
        """
        if not needs_research_brief(state):
            return {"events": [{"type": "research_brief_skipped", "reason": "not complex deep-research"}]}

        start_time = time.time()
        query = state.get("search_query") or state.get("user_message", "")
        sub_queries = state.get("sub_queries") or []
        conversation = format_conversation(state.get("messages", []), self.settings.brief_turn_window)

        request = LLMRequest.from_prompt(
            RESEARCH_BRIEF_PROMPT,
            {
                "conversation": conversation or "(kein Verlauf)",
                "query": query,
                "sub_queries": " | ".join(sub_queries) if sub_queries else "keine",
            },
            model=self.settings.model,
            max_tokens=300,
            temperature=0.2,
        )

        try:
            response = await self.llm_service.complete(request)
            brief = response.content.strip()
        except Exception as e:
            logger.warning(f"Research brief compression failed, using raw query: {str(e)}")
            return {"events": [{"type": "research_brief_skipped", "reason": str(e)}]}

        if not brief:
            logger.warning("Research brief came back empty, using raw query")
            return {"events": [{"type": "research_brief_skipped", "reason": "empty response"}]}

        brief_time_ms = (time.time() - start_time) * 1000
        logger.info(f"Research brief created in {brief_time_ms:.0f}ms: {brief[:100]}")
        return {
            "research_brief": brief,
            "brief_time_ms": brief_time_ms,
            "events": [{"type": "research_brief_created", "length": len(brief)}],
        }
