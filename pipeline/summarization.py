"""
Adaptive document summarization.

Short documents are summarized in one call; long ones are split into
overlapping windows that are summarized concurrently and then merged.
"""
import time
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from config import PipelineSettings
from models.results import DocumentSegment
from models.state import ChatState
from pipeline.research_brief import format_conversation
from services.document_service import DocumentStore
from utils.llm import LLMRequest, LLMService, LLMServiceError, LLMUnavailableError
from utils.prompts import (
    DOCUMENT_SUMMARY_PROMPT,
    SEGMENT_SUMMARY_PROMPT,
    SUMMARY_MERGE_PROMPT,
    CONVERSATION_SUMMARY_PROMPT,
)

logger = logging.getLogger(__name__)

SUMMARY_FAILED_MESSAGE = "Das Dokument konnte nicht zusammengefasst werden."

# Strategies
SINGLE_PASS = "single_pass"
EXTENDED_SINGLE_PASS = "extended_single_pass"
MAP_REDUCE = "map_reduce"

# Document sources, highest priority first
SOURCE_ATTACHED_DOCUMENTS = "attached_documents"
SOURCE_THREAD_DOCUMENTS = "thread_documents"
SOURCE_RAW_ATTACHMENTS = "raw_attachments"
SOURCE_CONVERSATION = "conversation"


def select_strategy(length: int, settings: PipelineSettings) -> str:
    """Pick the summarization strategy for a document of the given length."""
    if length <= settings.single_pass_limit:
        return SINGLE_PASS
    if length <= settings.extended_single_pass_limit:
        return EXTENDED_SINGLE_PASS
    return MAP_REDUCE


def split_into_segments(text: str, segment_size: int, overlap: int) -> List[DocumentSegment]:
    """
    Split text into windows of segment_size characters.

    Consecutive windows share `overlap` characters.
    """
    if segment_size <= overlap:
        raise ValueError("segment_size must be larger than overlap")

    segments = []
    length = len(text)
    start = 0
    while start < length:
        end = min(start + segment_size, length)
        segments.append(DocumentSegment(text=text[start:end], start_offset=start, end_offset=end))
        if end >= length:
            break
        start = end - overlap
    return segments


class AdaptiveSummarizer:
    """Summarizes a text with the strategy its length calls for."""

    def __init__(self, settings: PipelineSettings, llm_service: LLMService):
        self.settings = settings
        self.llm_service = llm_service

    def _request(self, prompt, inputs: Dict[str, Any], max_tokens: int) -> LLMRequest:
        return LLMRequest.from_prompt(
            prompt,
            inputs,
            model=self.settings.model,
            max_tokens=max_tokens,
            temperature=0.2,
        )

    async def summarize(self, text: str) -> Tuple[str, str, List[Dict[str, Any]]]:
        """
        Summarize a document.

        Returns:
            (summary, strategy, events); the summary is the failure message
            when nothing could be summarized

        Raises:
            LLMUnavailableError: The language-model service is unreachable
        """
        strategy = select_strategy(len(text), self.settings)
        logger.info(f"Summarizing {len(text)} chars with strategy {strategy}")

        if strategy == MAP_REDUCE:
            summary, events = await self._map_reduce(text)
            return summary, strategy, events

        summary = await self._single_pass(DOCUMENT_SUMMARY_PROMPT, {"text": text}, max_tokens=1500)
        return summary, strategy, []

    async def summarize_conversation(self, messages: List[Dict[str, Any]]) -> str:
        """Condense the recent conversation turns."""
        text = format_conversation(messages, self.settings.conversation_summary_turns)
        if not text:
            return SUMMARY_FAILED_MESSAGE
        return await self._single_pass(CONVERSATION_SUMMARY_PROMPT, {"text": text}, max_tokens=800)

    async def _single_pass(self, prompt, inputs: Dict[str, Any], max_tokens: int) -> str:
        try:
            response = await self.llm_service.complete(self._request(prompt, inputs, max_tokens))
        except LLMUnavailableError:
            raise
        except LLMServiceError as e:
            logger.error(f"Single-pass summary failed: {str(e)}")
            return SUMMARY_FAILED_MESSAGE
        summary = response.content.strip()
        return summary or SUMMARY_FAILED_MESSAGE

    async def _summarize_segment(self, segment: DocumentSegment, index: int, total: int) -> str:
        response = await self.llm_service.complete(self._request(
            SEGMENT_SUMMARY_PROMPT,
            {"index": index, "total": total, "text": segment.text},
            max_tokens=600,
        ))
        return response.content.strip()

    async def _map_reduce(self, text: str) -> Tuple[str, List[Dict[str, Any]]]:
        segments = split_into_segments(text, self.settings.segment_size, self.settings.segment_overlap)
        total = len(segments)
        logger.info(f"Map phase over {total} segments")

        outcomes = await asyncio.gather(
            *(self._summarize_segment(segment, i, total) for i, segment in enumerate(segments, 1)),
            return_exceptions=True,
        )

        events = []
        partials = []
        for i, outcome in enumerate(outcomes, 1):
            if isinstance(outcome, BaseException):
                logger.warning(f"Segment {i}/{total} failed: {str(outcome)}")
                events.append({"type": "summary_window_failed", "segment": i, "error": str(outcome)})
            elif not outcome:
                logger.warning(f"Segment {i}/{total} returned an empty summary")
                events.append({"type": "summary_window_failed", "segment": i, "error": "empty summary"})
            else:
                partials.append(outcome)

        if not partials:
            logger.error("All segment summaries failed")
            return SUMMARY_FAILED_MESSAGE, events
        if len(partials) == 1:
            return partials[0], events

        joined = "\n\n".join(f"Abschnitt {i}:\n{p}" for i, p in enumerate(partials, 1))
        try:
            response = await self.llm_service.complete(
                self._request(SUMMARY_MERGE_PROMPT, {"summaries": joined}, max_tokens=1500)
            )
        except LLMUnavailableError:
            raise
        except LLMServiceError as e:
            logger.warning(f"Merge failed, returning partial summaries: {str(e)}")
            return "\n\n".join(partials), events

        merged = response.content.strip()
        return merged or "\n\n".join(partials), events


class DocumentSummarizer:
    """Summarization node: picks the document source and summarizes it."""

    def __init__(self, settings: PipelineSettings, llm_service: LLMService,
                 document_store: Optional[DocumentStore] = None):
        self.settings = settings
        self.summarizer = AdaptiveSummarizer(settings, llm_service)
        self.document_store = document_store

    async def _fetch_text(self, state: ChatState, document_ids: List[str]) -> str:
        if not document_ids or self.document_store is None:
            return ""
        try:
            fetched = await self.document_store.fetch_full_texts(state.get("user_id"), document_ids)
        except Exception as e:
            logger.error(f"Document fetch failed: {str(e)}")
            return ""
        for error in fetched.errors:
            logger.warning(f"Could not read document {error.document_id}: {error.message}")
        return fetched.combined_text

    async def select_source(self, state: ChatState) -> Tuple[Optional[str], str]:
        """
        Find the text to summarize in priority order.

        Returns:
            (text, source); text is None when only the conversation is left
        """
        text = await self._fetch_text(state, state.get("attachment_document_ids") or [])
        if text:
            return text, SOURCE_ATTACHED_DOCUMENTS

        text = await self._fetch_text(state, state.get("thread_document_ids") or [])
        if text:
            return text, SOURCE_THREAD_DOCUMENTS

        attachments = [a for a in state.get("attachments") or [] if a.get("text")]
        if attachments:
            text = "\n\n".join(
                f"### {a['name']}\n{a['text']}" if a.get("name") else a["text"] for a in attachments
            )
            return text, SOURCE_RAW_ATTACHMENTS

        return None, SOURCE_CONVERSATION

    async def __call__(self, state: ChatState) -> Dict[str, Any]:
        """
        Summarizes the highest-priority document source.

        Args:
            state: The current chat state

        Returns:
            Partial state update with the summary
        """
        start_time = time.time()
        text, source = await self.select_source(state)
        logger.info(f"Summary source: {source}")

        if text is None:
            summary = await self.summarizer.summarize_conversation(state.get("messages", []))
            strategy, events = SINGLE_PASS, []
        else:
            summary, strategy, events = await self.summarizer.summarize(text)

        summary_time_ms = (time.time() - start_time) * 1000
        events.append({
            "type": "summary_created",
            "source": source,
            "strategy": strategy,
            "failed": summary == SUMMARY_FAILED_MESSAGE,
        })
        logger.info(f"Summary created via {strategy} in {summary_time_ms:.0f}ms")

        return {
            "summary_text": summary,
            "summary_strategy": strategy,
            "summary_source": source,
            "summary_time_ms": summary_time_ms,
            "events": events,
        }
