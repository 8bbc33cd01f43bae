"""
State definitions for the chat context pipeline.
"""
import operator
from typing import Annotated, Dict, List, Any, Optional, TypedDict

from models.results import Citation, NormalizedResult


class ChatState(TypedDict, total=False):
    """
    Represents the state of our chat graph.
    Every stage returns a partial update; keys are only added or overwritten.
    """
    # Request input
    messages: List[Dict[str, Any]]  # Conversation turns, oldest first
    user_id: Optional[str]
    thread_id: Optional[str]
    enabled_tools: Dict[str, bool]  # intent -> enabled

    # Externally supplied context
    memory_context: Optional[str]
    attachments: List[Dict[str, str]]  # Raw current-turn attachments: name, text
    thread_attachments: List[Dict[str, str]]  # Prior-thread attachments: name, summary
    attachment_document_ids: List[str]  # Vectorized documents attached to this turn
    thread_document_ids: List[str]  # Documents referenced in the conversation

    # Classification output
    user_message: str
    intent: str
    search_query: Optional[str]
    sub_queries: Optional[List[str]]
    reasoning: str
    confidence: float
    complexity: str  # simple | moderate | complex
    has_temporal: bool
    summary_requested: bool

    # Research brief
    research_brief: Optional[str]

    # Retrieval
    search_results: List[NormalizedResult]
    citations: List[Citation]
    searched_queries: List[str]

    # Summarization
    summary_text: Optional[str]
    summary_strategy: Optional[str]
    summary_source: Optional[str]

    # Response context
    response_context: str

    # Timing
    start_time: float
    classification_time_ms: float
    brief_time_ms: float
    retrieval_time_ms: float
    summary_time_ms: float
    assembly_time_ms: float
    total_time_ms: float

    # Error handling
    error: Optional[str]  # Non-fatal error annotation

    # Side effects, drained by the caller after the run
    events: Annotated[List[Dict[str, Any]], operator.add]
