"""
Graph structure for the LangGraph chat context pipeline.
"""
import logging
from typing import Optional

from langgraph.graph import StateGraph, END

from config import PipelineSettings
from models.state import ChatState
from models.classification import requires_retrieval
from pipeline.heuristics import refers_to_conversation
from pipeline.intent_classification import IntentClassifier
from pipeline.research_brief import ResearchBriefCompressor, needs_research_brief
from pipeline.retrieval import ResultRetriever, is_tool_enabled
from pipeline.summarization import DocumentSummarizer
from pipeline.response_generation import ResponseContextAssembler
from pipeline.telemetry import add_telemetry
from services.document_service import DocumentStore
from services.retrieval_service import RetrievalService
from utils.llm import LLMService

logger = logging.getLogger(__name__)


def has_summary_source(state: ChatState) -> bool:
    """Whether there is something besides the bare request to summarize."""
    return bool(
        state.get("attachment_document_ids")
        or state.get("thread_document_ids")
        or any(a.get("text") for a in state.get("attachments") or [])
        or refers_to_conversation(state.get("user_message", ""))
    )


def make_router(retrieval_service: RetrievalService):
    """Build the routing function applied after classification."""

    def route_after_classification(state: ChatState) -> str:
        intent = state.get("intent")

        if state.get("summary_requested") and has_summary_source(state):
            route = "summarize_documents"
        elif not requires_retrieval(intent):
            route = "assemble_context"
        elif not is_tool_enabled(state, intent):
            logger.info(f"Tool for {intent} disabled for this request")
            route = "assemble_context"
        elif not retrieval_service.has_backend(intent):
            logger.warning(f"No retrieval back-end for {intent}, skipping retrieval")
            route = "assemble_context"
        elif needs_research_brief(state):
            route = "compress_research_brief"
        else:
            route = "retrieve_results"

        logger.info(f"Routing {intent} to {route}")
        return route

    return route_after_classification


def build_chat_graph(settings: PipelineSettings,
                     llm_service: LLMService,
                     retrieval_service: RetrievalService,
                     document_store: Optional[DocumentStore] = None):
    """Create the LangGraph for the chat context pipeline."""
    graph = StateGraph(ChatState)

    # Add all nodes
    graph.add_node("classify_intent", IntentClassifier(settings, llm_service))
    graph.add_node("compress_research_brief", ResearchBriefCompressor(settings, llm_service))
    graph.add_node("retrieve_results", ResultRetriever(settings, retrieval_service))
    graph.add_node("summarize_documents", DocumentSummarizer(settings, llm_service, document_store))
    graph.add_node("assemble_context", ResponseContextAssembler(settings, llm_service))
    graph.add_node("add_telemetry", add_telemetry)

    # Route on the classification
    graph.add_conditional_edges(
        "classify_intent",
        make_router(retrieval_service),
        {
            "summarize_documents": "summarize_documents",
            "compress_research_brief": "compress_research_brief",
            "retrieve_results": "retrieve_results",
            "assemble_context": "assemble_context",
        }
    )

    # Define simple edges
    graph.add_edge("compress_research_brief", "retrieve_results")
    graph.add_edge("retrieve_results", "assemble_context")
    graph.add_edge("summarize_documents", "assemble_context")
    graph.add_edge("assemble_context", "add_telemetry")

    # Connect telemetry to end
    graph.add_edge("add_telemetry", END)

    # Set entry point
    graph.set_entry_point("classify_intent")

    logger.info("Chat pipeline graph built successfully")
    return graph.compile()
