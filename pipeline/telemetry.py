"""
Telemetry component for the chat pipeline.
"""
import logging
import time
from typing import Any, Dict

from models.state import ChatState

logger = logging.getLogger(__name__)

# Stage -> state key its execution leaves behind
STAGE_MARKERS = {
    "classify_intent": "classification_time_ms",
    "compress_research_brief": "brief_time_ms",
    "retrieve_results": "retrieval_time_ms",
    "summarize_documents": "summary_time_ms",
    "assemble_context": "assembly_time_ms",
}


def add_telemetry(state: ChatState) -> Dict[str, Any]:
    """
    Adds timing data to the chat state.

    Args:
        state: The current chat state

    Returns:
        Partial state update with the total time
    """
    update: Dict[str, Any] = {}
    if state.get("start_time"):
        update["total_time_ms"] = (time.time() - state["start_time"]) * 1000

    stages = count_stages_executed(state)
    logger.debug(f"Telemetry: total={update.get('total_time_ms', 0):.0f}ms, stages={stages}, "
                 f"has_error={state.get('error') is not None}")
    return update


def count_stages_executed(state: ChatState) -> int:
    """Count the timed stages that ran for this request."""
    return sum(1 for key in STAGE_MARKERS.values() if state.get(key) is not None)
