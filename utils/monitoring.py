"""
Monitoring and metrics for the chat context pipeline.
"""
import logging
import time
from typing import Dict, Any, List

from models.classification import VALID_INTENTS

logger = logging.getLogger(__name__)


class PipelineMonitor:
    """Collects pipeline events and per-request metrics."""

    def __init__(self):
        """Initialize the monitoring system."""
        logger.info("Initializing pipeline monitor")
        self.requests_processed = 0
        self.error_count = 0
        self.llm_fallback_count = 0
        self.intent_distribution = {}
        self.avg_response_time = 0
        self.usage_counters = {}
        self.event_counts = {}
        self.hourly_request_count = {}

        self.performance_by_intent = {}
        for intent in sorted(VALID_INTENTS):
            self.performance_by_intent[intent] = {
                "count": 0,
                "avg_time": 0,
                "error_rate": 0
            }

    def dispatch(self, events: List[Dict[str, Any]]):
        """
        Apply the side effects recorded by the pipeline stages.

        Args:
            events: Events drained from the pipeline state
        """
        for event in events or []:
            event_type = event.get("type", "unknown")
            self.event_counts[event_type] = self.event_counts.get(event_type, 0) + 1

            if event_type == "search_executed":
                intent = event.get("intent", "unknown")
                self.usage_counters[intent] = self.usage_counters.get(intent, 0) + 1
            elif event_type == "llm_fallback_used":
                self.llm_fallback_count += 1
            elif event_type in ("retrieval_failed", "summary_window_failed", "research_cleaning_failed"):
                logger.warning(f"Pipeline reported {event_type}: {event.get('error', '')}")

    def log_request(self, query: str, result: Dict[str, Any], execution_time: float):
        """
        Log and analyze one pipeline run.

        Args:
            query: The user message
            result: The final pipeline state
            execution_time: Time taken in seconds
        """
        self.requests_processed += 1

        has_error = bool(result.get("error"))
        if has_error:
            self.error_count += 1

        intent = result.get("intent") or "unknown"
        self.intent_distribution[intent] = self.intent_distribution.get(intent, 0) + 1

        self.avg_response_time = (
            (self.avg_response_time * (self.requests_processed - 1) + execution_time) /
            self.requests_processed
        )

        if intent in self.performance_by_intent:
            intent_perf = self.performance_by_intent[intent]
            intent_perf["count"] += 1
            intent_perf["avg_time"] = (
                (intent_perf["avg_time"] * (intent_perf["count"] - 1) + execution_time) /
                intent_perf["count"]
            )
            intent_perf["error_rate"] = (
                (intent_perf["error_rate"] * (intent_perf["count"] - 1) + (1 if has_error else 0)) /
                intent_perf["count"]
            )

        current_hour = time.strftime("%Y-%m-%d-%H")
        self.hourly_request_count[current_hour] = self.hourly_request_count.get(current_hour, 0) + 1

        logger.debug(f"Logged metrics for message: '{query[:50]}', intent: {intent}, time: {execution_time:.2f}s")

    def get_system_health(self) -> Dict[str, Any]:
        """
        Get system health metrics.

        Returns:
            Dictionary of health metrics
        """
        return {
            "requests_processed": self.requests_processed,
            "error_rate": self.error_count / max(1, self.requests_processed),
            "llm_fallback_rate": self.llm_fallback_count / max(1, self.requests_processed),
            "intent_distribution": self.intent_distribution,
            "usage_counters": self.usage_counters,
            "avg_response_time": self.avg_response_time,
            "performance_by_intent": self.performance_by_intent
        }
