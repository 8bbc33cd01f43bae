"""
Main entry point for the chat context pipeline.
"""
import asyncio
import logging
import time
from typing import Dict, Any, List, Optional

from config import APP_CONFIG, get_config, load_settings
from models.classification import DEEP_RESEARCH, PARTY_DOCUMENT_SEARCH, WEB_SEARCH
from models.state import ChatState
from pipeline.graph import build_chat_graph
from services.document_service import InMemoryDocumentStore
from services.retrieval_service import RetrievalService, InMemoryRetrievalBackend
from utils.llm import LLMService
from utils.monitoring import PipelineMonitor

# Configure logging
logging.basicConfig(
    level=getattr(logging, APP_CONFIG["log_level"].upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

DEMO_DOCUMENTS = [
    {
        "title": "Wahlprogramm: Klimaschutz",
        "content": "Wir wollen die Energiewende beschleunigen und den Ausbau erneuerbarer Energien verdoppeln.",
        "url": "https://example.org/programm/klima",
    },
    {
        "title": "Beschluss zur Verkehrswende",
        "content": "Der Parteitag fordert ein bundesweites Nahverkehrsticket und mehr Radwege.",
    },
]


def initialize_system(retrieval_service: Optional[RetrievalService] = None,
                      document_store=None,
                      llm_service: Optional[LLMService] = None) -> Dict[str, Any]:
    """Initialize the pipeline and its collaborators."""
    logger.info("Initializing chat context pipeline")
    config = get_config()
    settings = load_settings()

    if retrieval_service is None:
        backend = InMemoryRetrievalBackend(DEMO_DOCUMENTS)
        retrieval_service = RetrievalService({
            PARTY_DOCUMENT_SEARCH: backend,
            WEB_SEARCH: backend,
            DEEP_RESEARCH: backend,
        })

    logger.info(f"System configured with: LLM={config['llm']['model']}, "
                f"Features={config['features']}")

    return {
        "chat_executor": build_chat_graph(
            settings,
            llm_service or LLMService(),
            retrieval_service,
            document_store or InMemoryDocumentStore(),
        ),
        "monitor": PipelineMonitor(),
        "settings": settings,
        "config": config,
    }


async def execute_chat(system: Dict[str, Any],
                       messages: List[Dict[str, Any]],
                       user_id: Optional[str] = None,
                       **context) -> Dict[str, Any]:
    """
    Run the pipeline for one incoming message.

    Args:
        system: Components returned by initialize_system
        messages: Conversation turns, the newest user message last
        user_id: Optional user identifier scoping document access
        **context: Further ChatState input keys (attachments, memory_context, ...)

    Returns:
        The final pipeline state
    """
    start_time = time.time()
    monitor: PipelineMonitor = system["monitor"]
    query = messages[-1].get("content", "") if messages else ""

    initial_state: ChatState = {
        "messages": messages,
        "user_id": user_id,
        "start_time": start_time,
        "error": None,
        "events": [],
        **context,
    }

    try:
        result = await system["chat_executor"].ainvoke(initial_state)
    except Exception as e:
        execution_time = time.time() - start_time
        error_message = f"Pipeline error: {str(e)}"
        logger.error(error_message)
        error_result = {**initial_state, "error": error_message, "response_context": ""}
        monitor.log_request(str(query), error_result, execution_time)
        return error_result

    execution_time = time.time() - start_time
    monitor.dispatch(result.get("events", []))
    monitor.log_request(str(query), result, execution_time)
    logger.info(f"Pipeline completed in {execution_time:.2f}s, intent: {result.get('intent', 'unknown')}")
    return result


if __name__ == "__main__":
    system = initialize_system()

    test_messages = [
        "Hallo, wie geht's?",
        "suche im netz nach klimapolitik",
        "schreib eine pressemitteilung über die Energiewende",
    ]

    for text in test_messages:
        print(f"\nMESSAGE: {text}")
        result = asyncio.run(execute_chat(system, [{"role": "user", "content": text}]))
        print(f"Intent: {result.get('intent', 'N/A')}")
        print(f"Search query: {result.get('search_query')}")
        print(f"Error: {result.get('error', 'None')}")
        print(f"Context:\n{result.get('response_context', '')}")
        print("-" * 80)

    print("\n=== SYSTEM HEALTH METRICS ===")
    for metric, value in system["monitor"].get_system_health().items():
        print(f"{metric}: {value}")
