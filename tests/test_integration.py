"""
Integration tests for the entire chat context pipeline.
"""
import json
import unittest
import sys
import os
from unittest.mock import AsyncMock, MagicMock, patch
import logging

import httpx
from google.api_core import exceptions as google_exceptions

# Add parent directory to path to allow imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PipelineSettings
from main import execute_chat
from models.classification import DEEP_RESEARCH, NO_RETRIEVAL, PARTY_DOCUMENT_SEARCH, WEB_SEARCH
from pipeline.graph import build_chat_graph, make_router
from pipeline.response_generation import NO_RETRIEVAL_HINT
from services.document_service import InMemoryDocumentStore
from services.retrieval_service import RetrievalService
from utils.llm import LLMRequest, LLMResponse, LLMService, LLMServiceError, LLMUnavailableError
from utils.monitoring import PipelineMonitor

# Disable logging during tests
logging.disable(logging.CRITICAL)


def user(text):
    return [{"role": "user", "content": text}]


class TestChatGraph(unittest.IsolatedAsyncioTestCase):
    """Runs the compiled graph with faked collaborators."""

    def setUp(self):
        self.settings = PipelineSettings(agent_role="Du bist ein Assistent.")
        self.llm = MagicMock()
        self.llm.complete = AsyncMock(return_value=LLMResponse(content="Zusammenfassung"))
        self.web_backend = MagicMock()
        self.web_backend.search = AsyncMock(return_value=[
            {"title": "Klimabericht", "snippet": "Neue Zahlen", "url": "https://news.example/klima", "score": 0.8},
            {"title": "Kommentar", "snippet": "Meinung"},
        ])
        self.research_backend = MagicMock()
        self.research_backend.search = AsyncMock(return_value=[
            {"title": "Studie", "content": "Daten", "url": "https://studie.example"},
        ])
        self.retrieval = RetrievalService({WEB_SEARCH: self.web_backend, DEEP_RESEARCH: self.research_backend})
        self.store = InMemoryDocumentStore()
        self.graph = build_chat_graph(self.settings, self.llm, self.retrieval, self.store)

    async def run_graph(self, messages, **extra):
        return await self.graph.ainvoke({"messages": messages, "events": [], **extra})

    async def test_greeting_skips_retrieval(self):
        result = await self.run_graph(user("hallo, wie geht's?"))
        self.assertEqual(result["intent"], NO_RETRIEVAL)
        self.assertIn(NO_RETRIEVAL_HINT, result["response_context"])
        self.assertTrue(result["response_context"].startswith("Du bist ein Assistent."))
        self.llm.complete.assert_not_called()
        self.web_backend.search.assert_not_called()
        self.assertEqual(result["events"][0]["type"], "classified")

    async def test_web_search_end_to_end(self):
        result = await self.run_graph(user("suche im netz nach klimapolitik"))
        self.assertEqual(result["intent"], WEB_SEARCH)
        self.web_backend.search.assert_awaited_once()
        self.assertEqual(len(result["search_results"]), 2)
        self.assertEqual(len(result["citations"]), 1)
        self.assertEqual(result["citations"][0].url, "https://news.example/klima")
        self.assertIn("[1] Klimabericht (https://news.example/klima)", result["response_context"])
        self.assertIn("search_executed", [e["type"] for e in result["events"]])
        self.assertIn("assembly_time_ms", result)
        self.llm.complete.assert_not_called()

    async def test_complex_research_uses_brief(self):
        self.llm.complete = AsyncMock(side_effect=[
            LLMResponse(content="Vergleiche die Klimaziele von SPD und Grünen."),
            LLMResponse(content="Synthese der Studien"),
        ])
        result = await self.run_graph(user("Recherchiere detailliert die Klimaziele von SPD und Grünen"))
        self.assertEqual(result["intent"], DEEP_RESEARCH)
        self.assertEqual(result["research_brief"], "Vergleiche die Klimaziele von SPD und Grünen.")
        self.research_backend.search.assert_awaited_once()
        self.assertEqual(self.research_backend.search.await_args[0][0], result["research_brief"])
        self.assertIn("## RECHERCHE-SYNTHESE\nSynthese der Studien", result["response_context"])
        types = [e["type"] for e in result["events"]]
        self.assertIn("research_brief_created", types)

    async def test_summary_request_routes_to_summarizer(self):
        result = await self.run_graph(
            user("Fasse den Anhang zusammen"),
            attachments=[{"name": "antrag.txt", "text": "Wir beantragen mehr Radwege."}],
        )
        self.assertEqual(result["summary_source"], "raw_attachments")
        self.assertIn("## ZUSAMMENFASSUNG\nZusammenfassung", result["response_context"])
        self.web_backend.search.assert_not_called()

    async def test_retrieval_without_backend_goes_to_assembly(self):
        result = await self.run_graph(user("was steht im wahlprogramm zur rente"))
        self.assertEqual(result["intent"], PARTY_DOCUMENT_SEARCH)
        self.assertNotIn("search_results", result)
        self.assertIn("response_context", result)

    async def test_disabled_tool_goes_to_assembly(self):
        result = await self.run_graph(user("suche im netz nach klimapolitik"), enabled_tools={WEB_SEARCH: False})
        self.web_backend.search.assert_not_called()
        self.assertIn("response_context", result)

    async def test_unreachable_llm_propagates(self):
        self.llm.complete = AsyncMock(side_effect=LLMUnavailableError("down"))
        with self.assertRaises(LLMUnavailableError):
            await self.run_graph(user("Wie hoch ist die Arbeitslosigkeit in Berlin?"))


class TestRouter(unittest.TestCase):

    def setUp(self):
        self.route = make_router(RetrievalService({WEB_SEARCH: MagicMock(), DEEP_RESEARCH: MagicMock()}))

    def test_routes(self):
        self.assertEqual(self.route({"intent": NO_RETRIEVAL}), "assemble_context")
        self.assertEqual(self.route({"intent": WEB_SEARCH}), "retrieve_results")
        self.assertEqual(self.route({"intent": DEEP_RESEARCH, "complexity": "complex"}), "compress_research_brief")
        self.assertEqual(self.route({"intent": DEEP_RESEARCH, "complexity": "moderate"}), "retrieve_results")
        self.assertEqual(
            self.route({"intent": WEB_SEARCH, "summary_requested": True, "thread_document_ids": ["d1"]}),
            "summarize_documents",
        )
        # Nothing to summarize falls back to normal routing
        self.assertEqual(self.route({"intent": WEB_SEARCH, "summary_requested": True}), "retrieve_results")


class TestExecuteChat(unittest.IsolatedAsyncioTestCase):
    """Tests for the top-level request wrapper."""

    async def test_events_are_dispatched(self):
        executor = MagicMock()
        executor.ainvoke = AsyncMock(return_value={
            "intent": WEB_SEARCH,
            "response_context": "ctx",
            "events": [{"type": "search_executed", "intent": WEB_SEARCH}],
        })
        system = {"chat_executor": executor, "monitor": PipelineMonitor()}
        result = await execute_chat(system, user("suche im netz nach klimapolitik"), user_id="u1")

        self.assertEqual(result["response_context"], "ctx")
        initial_state = executor.ainvoke.await_args[0][0]
        self.assertEqual(initial_state["events"], [])
        self.assertEqual(initial_state["user_id"], "u1")
        self.assertEqual(system["monitor"].get_system_health()["usage_counters"], {WEB_SEARCH: 1})

    async def test_pipeline_exception_is_caught(self):
        executor = MagicMock()
        executor.ainvoke = AsyncMock(side_effect=LLMUnavailableError("down"))
        system = {"chat_executor": executor, "monitor": PipelineMonitor()}
        result = await execute_chat(system, user("hallo"))
        self.assertIn("down", result["error"])
        self.assertEqual(result["response_context"], "")
        self.assertEqual(system["monitor"].get_system_health()["error_rate"], 1.0)


class TestLLMService(unittest.IsolatedAsyncioTestCase):
    """Tests for the LangChain-backed service."""

    def setUp(self):
        self.llm_patcher = patch('utils.llm.get_llm')
        self.mock_get_llm = self.llm_patcher.start()
        self.mock_llm = MagicMock()
        self.mock_get_llm.return_value = self.mock_llm

    def tearDown(self):
        self.llm_patcher.stop()

    async def test_complete(self):
        self.mock_llm.ainvoke = AsyncMock(return_value=MagicMock(content=json.dumps({"intent": "web"})))
        request = LLMRequest(system_prompt="system", messages=[{"role": "user", "content": "hi"}],
                             response_format="json_object", max_tokens=250)
        response = await LLMService().complete(request)

        self.assertEqual(json.loads(response.content), {"intent": "web"})
        self.assertTrue(self.mock_get_llm.call_args.kwargs["json_mode"])
        messages = self.mock_llm.ainvoke.await_args[0][0]
        self.assertEqual([m.content for m in messages], ["system", "hi"])

    async def test_connection_error_is_unavailable(self):
        self.mock_llm.ainvoke = AsyncMock(side_effect=ConnectionError("refused"))
        with self.assertRaises(LLMUnavailableError):
            await LLMService().complete(LLMRequest(system_prompt="s"))

    async def test_transport_error_is_unavailable(self):
        self.mock_llm.ainvoke = AsyncMock(side_effect=httpx.ConnectError("All connection attempts failed"))
        with self.assertRaises(LLMUnavailableError):
            await LLMService().complete(LLMRequest(system_prompt="s"))

    async def test_server_outage_is_unavailable(self):
        self.mock_llm.ainvoke = AsyncMock(side_effect=google_exceptions.ServiceUnavailable("overloaded"))
        with self.assertRaises(LLMUnavailableError):
            await LLMService().complete(LLMRequest(system_prompt="s"))

    async def test_other_errors_are_service_errors(self):
        self.mock_llm.ainvoke = AsyncMock(side_effect=ValueError("bad payload"))
        with self.assertRaises(LLMServiceError) as ctx:
            await LLMService().complete(LLMRequest(system_prompt="s"))
        self.assertNotIsInstance(ctx.exception, LLMUnavailableError)


if __name__ == "__main__":
    unittest.main()
