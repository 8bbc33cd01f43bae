"""
Tests for the adaptive document summarizer.
"""
import unittest
import sys
import os
from unittest.mock import AsyncMock, MagicMock
import logging

# Add parent directory to path to allow imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PipelineSettings
from pipeline.summarization import (
    AdaptiveSummarizer,
    DocumentSummarizer,
    SUMMARY_FAILED_MESSAGE,
    SINGLE_PASS,
    EXTENDED_SINGLE_PASS,
    MAP_REDUCE,
    SOURCE_ATTACHED_DOCUMENTS,
    SOURCE_THREAD_DOCUMENTS,
    SOURCE_RAW_ATTACHMENTS,
    SOURCE_CONVERSATION,
    select_strategy,
    split_into_segments,
)
from services.document_service import InMemoryDocumentStore
from utils.llm import LLMResponse, LLMServiceError, LLMUnavailableError

# Disable logging during tests
logging.disable(logging.CRITICAL)


def scripted_llm(failing_segments=(), merge_error=None) -> MagicMock:
    """LLM fake that answers segment, merge and single-pass prompts differently."""

    def respond(request):
        if "Teilzusammenfassungen" in request.system_prompt:
            if merge_error:
                raise merge_error
            return LLMResponse(content="Gesamtzusammenfassung")
        for index in failing_segments:
            if f"Abschnitt {index} von" in request.system_prompt:
                raise LLMServiceError(f"segment {index} failed")
        if "Abschnitt" in request.system_prompt:
            return LLMResponse(content="Teilzusammenfassung")
        return LLMResponse(content="Kurzfassung")

    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=respond)
    return llm


class TestStrategySelection(unittest.TestCase):
    """Tests for the length thresholds."""

    def setUp(self):
        self.settings = PipelineSettings()

    def test_boundaries(self):
        self.assertEqual(select_strategy(3999, self.settings), SINGLE_PASS)
        self.assertEqual(select_strategy(4000, self.settings), SINGLE_PASS)
        self.assertEqual(select_strategy(4001, self.settings), EXTENDED_SINGLE_PASS)
        self.assertEqual(select_strategy(12000, self.settings), EXTENDED_SINGLE_PASS)
        self.assertEqual(select_strategy(12001, self.settings), MAP_REDUCE)

    def test_segments_overlap(self):
        segments = split_into_segments("x" * 15000, 6000, 200)
        self.assertEqual(len(segments), 3)
        self.assertEqual(segments[0].start_offset, 0)
        self.assertEqual(segments[-1].end_offset, 15000)
        for previous, current in zip(segments, segments[1:]):
            self.assertEqual(current.start_offset, previous.end_offset - 200)

    def test_segments_short_text(self):
        segments = split_into_segments("kurz", 6000, 200)
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].text, "kurz")

    def test_invalid_window(self):
        with self.assertRaises(ValueError):
            split_into_segments("text", 100, 100)


class TestAdaptiveSummarizer(unittest.IsolatedAsyncioTestCase):
    """Tests for single-pass and map-reduce summarization."""

    def setUp(self):
        self.settings = PipelineSettings()

    async def test_single_pass(self):
        llm = scripted_llm()
        summary, strategy, events = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 3999)
        self.assertEqual(summary, "Kurzfassung")
        self.assertEqual(strategy, SINGLE_PASS)
        self.assertEqual(llm.complete.await_count, 1)

    async def test_single_pass_failure_returns_message(self):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=LLMServiceError("boom"))
        summary, _, _ = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 5000)
        self.assertEqual(summary, SUMMARY_FAILED_MESSAGE)

    async def test_single_pass_unavailable_propagates(self):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=LLMUnavailableError("down"))
        with self.assertRaises(LLMUnavailableError):
            await AdaptiveSummarizer(self.settings, llm).summarize("x" * 100)

    async def test_map_reduce_with_one_failed_window(self):
        llm = scripted_llm(failing_segments=(2,))
        summary, strategy, events = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 15000)
        self.assertEqual(strategy, MAP_REDUCE)
        self.assertEqual(summary, "Gesamtzusammenfassung")
        self.assertEqual([e["type"] for e in events], ["summary_window_failed"])
        self.assertEqual(events[0]["segment"], 2)
        # 3 windows + 1 merge
        self.assertEqual(llm.complete.await_count, 4)
        merge_request = llm.complete.await_args_list[-1][0][0]
        self.assertEqual(merge_request.messages[0]["content"].count("Teilzusammenfassung"), 2)

    async def test_map_reduce_single_survivor_is_verbatim(self):
        llm = scripted_llm(failing_segments=(1, 3))
        summary, _, events = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 15000)
        self.assertEqual(summary, "Teilzusammenfassung")
        self.assertEqual(len(events), 2)
        self.assertEqual(llm.complete.await_count, 3)

    async def test_map_reduce_all_windows_failed(self):
        llm = scripted_llm(failing_segments=(1, 2, 3))
        summary, _, events = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 15000)
        self.assertEqual(summary, SUMMARY_FAILED_MESSAGE)
        self.assertEqual(len(events), 3)

    async def test_merge_failure_joins_partials(self):
        llm = scripted_llm(merge_error=LLMServiceError("merge failed"))
        summary, _, _ = await AdaptiveSummarizer(self.settings, llm).summarize("x" * 15000)
        self.assertEqual(summary, "\n\n".join(["Teilzusammenfassung"] * 3))


class TestDocumentSummarizer(unittest.IsolatedAsyncioTestCase):
    """Tests for document source priority."""

    def setUp(self):
        self.settings = PipelineSettings()
        self.store = InMemoryDocumentStore()
        self.store.add_document("u1", "doc-1", ["Erster Teil.", "Zweiter Teil."], title="Antrag")
        self.store.add_document("u1", "doc-2", ["Thread-Dokument."])

    async def test_attached_documents_first(self):
        node = DocumentSummarizer(self.settings, scripted_llm(), self.store)
        state = {
            "user_id": "u1",
            "attachment_document_ids": ["doc-1"],
            "thread_document_ids": ["doc-2"],
            "attachments": [{"name": "notiz.txt", "text": "roh"}],
        }
        text, source = await node.select_source(state)
        self.assertEqual(source, SOURCE_ATTACHED_DOCUMENTS)
        self.assertIn("Erster Teil.\nZweiter Teil.", text)

    async def test_thread_documents_second(self):
        node = DocumentSummarizer(self.settings, scripted_llm(), self.store)
        state = {"user_id": "u1", "attachment_document_ids": ["missing"], "thread_document_ids": ["doc-2"]}
        text, source = await node.select_source(state)
        self.assertEqual(source, SOURCE_THREAD_DOCUMENTS)
        self.assertEqual(text, "Thread-Dokument.")

    async def test_documents_are_scoped_to_user(self):
        node = DocumentSummarizer(self.settings, scripted_llm(), self.store)
        state = {"user_id": "someone-else", "attachment_document_ids": ["doc-1"],
                 "attachments": [{"name": "notiz.txt", "text": "roh"}]}
        _, source = await node.select_source(state)
        self.assertEqual(source, SOURCE_RAW_ATTACHMENTS)

    async def test_conversation_last(self):
        llm = scripted_llm()
        node = DocumentSummarizer(self.settings, llm, self.store)
        update = await node({"messages": [
            {"role": "user", "content": "Wie stehen wir zum Tempolimit?"},
            {"role": "assistant", "content": "Dafür."},
            {"role": "user", "content": "Fasse unser Gespräch zusammen"},
        ]})
        self.assertEqual(update["summary_source"], SOURCE_CONVERSATION)
        self.assertEqual(update["summary_text"], "Kurzfassung")
        self.assertEqual(update["events"][-1]["type"], "summary_created")
        request = llm.complete.await_args[0][0]
        self.assertIn("Tempolimit", request.messages[0]["content"])

    async def test_store_failure_falls_through(self):
        store = MagicMock()
        store.fetch_full_texts = AsyncMock(side_effect=RuntimeError("db down"))
        node = DocumentSummarizer(self.settings, scripted_llm(), store)
        state = {"attachment_document_ids": ["doc-1"], "attachments": [{"text": "roh"}]}
        text, source = await node.select_source(state)
        self.assertEqual(source, SOURCE_RAW_ATTACHMENTS)
        self.assertEqual(text, "roh")


if __name__ == "__main__":
    unittest.main()
