"""
Tests for result normalization, citations and the context budget allocator.
"""
import unittest
import sys
import os
import logging

# Add parent directory to path to allow imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PipelineSettings
from models.results import NormalizedResult
from pipeline.context_budget import (
    allocate_context_budget,
    format_results_context,
    select_budget,
    smart_truncate,
)
from pipeline.normalization import build_citations, normalize_results

# Disable logging during tests
logging.disable(logging.CRITICAL)


def make_result(content: str = "Inhalt", relevance: float = 0.5, url=None, title="Titel") -> NormalizedResult:
    return NormalizedResult(source="web", title=title, content=content, url=url, relevance=relevance)


class TestNormalization(unittest.TestCase):
    """Tests for field-name tolerant normalization."""

    def test_alternative_field_names(self):
        raw = [
            {"name": "Programm", "snippet": "Kurztext", "similarity": 0.7},
            {"source": "bundestag.de", "excerpt": "Auszug", "relevance": 0.4, "url": "https://bundestag.de"},
            {"title": "Artikel", "text": "Volltext", "score": 0.9},
        ]
        results = normalize_results(raw, "web")
        self.assertEqual([r.title for r in results], ["Programm", "bundestag.de", "Artikel"])
        self.assertEqual([r.content for r in results], ["Kurztext", "Auszug", "Volltext"])
        self.assertEqual([r.relevance for r in results], [0.7, 0.4, 0.9])
        self.assertEqual(results[1].url, "https://bundestag.de")
        self.assertTrue(all(r.source == "web" for r in results))

    def test_default_decaying_relevance(self):
        results = normalize_results([{"title": "a"}, {"title": "b"}, {"title": "c"}], "party-documents")
        self.assertEqual([r.relevance for r in results], [1.0, 0.9, 0.8])

    def test_relevance_is_clamped(self):
        results = normalize_results([{"title": "a", "score": 1.7}, {"title": "b", "score": -3}], "web")
        self.assertEqual(results[0].relevance, 1.0)
        self.assertEqual(results[1].relevance, 0.0)

    def test_missing_title_gets_placeholder(self):
        results = normalize_results([{"content": "ohne titel"}], "web")
        self.assertEqual(results[0].title, "Quelle 1")

    def test_non_mapping_entries_are_skipped(self):
        results = normalize_results([None, "text", {"title": "ok"}], "web")
        self.assertEqual(len(results), 1)


class TestCitations(unittest.TestCase):
    """Tests for citation building."""

    def test_only_url_bearing_results(self):
        results = [make_result(title=f"r{i}", url=f"https://example.org/{i}" if i in (1, 4, 7) else None)
                   for i in range(9)]
        citations = build_citations(results)
        self.assertEqual(len(citations), 3)
        self.assertEqual([c.ordinal for c in citations], [1, 2, 3])
        self.assertEqual([c.title for c in citations], ["r1", "r4", "r7"])

    def test_capped_at_eight(self):
        results = [make_result(url=f"https://example.org/{i}") for i in range(12)]
        self.assertEqual(len(build_citations(results)), 8)

    def test_snippet_truncated(self):
        citations = build_citations([make_result(content="x" * 500, url="https://example.org")])
        self.assertEqual(len(citations[0].snippet), 200)


class TestSmartTruncate(unittest.TestCase):
    """Tests for head-and-tail truncation."""

    def test_short_text_is_unchanged(self):
        for text in ("", "kurz", "x" * 100):
            self.assertEqual(smart_truncate(text, 100), text)
            self.assertEqual(smart_truncate(smart_truncate(text, 100), 100), text)

    def test_keeps_head_and_tail(self):
        text = "a" * 600 + "b" * 400
        truncated = smart_truncate(text, 100)
        self.assertTrue(truncated.startswith("a" * 60))
        self.assertTrue(truncated.endswith("b" * 40))
        self.assertIn("900 Zeichen ausgelassen", truncated)


class TestBudgetAllocation(unittest.TestCase):
    """Tests for the relevance-weighted budget split."""

    def setUp(self):
        self.settings = PipelineSettings()

    def test_budget_selection(self):
        self.assertEqual(select_budget([make_result("x" * 100)], self.settings), 4000)
        self.assertEqual(select_budget([make_result("x" * 100), make_result("x" * 501)], self.settings), 6000)

    def test_budget_bound_and_floor(self):
        result_sets = [
            [make_result("x" * 3000, relevance=0.9)] + [make_result("x" * 50, relevance=0.01) for _ in range(7)],
            [make_result("x" * 200, relevance=r / 10) for r in range(10)],
            [make_result("x" * 4000, relevance=1.0) for _ in range(3)],
            [make_result("", relevance=0.0) for _ in range(5)],
        ]
        for results in result_sets:
            allocations = allocate_context_budget(results, self.settings)
            budget = select_budget(results[:8], self.settings)
            floor = self.settings.min_result_quota
            self.assertLessEqual(len(allocations), 8)
            self.assertLessEqual(sum(a.quota for a in allocations), budget + len(allocations) * floor)
            for allocation in allocations:
                self.assertGreaterEqual(allocation.quota, floor)
                self.assertLessEqual(len(allocation.result.content[:allocation.quota]), allocation.quota)

    def test_long_content_gets_double_weight(self):
        long_result = make_result("x" * 1000, relevance=0.5)
        short_result = make_result("x" * 400, relevance=0.5)
        allocations = allocate_context_budget([long_result, short_result], self.settings)
        self.assertEqual(allocations[0].quota, 4000)
        self.assertEqual(allocations[1].quota, 2000)
        self.assertEqual(allocations[0].content, "x" * 1000)

    def test_zero_weights_share_equally(self):
        allocations = allocate_context_budget([make_result(relevance=0.0) for _ in range(4)], self.settings)
        self.assertEqual([a.quota for a in allocations], [1000] * 4)

    def test_truncates_to_quota(self):
        results = [make_result("a" * 5000, relevance=1.0)] + [make_result("b" * 600, relevance=1.0) for _ in range(7)]
        allocations = allocate_context_budget(results, self.settings)
        self.assertLess(len(allocations[0].content), 5000)
        self.assertIn("Zeichen ausgelassen", allocations[0].content)

    def test_empty(self):
        self.assertEqual(allocate_context_budget([], self.settings), [])
        self.assertEqual(format_results_context([]), "")

    def test_format_results_context(self):
        allocations = allocate_context_budget(
            [make_result("Text eins", title="Eins", url="https://eins.de"), make_result("Text zwei", title="Zwei")],
            self.settings,
        )
        context = format_results_context(allocations)
        self.assertTrue(context.startswith("## SUCHERGEBNISSE"))
        self.assertIn("[1] Eins (https://eins.de)", context)
        self.assertIn("[2] Zwei", context)


if __name__ == "__main__":
    unittest.main()
