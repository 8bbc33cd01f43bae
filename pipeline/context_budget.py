"""
Character budgeting for retrieved material.

Results share a fixed character budget in proportion to their weighted
relevance; each is cut to its quota with smart truncation, keeping the
lead and the conclusion of the text.
"""
import logging
from typing import List, Optional

from config import PipelineSettings
from models.results import BudgetAllocation, NormalizedResult

logger = logging.getLogger(__name__)

OMISSION_MARKER = "\n[... {omitted} Zeichen ausgelassen ...]\n"


def smart_truncate(text: str, limit: int, head_share: float = 0.6) -> str:
    """
    Cut text to a limit while keeping its head and tail.

    Args:
        text: The text to shorten
        limit: Number of source characters to keep
        head_share: Share of the limit taken from the start of the text

    Returns:
        The text unchanged if it fits, otherwise head + marker + tail
    """
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    if limit <= 0:
        return OMISSION_MARKER.format(omitted=len(text)).strip()

    head_len = int(limit * head_share)
    tail_len = limit - head_len
    omitted = len(text) - head_len - tail_len
    tail = text[-tail_len:] if tail_len > 0 else ""
    return text[:head_len] + OMISSION_MARKER.format(omitted=omitted) + tail


def select_budget(results: List[NormalizedResult], settings: PipelineSettings) -> int:
    """Full documents get the large budget, short snippets the base one."""
    if any(len(r.content) > settings.long_content_threshold for r in results):
        return settings.large_budget
    return settings.base_budget


def _weight(result: NormalizedResult, settings: PipelineSettings) -> float:
    weight = result.relevance
    if len(result.content) > settings.long_content_threshold:
        weight *= 2
    return weight


def allocate_context_budget(results: List[NormalizedResult],
                            settings: PipelineSettings,
                            budget: Optional[int] = None) -> List[BudgetAllocation]:
    """
    Split the character budget across the top results.

    Every quota is at least the configured floor, so the total may exceed
    the budget by at most one floor per result.
    """
    selected = list(results)[:settings.max_budget_results]
    if not selected:
        return []

    if budget is None:
        budget = select_budget(selected, settings)

    weights = [_weight(r, settings) for r in selected]
    total_weight = sum(weights)

    allocations = []
    for result, weight in zip(selected, weights):
        if total_weight > 0:
            share = int(budget * weight / total_weight)
        else:
            share = budget // len(selected)
        quota = max(settings.min_result_quota, share)
        allocations.append(BudgetAllocation(
            result=result,
            quota=quota,
            content=smart_truncate(result.content, quota, settings.head_share),
        ))

    logger.debug(f"Allocated {sum(a.quota for a in allocations)} of {budget} chars across {len(allocations)} results")
    return allocations


def format_results_context(allocations: List[BudgetAllocation]) -> str:
    """Render budgeted results as a numbered context section."""
    if not allocations:
        return ""

    lines = ["## SUCHERGEBNISSE"]
    for i, allocation in enumerate(allocations, 1):
        result = allocation.result
        header = f"[{i}] {result.title}"
        if result.url:
            header += f" ({result.url})"
        lines.append(header)
        if allocation.content:
            lines.append(allocation.content)
        lines.append("")
    return "\n".join(lines).rstrip()
