"""Batch summary, reward qualification and fix-mode merging."""
import logging
from typing import List, Tuple

from ugc_validator.types import ImageOutcome, BatchSummary

logger = logging.getLogger(__name__)


def summarize(outcomes: List[ImageOutcome], min_accepted_for_reward: int) -> Tuple[BatchSummary, bool]:
    """
    Count decisions and average the scores of all images, rejected ones included.

    Returns (summary, qualified) where qualified means at least
    `min_accepted_for_reward` images were accepted.
    """
    total = len(outcomes)
    accepted = sum(1 for outcome in outcomes if outcome.accepted)
    average = round(sum(o.quality_score for o in outcomes) / total, 2) if total else 0

    summary = BatchSummary(
        total_count=total,
        accepted_count=accepted,
        rejected_count=total - accepted,
        average_score=average,
    )
    qualified = accepted >= min_accepted_for_reward
    logger.debug(f"Batch summary: {accepted}/{total} accepted, avg {average}, qualified={qualified}")
    return summary, qualified


def merge_fix_results(
    previously_accepted: List[ImageOutcome],
    new_results: List[ImageOutcome]
) -> List[ImageOutcome]:
    """Previously accepted photos first, then the replacement results, both in submission order."""
    return list(previously_accepted) + list(new_results)
