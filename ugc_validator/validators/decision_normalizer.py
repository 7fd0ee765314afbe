"""Turns raw classifier answers into canonical per-image outcomes."""
import logging
import re
from typing import Any, Dict, Optional

from ugc_validator.types import ImageOutcome, Decision, FailurePolicy, ValidationConfig
from ugc_validator.errors import ClassifierError
from ugc_validator.config.rules import (
    MIN_SCORE,
    MAX_SCORE,
    LENIENT_FALLBACK_SCORE,
    PEOPLE_DETECTED_FEEDBACK,
    CLASSIFIER_REJECT_FALLBACK_FEEDBACK,
    CLASSIFIER_ACCEPT_FALLBACK_FEEDBACK,
    CLASSIFIER_ERROR_FEEDBACK,
)

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "yes", "y", "1"}


def clamp_score(value: Any) -> int:
    """Coerce to an int within [0, 100]; anything unparsable is 0."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _parse_decision(value: Any) -> Optional[Decision]:
    if isinstance(value, Decision):
        return value
    try:
        return Decision(str(value).strip().lower())
    except ValueError:
        return None


def normalize_classifier_response(
    filename: str,
    raw: Dict[str, Any],
    config: ValidationConfig
) -> ImageOutcome:
    """
    Build an ImageOutcome from a classifier answer.

    A missing or unknown decision is derived from the score and the people flag.
    A people detection always forces Reject with the fixed feedback, even when
    the classifier itself said accept.
    """
    score = clamp_score(raw.get("score"))
    contains_people = _as_bool(raw.get("contains_people", False))
    feedback = str(raw.get("feedback") or "").strip()

    decision = _parse_decision(raw.get("decision"))
    if decision is None:
        decision = (
            Decision.ACCEPT
            if score >= config.acceptance_threshold and not contains_people
            else Decision.REJECT
        )
        logger.debug(f"{filename}: classifier decision missing, derived {decision.value} from score {score}")

    if contains_people:
        if decision == Decision.ACCEPT:
            logger.info(f"{filename}: classifier accepted a photo with people, overriding to reject")
        decision = Decision.REJECT
        feedback = PEOPLE_DETECTED_FEEDBACK

    return ImageOutcome(
        filename=filename,
        decision=decision,
        quality_score=score,
        contains_people=contains_people,
        feedback_text=feedback,
    )


def fallback_outcome(
    filename: str,
    error: Optional[Exception],
    config: ValidationConfig
) -> ImageOutcome:
    """
    Outcome used when the classifier failed.

    `reject` policy: Reject, score 0, retry hint (status-specific when known).
    `accept` policy: Accept with a fixed lenient score.
    """
    if config.classifier_failure_policy == FailurePolicy.ACCEPT:
        logger.warning(f"{filename}: classifier failed ({error}), accepting leniently per policy")
        return ImageOutcome(
            filename=filename,
            decision=Decision.ACCEPT,
            quality_score=LENIENT_FALLBACK_SCORE,
            contains_people=False,
            feedback_text=CLASSIFIER_ACCEPT_FALLBACK_FEEDBACK,
        )

    feedback = CLASSIFIER_REJECT_FALLBACK_FEEDBACK
    if isinstance(error, ClassifierError) and error.status_code in CLASSIFIER_ERROR_FEEDBACK:
        feedback = CLASSIFIER_ERROR_FEEDBACK[error.status_code]
    logger.warning(f"{filename}: classifier failed ({error}), rejecting per policy")
    return ImageOutcome(
        filename=filename,
        decision=Decision.REJECT,
        quality_score=0,
        contains_people=False,
        feedback_text=feedback,
    )


def parse_classifier_text(response: str) -> Dict[str, Any]:
    """
    Parse the line-format answer (PEOPLE/SCORE/DECISION/FEEDBACK) into a raw dict.

    Raises ClassifierError when no SCORE line is present, since such an answer
    cannot be told apart from a failed call.
    """
    results: Dict[str, Any] = {
        "contains_people": False,
        "score": None,
        "decision": None,
        "feedback": "",
    }

    for line in (response or "").split('\n'):
        line = line.strip().lstrip('*').strip()
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        key = key.strip().upper()
        value = value.strip().strip('*').strip()
        if key == 'PEOPLE':
            results["contains_people"] = value.upper().startswith("YES")
        elif key == 'SCORE':
            match = re.search(r'-?\d+(\.\d+)?', value)
            if match:
                results["score"] = float(match.group(0))
        elif key == 'DECISION':
            results["decision"] = value.lower()
        elif key == 'FEEDBACK':
            results["feedback"] = value

    if results["score"] is None:
        snippet = (response or '')[:120]
        raise ClassifierError(f"Classifier answer has no SCORE line: {snippet!r}")
    return results
