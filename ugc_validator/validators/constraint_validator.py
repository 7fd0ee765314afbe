"""Local image constraint checks that run before any classifier call."""
import logging
from typing import Optional

from ugc_validator.types import ImageCandidate, ImageOutcome, Decision, ValidationConfig
from ugc_validator.config.rules import (
    FILE_TOO_LARGE_FEEDBACK,
    IMAGE_TOO_NARROW_FEEDBACK,
    IMAGE_TOO_SHORT_FEEDBACK,
    UNSUPPORTED_FORMAT_FEEDBACK,
    UNDECODABLE_IMAGE_FEEDBACK,
)

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


def _reject(candidate: ImageCandidate, feedback: str) -> ImageOutcome:
    return ImageOutcome(
        filename=candidate.filename,
        decision=Decision.REJECT,
        quality_score=0,
        contains_people=False,
        feedback_text=feedback,
    )


def check_file_size(candidate: ImageCandidate, config: ValidationConfig) -> Optional[ImageOutcome]:
    """Reject files over the byte limit. Exactly at the limit passes."""
    if candidate.byte_size > config.max_file_size:
        logger.info(
            f"  FAIL: {candidate.filename} too large "
            f"({candidate.byte_size} > {config.max_file_size} bytes)"
        )
        return _reject(candidate, FILE_TOO_LARGE_FEEDBACK.format(
            actual_mb=candidate.byte_size / MIB,
            limit_mb=config.max_file_size / MIB,
        ))
    return None


def check_format(candidate: ImageCandidate, config: ValidationConfig) -> Optional[ImageOutcome]:
    """Reject unsupported MIME types and bytes Pillow could not decode."""
    if config.allowed_mime_types and candidate.mime_type not in config.allowed_mime_types:
        logger.info(f"  FAIL: {candidate.filename} has unsupported type {candidate.mime_type}")
        return _reject(candidate, UNSUPPORTED_FORMAT_FEEDBACK.format(
            mime_type=candidate.mime_type,
            allowed=", ".join(config.allowed_mime_types),
        ))
    if candidate.decode_error or candidate.width is None:
        logger.info(f"  FAIL: {candidate.filename} could not be decoded ({candidate.decode_error})")
        return _reject(candidate, UNDECODABLE_IMAGE_FEEDBACK)
    return None


def check_min_width(candidate: ImageCandidate, config: ValidationConfig) -> Optional[ImageOutcome]:
    """Reject images narrower than the configured minimum. Exactly at the minimum passes."""
    if candidate.width < config.min_image_width:
        logger.info(
            f"  FAIL: {candidate.filename} too narrow "
            f"({candidate.width} < {config.min_image_width}px)"
        )
        return _reject(candidate, IMAGE_TOO_NARROW_FEEDBACK.format(
            required=config.min_image_width,
            actual=candidate.width,
        ))
    return None


def check_min_height(candidate: ImageCandidate, config: ValidationConfig) -> Optional[ImageOutcome]:
    if candidate.height < config.min_image_height:
        logger.info(
            f"  FAIL: {candidate.filename} too short "
            f"({candidate.height} < {config.min_image_height}px)"
        )
        return _reject(candidate, IMAGE_TOO_SHORT_FEEDBACK.format(
            required=config.min_image_height,
            actual=candidate.height,
        ))
    return None


def check_image_constraints(candidate: ImageCandidate, config: ValidationConfig) -> Optional[ImageOutcome]:
    """
    Run the local gate on one image.

    Returns None when the image may go to the classifier, otherwise the Reject
    outcome of the first failing rule (size, then format/decoding, then width, then height).
    """
    for check in (check_file_size, check_format, check_min_width, check_min_height):
        outcome = check(candidate, config)
        if outcome is not None:
            return outcome
    return None
