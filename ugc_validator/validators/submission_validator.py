"""Request-level validation of a review submission."""
import logging
import re
from typing import List

from ugc_validator.types import SubmissionRequest, SubmissionMode, ValidationConfig
from ugc_validator.errors import SubmissionValidationError
from ugc_validator.config.rules import (
    CUSTOMER_NAME_LENGTH,
    EMAIL_PATTERN,
    ORDER_ID_PATTERN,
    STAR_RATING_RANGE,
)

logger = logging.getLogger(__name__)


def collect_submission_errors(request: SubmissionRequest, config: ValidationConfig) -> List[str]:
    """Return one human-readable message per violated rule, in a stable order."""
    errors: List[str] = []

    order_id = (request.order_id or "").strip()
    if not order_id:
        errors.append("Order number is required.")
    elif not re.match(ORDER_ID_PATTERN, order_id):
        errors.append("Order number may only contain letters, digits, hyphens and underscores.")

    email = (request.order_email or "").strip()
    if not email:
        errors.append("Order email is required.")
    elif not re.match(EMAIL_PATTERN, email):
        errors.append("Please enter a valid email address.")

    text = (request.review_text or "").strip()
    min_len, max_len = config.review_text_min_length, config.review_text_max_length
    if not min_len <= len(text) <= max_len:
        errors.append(f"Review text must be between {min_len} and {max_len} characters (got {len(text)}).")

    name = (request.customer_name or "").strip()
    if not CUSTOMER_NAME_LENGTH[0] <= len(name) <= CUSTOMER_NAME_LENGTH[1]:
        errors.append(
            f"Customer name must be between {CUSTOMER_NAME_LENGTH[0]} and {CUSTOMER_NAME_LENGTH[1]} characters."
        )

    low, high = STAR_RATING_RANGE
    rating = request.star_rating
    if isinstance(rating, bool) or not isinstance(rating, int) or not low <= rating <= high:
        errors.append(f"Star rating must be a whole number from {low} to {high}.")

    image_count = len(request.images)
    if request.mode == SubmissionMode.FIX:
        if request.fix_context is None:
            errors.append("Fix mode requires the previous results.")
        else:
            expected = len(request.fix_context.previously_rejected)
            if image_count != expected:
                errors.append(
                    f"Fix mode expects exactly {expected} replacement photo(s), got {image_count}."
                )
    elif image_count != config.required_image_count:
        errors.append(f"Exactly {config.required_image_count} photos are required, got {image_count}.")

    return errors


def validate_submission(request: SubmissionRequest, config: ValidationConfig) -> None:
    """Raise SubmissionValidationError if the request breaks any input rule."""
    errors = collect_submission_errors(request, config)
    if errors:
        logger.info(f"Submission for order '{request.order_id}' rejected at input validation: {errors}")
        raise SubmissionValidationError(errors)
