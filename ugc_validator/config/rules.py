"""Hardcoded validation rules, limits and customer-facing messages."""
from typing import Dict, List, Tuple


# Upload limits
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB
MIN_IMAGE_WIDTH = 400
MIN_IMAGE_HEIGHT = 400
ALLOWED_MIME_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]

# Submission shape
REQUIRED_IMAGE_COUNT = 3
MIN_ACCEPTED_FOR_REWARD = 3
REVIEW_TEXT_LENGTH: Tuple[int, int] = (20, 500)
CUSTOMER_NAME_LENGTH: Tuple[int, int] = (2, 100)
STAR_RATING_RANGE: Tuple[int, int] = (1, 5)
ORDER_ID_PATTERN = r"^[A-Za-z0-9_\-]+$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# Classifier scoring
ACCEPTANCE_THRESHOLD = 70
MIN_SCORE = 0
MAX_SCORE = 100
LENIENT_FALLBACK_SCORE = 85

# Reward codes
DISCOUNT_CODE_PREFIX = "UGC"
DISCOUNT_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DISCOUNT_CODE_GROUP_LENGTH = 4
DISCOUNT_VALUE_TEXT = "100 PLN off your next order"
DISCOUNT_VALIDITY_DAYS = 30

# Fixed feedback
PEOPLE_DETECTED_FEEDBACK = "The photo shows people - please remove them from the frame."
FILE_TOO_LARGE_FEEDBACK = "File is too large ({actual_mb:.2f}MB). Maximum size: {limit_mb:.2f}MB."
IMAGE_TOO_NARROW_FEEDBACK = "The photo is too small. Minimum width: {required}px. Current: {actual}px."
IMAGE_TOO_SHORT_FEEDBACK = "The photo is too small. Minimum height: {required}px. Current: {actual}px."
UNSUPPORTED_FORMAT_FEEDBACK = "Unsupported file format ({mime_type}). Allowed: {allowed}."
UNDECODABLE_IMAGE_FEEDBACK = "The file is not a valid image or is corrupted."
CLASSIFIER_REJECT_FALLBACK_FEEDBACK = "The photo could not be analysed. Please try again."
CLASSIFIER_ACCEPT_FALLBACK_FEEDBACK = "The photo was accepted without automated analysis."
PROCESSING_ERROR_FEEDBACK = "Image processing failed. Please try again."

CLASSIFIER_ERROR_FEEDBACK: Dict[int, str] = {
    400: "The photo could not be sent for analysis.",
    401: "Image analysis is misconfigured. Please try again later.",
    429: "Image analysis limit reached. Please try again in a moment.",
}

# Vision classification prompt (shared by every provider)
CLASSIFICATION_PROMPT = """You are moderating customer review photos of a product.

Task: Look at the photo and decide whether it can be published as a product review photo.
1. Are any people, faces or recognisable body parts visible?
2. Rate the photo quality from 0 to 100 (sharpness, lighting, framing, product visible).
3. Accept the photo only if the quality is at least {threshold} and no people are visible.

Respond in this exact format:
PEOPLE: YES or NO
SCORE: <number 0-100>
DECISION: ACCEPT or REJECT
FEEDBACK: <one short sentence for the customer>"""
