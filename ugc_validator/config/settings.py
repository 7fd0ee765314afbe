"""Environment-driven configuration."""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ugc_validator.types import ValidationConfig, FailurePolicy
from ugc_validator.config import rules

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def _failure_policy() -> FailurePolicy:
    raw = os.getenv("CLASSIFIER_FAILURE_POLICY", FailurePolicy.REJECT.value).strip().lower()
    try:
        return FailurePolicy(raw)
    except ValueError:
        logger.warning(f"Unknown CLASSIFIER_FAILURE_POLICY '{raw}', using 'reject'")
        return FailurePolicy.REJECT


def load_config() -> ValidationConfig:
    """Build a ValidationConfig from environment variables."""
    required = int(os.getenv("REQUIRED_IMAGE_COUNT", str(rules.REQUIRED_IMAGE_COUNT)))
    allowed = os.getenv("ALLOWED_MIME_TYPES", ",".join(rules.ALLOWED_MIME_TYPES))

    config = ValidationConfig(
        max_file_size=int(os.getenv("MAX_FILE_SIZE", str(rules.MAX_FILE_SIZE))),
        min_image_width=int(os.getenv("MIN_IMAGE_WIDTH", str(rules.MIN_IMAGE_WIDTH))),
        min_image_height=int(os.getenv("MIN_IMAGE_HEIGHT", str(rules.MIN_IMAGE_HEIGHT))),
        allowed_mime_types=[t.strip() for t in allowed.split(",") if t.strip()],
        required_image_count=required,
        # Threshold defaults to the required image count
        min_accepted_for_reward=int(os.getenv("MIN_ACCEPTED_FOR_REWARD", str(required))),
        acceptance_threshold=int(os.getenv("ACCEPTANCE_THRESHOLD", str(rules.ACCEPTANCE_THRESHOLD))),
        review_text_min_length=int(os.getenv("REVIEW_TEXT_MIN_LENGTH", str(rules.REVIEW_TEXT_LENGTH[0]))),
        review_text_max_length=int(os.getenv("REVIEW_TEXT_MAX_LENGTH", str(rules.REVIEW_TEXT_LENGTH[1]))),
        classifier_failure_policy=_failure_policy(),
        classifier_timeout_seconds=float(os.getenv("CLASSIFIER_TIMEOUT_SECONDS", "30")),
        storage_timeout_seconds=float(os.getenv("STORAGE_TIMEOUT_SECONDS", "15")),
        record_store_timeout_seconds=float(os.getenv("RECORD_STORE_TIMEOUT_SECONDS", "5")),
        notification_timeout_seconds=float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10")),
        max_image_workers=int(os.getenv("MAX_IMAGE_WORKERS", str(required))),
        discount_code_prefix=os.getenv("DISCOUNT_CODE_PREFIX", rules.DISCOUNT_CODE_PREFIX),
        database_path=Path(os.getenv("DATABASE_PATH", "./data/ugc_validation.sqlite")),
        local_storage_dir=_env_path("LOCAL_STORAGE_DIR"),
        local_storage_base_url=os.getenv("LOCAL_STORAGE_BASE_URL"),
        http_storage_upload_url=os.getenv("HTTP_STORAGE_UPLOAD_URL"),
        http_storage_public_url=os.getenv("HTTP_STORAGE_PUBLIC_URL"),
        http_storage_query=os.getenv("HTTP_STORAGE_QUERY"),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        groq_api_key=os.getenv("GROQ_API_KEY") or os.getenv("GROQ_CLOUD_API"),
        smtp_host=os.getenv("SMTP_HOST"),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        smtp_user=os.getenv("SMTP_USER"),
        smtp_password=os.getenv("SMTP_PASSWORD"),
        smtp_sender=os.getenv("SMTP_SENDER", ValidationConfig.smtp_sender),
        smtp_use_tls=_env_bool("SMTP_USE_TLS", True),
    )
    logger.debug(
        f"Configuration loaded: images={config.required_image_count}, "
        f"reward threshold={config.min_accepted_for_reward}, "
        f"acceptance score={config.acceptance_threshold}, "
        f"failure policy={config.classifier_failure_policy.value}"
    )
    return config
