"""Collaborators shared by every submission, built once per process."""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ugc_validator.types import ValidationConfig
from ugc_validator.validators.gemini_client import GeminiClient
from ugc_validator.validators.groq_client import GroqClient
from ugc_validator.storage.blob_stores import LocalDirectoryBlobStore, HttpBlobStore
from ugc_validator.storage.sqlite_store import SqliteOrderRecordStore, SqliteRewardCodePool
from ugc_validator.notifications.email_channel import SmtpNotificationChannel

logger = logging.getLogger(__name__)


@dataclass
class PipelineServices:
    """Everything process_submission talks to. Tests swap in stubs field by field."""
    config: ValidationConfig
    classifier: Any
    record_store: Any
    reward_pool: Any
    blob_stores: List[Any] = field(default_factory=list)
    notifier: Optional[Any] = None


def build_blob_stores(config: ValidationConfig) -> List[Any]:
    """Configured stores in fallback order: HTTP object store first, local directory last."""
    stores: List[Any] = []
    if config.http_storage_upload_url:
        stores.append(HttpBlobStore(
            upload_url=config.http_storage_upload_url,
            public_url=config.http_storage_public_url,
            query=config.http_storage_query,
            timeout=config.storage_timeout_seconds,
        ))
    if config.local_storage_dir:
        stores.append(LocalDirectoryBlobStore(config.local_storage_dir, config.local_storage_base_url))
    if not stores:
        logger.warning("No blob store configured, accepted photos will not be stored")
    return stores


def build_services(config: ValidationConfig) -> PipelineServices:
    """Construct the production collaborators from configuration."""
    groq_client = GroqClient(
        api_key=config.groq_api_key,
        timeout_seconds=config.classifier_timeout_seconds,
        acceptance_threshold=config.acceptance_threshold,
    )
    classifier = GeminiClient(
        api_key=config.gemini_api_key,
        groq_client=groq_client,
        timeout_seconds=config.classifier_timeout_seconds,
        acceptance_threshold=config.acceptance_threshold,
    )
    if not classifier.available:
        logger.warning(
            f"No vision classifier available, every photo will follow the "
            f"'{config.classifier_failure_policy.value}' failure policy"
        )

    notifier = None
    if config.smtp_host:
        notifier = SmtpNotificationChannel(
            host=config.smtp_host,
            port=config.smtp_port,
            user=config.smtp_user,
            password=config.smtp_password,
            sender=config.smtp_sender,
            use_tls=config.smtp_use_tls,
            timeout=config.notification_timeout_seconds,
        )
    else:
        logger.warning("SMTP_HOST not set, reward codes will not be emailed")

    return PipelineServices(
        config=config,
        classifier=classifier,
        record_store=SqliteOrderRecordStore(config.database_path, config.record_store_timeout_seconds),
        reward_pool=SqliteRewardCodePool(config.database_path, config.record_store_timeout_seconds),
        blob_stores=build_blob_stores(config),
        notifier=notifier,
    )
