"""Orchestration logic for review photo submissions."""
import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional

from ugc_validator.types import (
    ImageCandidate,
    ImageOutcome,
    SubmissionMode,
    SubmissionRequest,
    SubmissionResult,
)
from ugc_validator.errors import ClassifierError
from ugc_validator.validators.submission_validator import validate_submission
from ugc_validator.validators.constraint_validator import check_image_constraints
from ugc_validator.validators.decision_normalizer import (
    normalize_classifier_response,
    fallback_outcome,
)
from ugc_validator.orchestration.aggregator import summarize, merge_fix_results
from ugc_validator.orchestration.reconciler import OrderStateReconciler
from ugc_validator.orchestration.rewards import RewardIssuer
from ugc_validator.orchestration.services import PipelineServices
from ugc_validator.storage.blob_stores import upload_with_fallback
from ugc_validator.utils.hashing import build_blob_key
from ugc_validator.utils.logging_config import log_validation_event

logger = logging.getLogger(__name__)

# Slack on top of classifier + storage timeouts before an image worker counts as failed
JOIN_MARGIN_SECONDS = 5.0


class _ImageJob:
    """One image handed to the pool: when its worker started and whether the result is still wanted."""

    def __init__(self, candidate: ImageCandidate):
        self.candidate = candidate
        self.started = threading.Event()
        self.started_at = 0.0
        self.abandoned = threading.Event()


def _process_image(
    candidate: ImageCandidate,
    order_id: str,
    services: PipelineServices,
    abandoned: Optional[threading.Event] = None
) -> ImageOutcome:
    """
    Constraint gate, classification and (for accepted photos) upload of one image.

    Once `abandoned` is set the caller has already answered with a fallback for
    this image, so nothing is uploaded or logged for it.
    """
    config = services.config

    outcome = check_image_constraints(candidate, config)
    if outcome is None:
        try:
            raw = services.classifier.classify_image(candidate.raw_bytes, candidate.mime_type)
            outcome = normalize_classifier_response(candidate.filename, raw, config)
        except ClassifierError as e:
            outcome = fallback_outcome(candidate.filename, e, config)

    if abandoned is not None and abandoned.is_set():
        logger.warning(f"  Image {candidate.filename} finished after its deadline, result discarded")
        return outcome

    if outcome.accepted and services.blob_stores:
        key = build_blob_key(order_id, candidate.filename, candidate.raw_bytes)
        url, backend = upload_with_fallback(services.blob_stores, candidate.raw_bytes, key, candidate.mime_type)
        outcome = outcome.with_storage(url, backend)

    if abandoned is not None and abandoned.is_set():
        return outcome

    dimensions = f"{candidate.width}x{candidate.height}" if candidate.width else "unknown"
    log_validation_event(candidate.filename, candidate.byte_size, dimensions, outcome.to_dict(), order_id)
    return outcome


def _run_job(job: _ImageJob, order_id: str, services: PipelineServices) -> ImageOutcome:
    job.started_at = time.monotonic()
    job.started.set()
    return _process_image(job.candidate, order_id, services, job.abandoned)


def _wait_for(job: _ImageJob, future, image_budget: float, batch_deadline: float) -> ImageOutcome:
    """
    Join one image. Its own budget runs from the moment its worker starts, so
    time spent queued behind other images does not count against it.
    """
    if not job.started.wait(timeout=max(0.0, batch_deadline - time.monotonic())):
        raise FutureTimeoutError()
    return future.result(timeout=max(0.0, job.started_at + image_budget - time.monotonic()))


def analyze_images(request: SubmissionRequest, services: PipelineServices) -> List[ImageOutcome]:
    """
    Run every image through _process_image in parallel.

    Results keep submission order. Each image gets classifier timeout + storage
    timeout + JOIN_MARGIN_SECONDS from the start of its own worker. Failed or
    late images get the classifier failure outcome and their threads are abandoned.
    """
    config = services.config
    if not request.images:
        return []

    image_budget = config.classifier_timeout_seconds + config.storage_timeout_seconds + JOIN_MARGIN_SECONDS
    workers = max(1, min(config.max_image_workers, len(request.images)))
    batch_deadline = time.monotonic() + image_budget * math.ceil(len(request.images) / workers)

    jobs = [_ImageJob(candidate) for candidate in request.images]
    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = [executor.submit(_run_job, job, request.order_id, services) for job in jobs]

        outcomes: List[ImageOutcome] = []
        for job, future in zip(jobs, futures):
            filename = job.candidate.filename
            try:
                outcomes.append(_wait_for(job, future, image_budget, batch_deadline))
            except FutureTimeoutError:
                job.abandoned.set()
                logger.error(f"  Image {filename} timed out, treating as classifier failure")
                outcomes.append(fallback_outcome(
                    filename,
                    ClassifierError(f"Processing of {filename} timed out"),
                    config,
                ))
            except Exception as e:
                logger.error(f"  Image {filename} failed unexpectedly: {e}", exc_info=True)
                outcomes.append(fallback_outcome(filename, e, config))
        return outcomes
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def _first_stored_url(outcomes: List[ImageOutcome]) -> Optional[str]:
    for outcome in outcomes:
        if outcome.accepted and outcome.stored_url:
            return outcome.stored_url
    return None


def process_submission(request: SubmissionRequest, services: PipelineServices) -> SubmissionResult:
    """
    Process one review submission end to end.

    Raises SubmissionValidationError for bad input, OrderAlreadyRewardedError
    when the order was rewarded before, RecordStoreError when the order
    status cannot be recorded. Classifier, storage, pool and mail failures
    degrade instead of raising.
    """
    config = services.config
    validate_submission(request, config)

    logger.info("=" * 80)
    logger.info(
        f"VALIDATION START | Order: {request.order_id} | Mode: {request.mode.value} | "
        f"Images: {len(request.images)}"
    )
    logger.info("=" * 80)

    reconciler = OrderStateReconciler(services.record_store)
    if request.mode == SubmissionMode.NORMAL:
        reconciler.ensure_not_rewarded(request.order_id)

    start_time = time.time()
    logger.info("─" * 80)
    logger.info("IMAGE VALIDATION")
    logger.info("─" * 80)
    outcomes = analyze_images(request, services)
    for outcome in outcomes:
        status = "✓ ACCEPT" if outcome.accepted else "✗ REJECT"
        logger.info(f"  [{status}] {outcome.filename}: score {outcome.quality_score} | {outcome.feedback_text or 'OK'}")
    logger.info(f"Image validation took {time.time() - start_time:.2f}s")

    if request.mode == SubmissionMode.FIX:
        merged = merge_fix_results(request.fix_context.previously_accepted, outcomes)
        summary, qualified = summarize(merged, config.min_accepted_for_reward)
        logger.info(
            f"VALIDATION END | Order: {request.order_id} | Fix mode | "
            f"{summary.accepted_count}/{summary.total_count} accepted after merge"
        )
        return SubmissionResult(request=request, outcomes=merged, summary=summary, qualified=qualified)

    summary, qualified = summarize(outcomes, config.min_accepted_for_reward)
    logger.info(
        f"Summary: {summary.accepted_count}/{summary.total_count} accepted | "
        f"Avg score: {summary.average_score} | Qualified: {qualified}"
    )

    record = reconciler.reconcile(request, qualified, _first_stored_url(outcomes))

    review_id = None
    reward = None
    if record is not None:
        review_id = record.record_ref
        issuer = RewardIssuer(services.reward_pool, services.notifier, config.discount_code_prefix)
        reward = issuer.issue(request.order_id, request.order_email)
        logger.info(
            f"Reward {reward.code} issued to order {request.order_id} "
            f"(pool: {reward.from_pool}, emailed: {reward.delivery_confirmed})"
        )

    logger.info("=" * 80)
    logger.info(f"VALIDATION END | Order: {request.order_id} | Qualified: {qualified} | Review: {review_id}")
    logger.info("=" * 80)

    return SubmissionResult(
        request=request,
        outcomes=outcomes,
        summary=summary,
        qualified=qualified,
        review_id=review_id,
        reward=reward,
    )
