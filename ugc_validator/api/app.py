"""FastAPI application for review photo validation."""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ugc_validator.types import FixContext, ImageCandidate, ImageOutcome, SubmissionMode, SubmissionRequest
from ugc_validator.errors import (
    OrderAlreadyRewardedError,
    RecordStoreError,
    RewardPoolError,
    SubmissionValidationError,
)
from ugc_validator.config.settings import load_config
from ugc_validator.extractors.image_extractor import build_candidate, oversized_candidate
from ugc_validator.orchestration.runner import process_submission
from ugc_validator.orchestration.responder import build_response
from ugc_validator.orchestration.services import PipelineServices, build_services
from ugc_validator.utils.logging_config import setup_logging
from ugc_validator.utils.progress import estimate_progress

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def error_body(code: str, message: str, details: Optional[List[str]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        body["error"]["details"] = details
    return body


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(SubmissionValidationError)
    async def submission_error_handler(request: Request, exc: SubmissionValidationError):
        return JSONResponse(
            status_code=400,
            content=error_body("invalid_submission", "Submission failed validation", exc.errors),
        )

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError):
        details = [f"{'.'.join(str(p) for p in err.get('loc', []))}: {err.get('msg')}" for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=error_body("invalid_submission", "Submission failed validation", details),
        )

    @app.exception_handler(OrderAlreadyRewardedError)
    async def already_rewarded_handler(request: Request, exc: OrderAlreadyRewardedError):
        return JSONResponse(status_code=409, content=error_body("order_already_rewarded", str(exc)))

    @app.exception_handler(RecordStoreError)
    async def record_store_handler(request: Request, exc: RecordStoreError):
        logger.error(f"Record store unavailable: {exc}")
        return JSONResponse(
            status_code=503,
            content=error_body(
                "record_store_unavailable",
                "Order status could not be recorded. Please try again in a moment.",
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=error_body("internal_error", "Internal server error"))


def _parse_json_list(raw: Optional[str], field_name: str) -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise SubmissionValidationError([f"{field_name} must be a JSON list."])
    if not isinstance(value, list):
        raise SubmissionValidationError([f"{field_name} must be a JSON list."])
    return value


def _parse_star_rating(raw: Optional[str]) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _parse_fix_context(
    fix_mode: Optional[str],
    rejected_images: Optional[str],
    accepted_images: Optional[str]
) -> Optional[FixContext]:
    if str(fix_mode or "").strip().lower() not in ("true", "1", "yes"):
        return None
    rejected = [
        item if isinstance(item, dict) else {"filename": str(item)}
        for item in _parse_json_list(rejected_images, "rejectedImages")
    ]
    accepted = [
        ImageOutcome.from_dict(item)
        for item in _parse_json_list(accepted_images, "acceptedImages")
        if isinstance(item, dict)
    ]
    return FixContext(previously_rejected=rejected, previously_accepted=accepted)


async def _read_upload(upload: UploadFile, max_file_size: int) -> ImageCandidate:
    """Read one part, stopping one byte past the size limit."""
    filename = upload.filename or "image"
    data = await upload.read(max_file_size + 1)
    if len(data) > max_file_size:
        size = upload.size if upload.size is not None else len(data)
        logger.info(f"Upload {filename} exceeds {max_file_size} bytes, not decoding it")
        return oversized_candidate(filename, size, upload.content_type)
    return build_candidate(filename, data, upload.content_type)


def create_app(services: Optional[PipelineServices] = None) -> FastAPI:
    """Build the app. Without `services`, production collaborators are built at startup."""
    app = FastAPI(
        title="UGC Review Validation API",
        description="Validates customer review photos and issues reward codes",
        version=API_VERSION,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services
    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on application startup."""
        if app.state.services is None:
            logger.info("Application startup: Initializing services...")
            app.state.services = build_services(load_config())
        logger.info("Application startup complete")

    @app.post("/api/ugc/validate")
    async def validate_review(
        orderNumber: Optional[str] = Form(None),
        orderEmail: Optional[str] = Form(None),
        textReview: Optional[str] = Form(None),
        customerName: Optional[str] = Form(None),
        starRating: Optional[str] = Form(None),
        fixMode: Optional[str] = Form(None),
        rejectedImages: Optional[str] = Form(None),
        acceptedImages: Optional[str] = Form(None),
        images: Optional[List[UploadFile]] = File(None),
    ):
        """Validate up to K photos for one order and, when they qualify, issue a reward."""
        fix_context = _parse_fix_context(fixMode, rejectedImages, acceptedImages)

        config = app.state.services.config
        uploads = images or []
        expected = len(fix_context.previously_rejected) if fix_context else config.required_image_count
        if len(uploads) > expected:
            raise SubmissionValidationError(
                [f"At most {expected} photo(s) may be uploaded, got {len(uploads)}."]
            )

        candidates = [await _read_upload(upload, config.max_file_size) for upload in uploads]

        submission = SubmissionRequest(
            order_id=(orderNumber or "").strip(),
            order_email=(orderEmail or "").strip(),
            review_text=(textReview or "").strip(),
            customer_name=(customerName or "").strip(),
            star_rating=_parse_star_rating(starRating),
            images=candidates,
            mode=SubmissionMode.FIX if fix_context else SubmissionMode.NORMAL,
            fix_context=fix_context,
        )
        logger.info(
            f"Received {submission.mode.value} submission for order {submission.order_id} "
            f"with {len(candidates)} image(s)"
        )

        result = await run_in_threadpool(process_submission, submission, app.state.services)
        return build_response(result)

    @app.get("/api/ugc/status")
    async def status():
        """Collaborator configuration and the limits callers must respect."""
        services: PipelineServices = app.state.services
        config = services.config

        try:
            pool_status: Dict[str, Any] = {"status": "connected", **services.reward_pool.stats()}
        except RewardPoolError as e:
            logger.warning(f"Reward pool status check failed: {e}")
            pool_status = {"status": "error"}

        if services.notifier is None:
            email_status = "missing"
        elif await run_in_threadpool(services.notifier.check_connection):
            email_status = "connected"
        else:
            email_status = "unreachable"

        return {
            "status": "operational",
            "version": API_VERSION,
            "classifier": {
                "gemini": "configured" if config.gemini_api_key else "missing",
                "groq": "configured" if config.groq_api_key else "missing",
                "failurePolicy": config.classifier_failure_policy.value,
            },
            "storage": [store.name for store in services.blob_stores],
            "rewardPool": pool_status,
            "email": email_status,
            "features": {
                "maxFiles": config.required_image_count,
                "maxFileSize": config.max_file_size,
                "minImageWidth": config.min_image_width,
                "minImageHeight": config.min_image_height,
                "allowedTypes": config.allowed_mime_types,
                "reviewTextLength": [config.review_text_min_length, config.review_text_max_length],
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/ugc/progress")
    async def progress(elapsed: float = 0.0):
        """Time-based progress estimate for a client waiting on /api/ugc/validate."""
        percent, label = estimate_progress(elapsed)
        return {"elapsed": max(0.0, elapsed), "percent": percent, "label": label}

    @app.get("/api/health")
    async def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": API_VERSION,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    uvicorn.run(app, host="0.0.0.0", port=8000)
