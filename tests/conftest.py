import io
import threading
from typing import Dict, List, Optional

import pytest
from PIL import Image

from ugc_validator.types import (
    ImageCandidate,
    SubmissionMode,
    SubmissionRequest,
    ValidationConfig,
    FixContext,
)
from ugc_validator.errors import BlobStoreError, ClassifierError, NotificationError
from ugc_validator.extractors.image_extractor import build_candidate
from ugc_validator.orchestration.services import PipelineServices
from ugc_validator.storage.sqlite_store import SqliteOrderRecordStore, SqliteRewardCodePool


ACCEPT_ANSWER = {"contains_people": False, "score": 90, "decision": "accept", "feedback": "Nice photo"}
REJECT_ANSWER = {"contains_people": False, "score": 30, "decision": "reject", "feedback": "Too blurry"}
PEOPLE_ANSWER = {"contains_people": True, "score": 95, "decision": "accept", "feedback": "Great shot"}


def make_image_bytes(width: int = 800, height: int = 600, color=(120, 110, 100), fmt: str = "JPEG") -> bytes:
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_candidate(filename: str = "photo.jpg", width: int = 800, color=(120, 110, 100)) -> ImageCandidate:
    return build_candidate(filename, make_image_bytes(width=width, color=color), "image/jpeg")


def make_candidates(count: int = 3) -> List[ImageCandidate]:
    # Distinct colors give distinct bytes, so stub answers can be keyed per image
    return [make_candidate(f"photo{i}.jpg", color=(40 * i, 100, 100)) for i in range(count)]


def make_request(
    images: List[ImageCandidate],
    order_id: str = "ORDER-1001",
    mode: SubmissionMode = SubmissionMode.NORMAL,
    fix_context: Optional[FixContext] = None,
) -> SubmissionRequest:
    return SubmissionRequest(
        order_id=order_id,
        order_email="buyer@example.com",
        review_text="The lamp looks great on my desk and the light is warm.",
        customer_name="Alex Kowalski",
        star_rating=5,
        images=images,
        mode=mode,
        fix_context=fix_context,
    )


class StubClassifier:
    """Answers by image bytes, falling back to a default. Thread-safe call counting."""

    def __init__(self, default: Optional[dict] = None, error: Optional[Exception] = None):
        self.default = dict(default or ACCEPT_ANSWER)
        self.error = error
        self.by_bytes: Dict[bytes, object] = {}
        self.calls = 0
        self._lock = threading.Lock()

    def answer(self, candidate: ImageCandidate, answer):
        self.by_bytes[candidate.raw_bytes] = answer

    def classify_image(self, data: bytes, mime_type: str) -> dict:
        with self._lock:
            self.calls += 1
        answer = self.by_bytes.get(data, self.error or self.default)
        if isinstance(answer, Exception):
            raise answer
        return dict(answer)


class StubBlobStore:
    def __init__(self, name: str = "stub", fail: bool = False):
        self.name = name
        self.fail = fail
        self.uploads: List[str] = []
        self._lock = threading.Lock()

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        if self.fail:
            raise BlobStoreError(f"{self.name} is down")
        with self._lock:
            self.uploads.append(key)
        return f"https://{self.name}.example.com/{key}"


class StubNotifier:
    def __init__(self, fail: bool = False, reachable: bool = True):
        self.fail = fail
        self.reachable = reachable
        self.sent: List[tuple] = []

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise NotificationError("SMTP down")
        self.sent.append((to, subject, body))

    def check_connection(self) -> bool:
        return self.reachable


class CountingPool:
    """Wraps a pool and counts every call made to it."""

    def __init__(self, pool):
        self.pool = pool
        self.calls = 0

    def __getattr__(self, name):
        attr = getattr(self.pool, name)
        if not callable(attr):
            return attr

        def wrapper(*args, **kwargs):
            self.calls += 1
            return attr(*args, **kwargs)
        return wrapper


@pytest.fixture
def config(tmp_path) -> ValidationConfig:
    return ValidationConfig(
        database_path=tmp_path / "ugc.sqlite",
        classifier_timeout_seconds=5,
        storage_timeout_seconds=5,
    )


@pytest.fixture
def record_store(config) -> SqliteOrderRecordStore:
    return SqliteOrderRecordStore(config.database_path)


@pytest.fixture
def reward_pool(config) -> SqliteRewardCodePool:
    return SqliteRewardCodePool(config.database_path)


@pytest.fixture
def classifier() -> StubClassifier:
    return StubClassifier()


@pytest.fixture
def notifier() -> StubNotifier:
    return StubNotifier()


@pytest.fixture
def blob_store() -> StubBlobStore:
    return StubBlobStore()


@pytest.fixture
def services(config, classifier, record_store, reward_pool, blob_store, notifier) -> PipelineServices:
    return PipelineServices(
        config=config,
        classifier=classifier,
        record_store=record_store,
        reward_pool=CountingPool(reward_pool),
        blob_stores=[blob_store],
        notifier=notifier,
    )


@pytest.fixture
def classifier_error() -> ClassifierError:
    return ClassifierError("provider down", provider="gemini", status_code=503)
