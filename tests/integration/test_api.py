import json

import pytest
from fastapi.testclient import TestClient

from ugc_validator.types import OrderStatus
from ugc_validator.errors import RecordStoreError, RewardPoolError
from ugc_validator.api import app as app_module
from ugc_validator.api.app import create_app

from conftest import PEOPLE_ANSWER, make_image_bytes


FORM = {
    "orderNumber": "ORD-API-1",
    "orderEmail": "buyer@example.com",
    "textReview": "Great lamp, very bright!!",
    "customerName": "Alex Kowalski",
    "starRating": "4",
}


def _images(count=3, start=0):
    return [
        ("images", (f"photo{i}.jpg", make_image_bytes(color=(40 * i, 90, 90)), "image/jpeg"))
        for i in range(start, start + count)
    ]


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_status_reports_collaborators(client, reward_pool):
    reward_pool.add_codes(["A-1", "A-2"])

    body = client.get("/api/ugc/status").json()

    assert body["status"] == "operational"
    assert body["storage"] == ["stub"]
    assert body["rewardPool"] == {"status": "connected", "available": 2, "assigned": 0}
    assert body["email"] == "connected"
    assert body["features"]["maxFiles"] == 3
    assert body["classifier"]["failurePolicy"] == "reject"


def test_status_survives_pool_failure(client, services):
    class BrokenPool:
        def stats(self):
            raise RewardPoolError("database is locked")

    services.reward_pool = BrokenPool()
    assert client.get("/api/ugc/status").json()["rewardPool"] == {"status": "error"}


def test_status_reports_unreachable_mail_server(client, notifier):
    notifier.reachable = False
    assert client.get("/api/ugc/status").json()["email"] == "unreachable"


def test_status_without_notifier(client, services):
    services.notifier = None
    assert client.get("/api/ugc/status").json()["email"] == "missing"


def test_progress_estimate(client):
    assert client.get("/api/ugc/progress", params={"elapsed": 0.7}).json() == {
        "elapsed": 0.7, "percent": 40, "label": "Sending for analysis...",
    }
    assert client.get("/api/ugc/progress", params={"elapsed": 60}).json()["percent"] == 95
    assert client.get("/api/ugc/progress").json()["percent"] == 10


def test_validate_qualifying_submission(client, reward_pool, notifier):
    reward_pool.add_codes(["POOL-API"])

    response = client.post("/api/ugc/validate", data=FORM, files=_images())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["mode"] == "normal"
    assert body["qualified"] is True
    assert body["rewardCode"] == "POOL-API"
    assert body["reviewId"].startswith("rec_")
    assert body["deliveryConfirmed"] is True
    assert body["summary"] == {"total": 3, "accepted": 3, "rejected": 0, "averageScore": 90}
    assert [r["filename"] for r in body["perImageResults"]] == ["photo0.jpg", "photo1.jpg", "photo2.jpg"]
    assert body["orderEcho"]["orderId"] == "ORD-API-1"
    assert len(notifier.sent) == 1


def test_validate_non_qualifying_submission(client, services, classifier):
    files = _images()
    classifier.by_bytes[files[1][1][1]] = PEOPLE_ANSWER

    body = client.post("/api/ugc/validate", data=FORM, files=files).json()

    assert body["qualified"] is False
    assert body["rewardCode"] is None
    assert body["perImageResults"][1]["people"] is True
    assert body["perImageResults"][1]["decision"] == "reject"
    assert services.record_store.get("ORD-API-1").status == OrderStatus.REJECTED


def test_missing_fields_are_reported_together(client, classifier):
    form = dict(FORM, orderNumber="", starRating="great")

    response = client.post("/api/ugc/validate", data=form, files=_images(2))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "invalid_submission"
    assert "Order number is required." in error["details"]
    assert any("Star rating" in d for d in error["details"])
    assert any("Exactly 3 photos" in d for d in error["details"])
    assert classifier.calls == 0


def test_rewarded_order_returns_conflict(client, reward_pool):
    reward_pool.add_codes(["POOL-1"])
    assert client.post("/api/ugc/validate", data=FORM, files=_images()).status_code == 200

    response = client.post("/api/ugc/validate", data=FORM, files=_images(start=3))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "order_already_rewarded"


def test_record_store_failure_returns_503(client, services):
    class BrokenStore:
        def get(self, order_id):
            raise RecordStoreError("disk I/O error")

    services.record_store = BrokenStore()

    response = client.post("/api/ugc/validate", data=FORM, files=_images())

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "record_store_unavailable"
    assert "disk I/O" not in response.text


def test_fix_mode_form_fields(client, services, classifier):
    accepted = [
        {"filename": "a.jpg", "decision": "accept", "score": 80, "people": False, "feedback": "ok"},
        {"filename": "b.jpg", "decision": "accept", "score": 90, "people": False, "feedback": "ok"},
    ]
    form = dict(
        FORM,
        fixMode="true",
        rejectedImages=json.dumps(["c.jpg"]),
        acceptedImages=json.dumps(accepted),
    )

    response = client.post("/api/ugc/validate", data=form, files=_images(1))

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "fix"
    assert [r["filename"] for r in body["perImageResults"]] == ["a.jpg", "b.jpg", "photo0.jpg"]
    assert body["rewardCode"] is None
    assert classifier.calls == 1
    assert services.record_store.get("ORD-API-1") is None


def test_fix_mode_rejects_malformed_json(client):
    form = dict(FORM, fixMode="true", rejectedImages="[not json")

    response = client.post("/api/ugc/validate", data=form, files=_images(1))

    assert response.status_code == 400
    assert response.json()["error"]["details"] == ["rejectedImages must be a JSON list."]


def test_unexpected_error_returns_generic_500(services):
    class ExplodingStore:
        def get(self, order_id):
            raise RuntimeError("unexpected")

    services.record_store = ExplodingStore()
    client = TestClient(create_app(services=services), raise_server_exceptions=False)

    response = client.post("/api/ugc/validate", data=FORM, files=_images())

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "internal_error", "message": "Internal server error"}}


@pytest.fixture
def decoded(monkeypatch):
    """Sizes of the parts handed to the image decoder."""
    sizes = []
    real_build_candidate = app_module.build_candidate

    def recording_build_candidate(filename, data, mime_type=None):
        sizes.append(len(data))
        return real_build_candidate(filename, data, mime_type)

    monkeypatch.setattr(app_module, "build_candidate", recording_build_candidate)
    return sizes


def test_too_many_parts_are_refused_before_reading(client, classifier, decoded):
    response = client.post("/api/ugc/validate", data=FORM, files=_images(10))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "invalid_submission"
    assert error["details"] == ["At most 3 photo(s) may be uploaded, got 10."]
    assert decoded == []
    assert classifier.calls == 0


def test_oversized_part_is_rejected_without_being_decoded(client, services, classifier, decoded):
    services.config.max_file_size = 50_000
    files = _images(2)
    files.append(("images", ("huge.jpg", make_image_bytes() + b"\0" * 200_000, "image/jpeg")))

    response = client.post("/api/ugc/validate", data=FORM, files=files)

    assert response.status_code == 200
    huge = response.json()["perImageResults"][2]
    assert huge["decision"] == "reject"
    assert "too large" in huge["feedback"]
    assert len(decoded) == 2
    assert all(size <= 50_000 for size in decoded)
    assert classifier.calls == 2


def test_fix_mode_part_limit_follows_rejected_count(client, decoded):
    form = dict(FORM, fixMode="true", rejectedImages=json.dumps(["c.jpg"]))

    response = client.post("/api/ugc/validate", data=form, files=_images(2))

    assert response.status_code == 400
    assert response.json()["error"]["details"] == ["At most 1 photo(s) may be uploaded, got 2."]
    assert decoded == []
