import threading
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from ugc_validator.errors import ClassifierError
from ugc_validator.utils.circuit_breaker import CircuitState
from ugc_validator.utils.concurrency import SlotTimeoutError
from ugc_validator.validators import gemini_client as gemini_module
from ugc_validator.validators import groq_client as groq_module
from ugc_validator.validators.gemini_client import GeminiClient
from ugc_validator.validators.groq_client import GroqClient

from conftest import make_image_bytes

GOOD_ANSWER = "PEOPLE: NO\nSCORE: 88\nDECISION: ACCEPT\nFEEDBACK: Clear product photo."


class FakeGenaiModels:
    def __init__(self, answers, delay=0.0):
        self.answers = list(answers)
        self.delay = delay
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append(model)
        if self.delay:
            threading.Event().wait(self.delay)
        answer = self.answers.pop(0) if self.answers else GOOD_ANSWER
        if isinstance(answer, Exception):
            raise answer
        return SimpleNamespace(text=answer)


class FakeGroqCompletions:
    def __init__(self, answers):
        self.answers = list(answers)
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        answer = self.answers.pop(0) if self.answers else GOOD_ANSWER
        if isinstance(answer, Exception):
            raise answer
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=answer))])


class StatusError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code
        self.status_code = code


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(gemini_module.time, "sleep", lambda _: None)
    monkeypatch.setattr(groq_module.time, "sleep", lambda _: None)


def _gemini(answers, groq=None) -> GeminiClient:
    client = GeminiClient(api_key=None, groq_client=groq, max_retries=3)
    client.client = SimpleNamespace(models=FakeGenaiModels(answers))
    return client


def _groq(answers) -> GroqClient:
    client = GroqClient(api_key=None, max_retries=2)
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=FakeGroqCompletions(answers)))
    return client


def test_gemini_answer_is_parsed():
    result = _gemini([GOOD_ANSWER]).classify_image(make_image_bytes(), "image/jpeg")
    assert result == {
        "contains_people": False,
        "score": 88.0,
        "decision": "accept",
        "feedback": "Clear product photo.",
    }


def test_gemini_retries_transient_errors():
    client = _gemini([StatusError("server error", 503), GOOD_ANSWER])
    assert client.classify_image(make_image_bytes(), "image/jpeg")["score"] == 88.0
    assert len(client.client.models.calls) == 2


def test_gemini_results_are_cached_by_content():
    client = _gemini([GOOD_ANSWER])
    data = make_image_bytes()
    client.classify_image(data, "image/jpeg")
    client.classify_image(data, "image/jpeg")
    assert len(client.client.models.calls) == 1


def test_falls_back_to_groq_after_gemini_fails():
    groq = _groq(["PEOPLE: YES\nSCORE: 40\nDECISION: REJECT\nFEEDBACK: A person is visible."])
    client = _gemini([StatusError("bad key", 401)], groq=groq)

    result = client.classify_image(make_image_bytes(), "image/png")

    assert result["contains_people"] is True
    assert len(client.client.models.calls) == 1
    content = groq.client.chat.completions.requests[0]["messages"][0]["content"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_unparsable_gemini_answer_also_falls_back():
    groq = _groq([GOOD_ANSWER])
    client = _gemini(["Sorry, I can't rate this."], groq=groq)
    assert client.classify_image(make_image_bytes(), "image/jpeg")["score"] == 88.0


def test_all_providers_failing_raises_classifier_error_with_status():
    groq = _groq([StatusError("rate limited", 429), StatusError("rate limited", 429)])
    client = _gemini([StatusError("down", 503)] * 3, groq=groq)

    with pytest.raises(ClassifierError) as exc_info:
        client.classify_image(make_image_bytes(), "image/jpeg")
    assert exc_info.value.provider == "groq"
    assert exc_info.value.status_code == 429


def test_no_provider_configured_raises():
    client = GeminiClient(api_key=None, groq_client=GroqClient(api_key=None))
    assert client.available is False
    with pytest.raises(ClassifierError):
        client.classify_image(make_image_bytes(), "image/jpeg")


def test_open_circuit_skips_gemini():
    groq = _groq([GOOD_ANSWER])
    client = _gemini([], groq=groq)
    for _ in range(5):
        client.circuit_breaker.record_error()

    client.classify_image(make_image_bytes(), "image/jpeg")
    assert client.client.models.calls == []


class BusyGuard:
    @contextmanager
    def slot(self, timeout=None):
        raise SlotTimeoutError("No free gemini slot within 0.1s")
        yield


def test_slot_contention_does_not_open_the_circuit():
    client = _gemini([])
    client.concurrency_guard = BusyGuard()

    for _ in range(10):
        with pytest.raises(ClassifierError):
            client.classify_image(make_image_bytes(), "image/jpeg")

    assert client.circuit_breaker.state == CircuitState.CLOSED
    assert client.client.models.calls == []


def test_retries_and_fallback_share_one_time_budget():
    groq = _groq([GOOD_ANSWER])
    client = _gemini([StatusError("down", 503)] * 3, groq=groq)
    client.client.models.delay = 0.15
    client.timeout_seconds = 0.2

    with pytest.raises(ClassifierError):
        client.classify_image(make_image_bytes(), "image/jpeg")

    assert len(client.client.models.calls) == 2
    assert groq.client.chat.completions.requests == []


def test_groq_call_gets_remaining_budget_as_timeout():
    groq = _groq([GOOD_ANSWER])
    groq.classify_image(make_image_bytes(), "image/jpeg")
    assert 0 < groq.client.chat.completions.requests[0]["timeout"] <= groq.timeout_seconds
