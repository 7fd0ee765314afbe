"""Groq Cloud vision client, used as the fallback classifier."""
import logging
from typing import Optional, Dict, Any
import base64
import re
import time

from groq import Groq

from ugc_validator.errors import ClassifierError
from ugc_validator.config.rules import CLASSIFICATION_PROMPT, ACCEPTANCE_THRESHOLD
from ugc_validator.utils.circuit_breaker import CircuitBreaker
from ugc_validator.utils.concurrency import ConcurrencyGuard, SlotTimeoutError, GROQ_MAX_CONCURRENT
from ugc_validator.validators.decision_normalizer import parse_classifier_text

logger = logging.getLogger(__name__)


def _status_code_of(error: Exception) -> Optional[int]:
    """HTTP status carried by a Groq SDK error, or one mentioned in its message."""
    status = getattr(error, 'status_code', None)
    if isinstance(status, int):
        return status
    match = re.search(r'\b(400|401|403|429|500|503)\b', str(error))
    return int(match.group(1)) if match else None


class GroqClient:
    """Client for Groq Cloud vision models."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        acceptance_threshold: int = ACCEPTANCE_THRESHOLD
    ):
        """Initialize Groq client. Without an API key the client stays unavailable."""
        self.image_model = "meta-llama/llama-4-scout-17b-16e-instruct"
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.acceptance_threshold = acceptance_threshold
        self.circuit_breaker = CircuitBreaker(name="groq")
        self.concurrency_guard = ConcurrencyGuard("groq", GROQ_MAX_CONCURRENT)

        self.api_key = api_key
        if not self.api_key:
            logger.warning("Groq API key not provided. Set GROQ_API_KEY environment variable.")
            self.client = None
            return

        # SDK-level retries are disabled; retries happen here so the breaker sees every failure
        self.client = Groq(api_key=self.api_key, timeout=timeout_seconds, max_retries=0)
        logger.info(f"Groq client initialized. Image model: {self.image_model}")

    @property
    def available(self) -> bool:
        return self.client is not None

    def _call_groq(self, prompt: str, data: bytes, mime_type: str, deadline: float) -> str:
        """
        Send one image plus prompt and return the answer text. Raises ClassifierError.

        Slot waits, calls and backoff share the budget ending at `deadline`
        (time.monotonic()).
        """
        if not self.client:
            raise ClassifierError("Groq client not configured", provider="groq")

        if not self.circuit_breaker.can_proceed():
            raise ClassifierError("Circuit breaker OPEN: Groq API temporarily unavailable", provider="groq")

        image_url = f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                if attempt == 0:
                    self.circuit_breaker.record_not_attempted()
                logger.warning(f"Groq time budget spent after {attempt} attempt(s)")
                last_error = last_error or TimeoutError("Groq time budget spent")
                break

            if attempt > 0 and not self.circuit_breaker.can_proceed():
                logger.warning("Circuit breaker OPEN during Groq retry - aborting")
                break

            try:
                with self.concurrency_guard.slot(timeout=remaining):
                    completion = self.client.chat.completions.create(
                        model=self.image_model,
                        messages=[
                            {
                                "role": "user",
                                "content": [
                                    {"type": "text", "text": prompt},
                                    {"type": "image_url", "image_url": {"url": image_url}},
                                ],
                            }
                        ],
                        temperature=0.2,
                        max_completion_tokens=256,
                        stream=False,
                        timeout=max(1.0, deadline - time.monotonic()),
                    )

                if completion.choices and completion.choices[0].message.content:
                    self.circuit_breaker.record_success()
                    return completion.choices[0].message.content.strip()

                last_error = ClassifierError("Groq returned an empty answer", provider="groq")
                self.circuit_breaker.record_error()

            except SlotTimeoutError as e:
                self.circuit_breaker.record_not_attempted()
                last_error = e
                logger.warning(f"Groq call not attempted: {e}")
                break

            except Exception as e:
                last_error = e
                self.circuit_breaker.record_error()
                status = _status_code_of(e)
                if status in (400, 401, 403):
                    logger.warning(f"Groq API call failed with {status}, not retrying: {e}")
                    break
                delay = min(2 * (2 ** attempt), 10) if status == 429 else 1
                logger.warning(
                    f"Groq API call failed (attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    time.sleep(min(delay, max(0.0, deadline - time.monotonic())))

        raise ClassifierError(
            f"Groq classification failed: {last_error}",
            provider="groq",
            status_code=_status_code_of(last_error) if last_error else None,
        )

    def classify_image(self, data: bytes, mime_type: str, deadline: Optional[float] = None) -> Dict[str, Any]:
        """
        Classify one review photo.

        Returns dict with keys: contains_people, score, decision, feedback.
        `deadline` (time.monotonic()) lets a caller share its remaining budget;
        by default the call gets `timeout_seconds`. Raises ClassifierError when
        Groq is unavailable or the answer is unusable.
        """
        if deadline is None:
            deadline = time.monotonic() + self.timeout_seconds
        prompt = CLASSIFICATION_PROMPT.format(threshold=self.acceptance_threshold)
        response = self._call_groq(prompt, data, mime_type, deadline)
        return parse_classifier_text(response)
