"""Gemini vision client for review photo classification. Falls back to Groq on failure."""
import logging
from typing import Optional, Dict, Any
import re
import time
import threading

from google import genai
from google.genai import types

from ugc_validator.errors import ClassifierError
from ugc_validator.config.rules import CLASSIFICATION_PROMPT, ACCEPTANCE_THRESHOLD
from ugc_validator.utils.circuit_breaker import CircuitBreaker
from ugc_validator.utils.concurrency import ConcurrencyGuard, SlotTimeoutError, GEMINI_MAX_CONCURRENT
from ugc_validator.utils.hashing import compute_sha256
from ugc_validator.validators.decision_normalizer import parse_classifier_text
from ugc_validator.validators.groq_client import GroqClient

logger = logging.getLogger(__name__)

# Bounded in-memory cache of parsed answers, keyed by model and image content hash
MAX_CACHE_ENTRIES = 512


def _status_code_of(error: Exception) -> Optional[int]:
    """HTTP status carried by a google-genai error, or one mentioned in its message."""
    for attr in ('code', 'status_code'):
        status = getattr(error, attr, None)
        if isinstance(status, int):
            return status
    match = re.search(r'\b(400|401|403|429|500|503)\b', str(error))
    return int(match.group(1)) if match else None


class GeminiClient:
    """Vision classifier backed by Gemini, with an optional Groq fallback."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        groq_client: Optional[GroqClient] = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        acceptance_threshold: int = ACCEPTANCE_THRESHOLD
    ):
        """Initialize Gemini client. Without an API key only the Groq fallback is used."""
        self.vision_model = "gemini-2.5-flash"
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.acceptance_threshold = acceptance_threshold
        self.groq_client = groq_client
        self.circuit_breaker = CircuitBreaker(name="gemini")
        self.concurrency_guard = ConcurrencyGuard("gemini", GEMINI_MAX_CONCURRENT)
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._cache_lock = threading.Lock()

        self.api_key = api_key
        if not self.api_key:
            logger.warning("Gemini API key not provided. Set GEMINI_API_KEY environment variable.")
            self.client = None
        else:
            self.client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
            )
            logger.info(f"Gemini client initialized. Vision model: {self.vision_model}")

        if self.groq_client and self.groq_client.available:
            logger.info(f"Groq fallback client attached. Image model: {self.groq_client.image_model}")

    @property
    def available(self) -> bool:
        return self.client is not None or bool(self.groq_client and self.groq_client.available)

    def _cache_get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._cache_lock:
            cached = self._cache.get(key)
            return dict(cached) if cached else None

    def _cache_put(self, key: str, value: Dict[str, Any]):
        with self._cache_lock:
            if len(self._cache) >= MAX_CACHE_ENTRIES:
                self._cache.pop(next(iter(self._cache)))
            self._cache[key] = dict(value)

    def _extract_retry_delay(self, error_str: str) -> Optional[float]:
        """Extract retry delay from error message."""
        patterns = [
            r'retry_delay\s*\{\s*seconds:\s*(\d+)',
            r'retry in (\d+\.?\d*)\s*s',
            r'retry after (\d+\.?\d*)\s*s',
        ]
        for pattern in patterns:
            match = re.search(pattern, error_str, re.IGNORECASE)
            if match:
                try:
                    return float(match.group(1))
                except (ValueError, IndexError):
                    continue
        return None

    def _call_gemini(self, prompt: str, data: bytes, mime_type: str, deadline: float) -> str:
        """
        Send one image plus prompt to Gemini with retries.

        Slot waits, calls and backoff all come out of the same time budget,
        which ends at `deadline` (time.monotonic()). Returns the answer text.
        Raises ClassifierError once retries or time are spent, the circuit is
        open, or the request is rejected outright (400/401/403).
        """
        if not self.client:
            raise ClassifierError("Gemini client not configured", provider="gemini")

        if not self.circuit_breaker.can_proceed():
            raise ClassifierError("Circuit breaker OPEN: Gemini API temporarily unavailable", provider="gemini")

        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                if attempt == 0:
                    self.circuit_breaker.record_not_attempted()
                logger.warning(f"Gemini time budget spent after {attempt} attempt(s)")
                last_error = last_error or TimeoutError("Gemini time budget spent")
                break

            if attempt > 0 and not self.circuit_breaker.can_proceed():
                logger.warning("Circuit breaker OPEN during retry - aborting Gemini retries")
                break

            try:
                with self.concurrency_guard.slot(timeout=remaining):
                    call_timeout = max(1.0, deadline - time.monotonic())
                    parts = [
                        types.Part.from_text(text=prompt),
                        types.Part.from_bytes(data=data, mime_type=mime_type),
                    ]
                    response = self.client.models.generate_content(
                        model=self.vision_model,
                        contents=[types.Content(role="user", parts=parts)],
                        config=types.GenerateContentConfig(
                            temperature=0.2,
                            http_options=types.HttpOptions(timeout=int(call_timeout * 1000)),
                        ),
                    )

                response_text = (getattr(response, 'text', None) or "").strip()
                if response_text:
                    self.circuit_breaker.record_success()
                    return response_text

                last_error = ClassifierError("Gemini returned an empty answer", provider="gemini")
                self.circuit_breaker.record_error()
                logger.warning(f"Gemini returned an empty answer (attempt {attempt + 1}/{self.max_retries})")

            except SlotTimeoutError as e:
                # Local contention, the provider was never asked
                self.circuit_breaker.record_not_attempted()
                last_error = e
                logger.warning(f"Gemini call not attempted: {e}")
                break

            except Exception as e:
                last_error = e
                self.circuit_breaker.record_error()
                status = _status_code_of(e)

                if status in (400, 401, 403):
                    logger.warning(f"Gemini API call failed with {status}, not retrying: {e}")
                    break

                if status == 429:
                    retry_delay = self._extract_retry_delay(str(e))
                    delay = min(retry_delay or 2.0 * (2 ** attempt), 10.0)
                    logger.warning(
                        f"Gemini rate limit hit. Waiting {delay:.1f}s before retry "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                else:
                    delay = 1.0
                    logger.warning(f"Gemini API call failed (attempt {attempt + 1}/{self.max_retries}): {e}")

                if attempt < self.max_retries - 1:
                    time.sleep(min(delay, max(0.0, deadline - time.monotonic())))

        raise ClassifierError(
            f"Gemini classification failed: {last_error}",
            provider="gemini",
            status_code=_status_code_of(last_error) if last_error else None,
        )

    def classify_image(self, data: bytes, mime_type: str) -> Dict[str, Any]:
        """
        Classify one review photo.

        Returns dict with keys: contains_people, score, decision, feedback.
        Tries Gemini first and Groq only after Gemini has failed, both within
        one budget of `timeout_seconds`. Raises ClassifierError when no
        provider produced a usable answer.
        """
        prompt = CLASSIFICATION_PROMPT.format(threshold=self.acceptance_threshold)
        cache_key = f"{self.vision_model}:{compute_sha256(data)}"

        cached = self._cache_get(cache_key)
        if cached:
            logger.debug(f"Cache hit for image analysis (model: {self.vision_model})")
            return cached

        deadline = time.monotonic() + self.timeout_seconds
        gemini_error: Optional[ClassifierError] = None
        if self.client:
            try:
                result = parse_classifier_text(self._call_gemini(prompt, data, mime_type, deadline))
                self._cache_put(cache_key, result)
                return result
            except ClassifierError as e:
                gemini_error = e
                logger.warning(f"Gemini image analysis failed, trying Groq fallback: {e}")

        if self.groq_client and self.groq_client.available:
            # Groq answers are not cached under the Gemini key
            return self.groq_client.classify_image(data, mime_type, deadline=deadline)

        if gemini_error:
            raise gemini_error
        raise ClassifierError("No vision classifier configured (set GEMINI_API_KEY or GROQ_API_KEY)")
