"""HTTP client for the outfit rating endpoint."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError

from logic.retry import RetryPolicy
from logic.validation import RateOutfitResponse, ensure_payload_size, extract_json_object
from models.errors import (
    PayloadValidationError,
    ResponseFormatError,
    TransientNetworkError,
    Unauthorized,
)
from models.rating_record import RatingFields
from tools.image_normalizer import NormalizedImage
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 45.0

# requests only bounds each socket operation, so whole exchanges run here and
# the caller stops waiting at the deadline.
_HTTP_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="rating-call")


class RemoteRatingClient:
    """Send a normalized photo to the rating endpoint and parse the critique.

    One call to :meth:`rate` may issue several HTTP attempts, all bounded by a
    single wall-clock deadline of ``timeout_seconds``. Authentication,
    validation and format failures are never retried.
    """

    def __init__(
        self,
        endpoint_url: str,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay=1.0)
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._clock = clock

    @instrument_call("rate_outfit")
    def rate(self, image: NormalizedImage, access_token: Optional[str]) -> RatingFields:
        """Return the model's rating for ``image``.

        Raises:
            Unauthorized: no credential, or the endpoint answered 401/403.
            PayloadValidationError: payload too large or rejected with a 4xx.
            TransientNetworkError: attempts exhausted on timeouts, connection
                errors or 5xx responses, or the deadline passed.
            ResponseFormatError: the body holds no valid rating object.
        """

        if not access_token or not access_token.strip():
            raise Unauthorized("a signed-in session is required to rate an outfit")
        ensure_payload_size(image.base64)

        body = {"image": image.base64, "mimeType": image.mime_type}
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        deadline = self._clock() + self.timeout_seconds
        payload = self.retry_policy.run(
            lambda: self._attempt(body, headers, deadline),
            deadline=deadline,
            operation="rate_outfit",
        )
        return self._parse_envelope(payload)

    def _attempt(self, body: Dict[str, Any], headers: Dict[str, str], deadline: float) -> Any:
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise TransientNetworkError("rating request exceeded its time budget")

        inflight: List[requests.Response] = []
        future = _HTTP_EXECUTOR.submit(self._exchange, body, headers, remaining, inflight)
        try:
            status, content = future.result(timeout=remaining)
        except FutureTimeoutError as exc:
            future.cancel()
            for response in inflight:
                response.close()
            LOGGER.warning("Rating request abandoned at deadline", extra={"budget_seconds": self.timeout_seconds})
            raise TransientNetworkError(
                f"rating request exceeded its {self.timeout_seconds:g}s time budget"
            ) from exc

        if status in (401, 403):
            raise Unauthorized(self._error_message(content) or f"HTTP {status}")
        if status == 413:
            raise PayloadValidationError("image payload too large for the rating endpoint")
        if status >= 500:
            LOGGER.warning("Rating endpoint server error", extra={"status_code": status})
            raise TransientNetworkError(self._error_message(content) or f"HTTP {status}")
        if status >= 400:
            raise PayloadValidationError(self._error_message(content) or f"HTTP {status}")

        try:
            return json.loads(content)
        except ValueError:
            return extract_json_object(content.decode("utf-8", errors="replace"))

    def _exchange(
        self,
        body: Dict[str, Any],
        headers: Dict[str, str],
        timeout: float,
        inflight: List[requests.Response],
    ) -> Tuple[int, bytes]:
        """POST and read the full body; runs on the executor."""

        try:
            response = self.session.post(
                self.endpoint_url, json=body, headers=headers, timeout=timeout, stream=True
            )
        except requests.Timeout as exc:
            raise TransientNetworkError(f"rating request timed out: {exc}") from exc
        except requests.RequestException as exc:
            raise TransientNetworkError(f"network error calling rating endpoint: {exc}") from exc

        inflight.append(response)
        try:
            return response.status_code, response.content
        except requests.RequestException as exc:
            raise TransientNetworkError(f"rating response interrupted: {exc}") from exc
        finally:
            response.close()

    @staticmethod
    def _error_message(content: bytes) -> Optional[str]:
        try:
            data = json.loads(content)
        except ValueError:
            return None
        if isinstance(data, dict):
            return data.get("error")
        return None

    @staticmethod
    def _parse_envelope(payload: Any) -> RatingFields:
        try:
            envelope = RateOutfitResponse.model_validate(payload)
        except ValidationError as exc:
            raise ResponseFormatError(f"rating endpoint returned a malformed envelope: {exc.errors()}") from exc
        if not envelope.success:
            raise ResponseFormatError(envelope.error or "rating endpoint reported failure")
        if envelope.rating is None:
            raise ResponseFormatError("rating endpoint returned no rating")
        return envelope.rating.to_fields()


__all__ = ["RemoteRatingClient", "DEFAULT_TIMEOUT_SECONDS"]
