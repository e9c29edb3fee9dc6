"""Gemini-backed stylist that critiques an outfit photo."""

from __future__ import annotations

import logging
from typing import Any

from google import generativeai as genai

from logic.stylist_prompt import stylist_instruction
from logic.validation import decode_image_payload, parse_rating
from models.errors import ResponseFormatError, TransientNetworkError
from models.rating_record import RatingFields
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)


class GeminiStylist:
    """Send an inline image plus the stylist prompt to a Gemini model."""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        model: Any = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        if model is None:
            if not api_key:
                raise ValueError("a Gemini API key is required")
            genai.configure(api_key=api_key)
            model = genai.GenerativeModel(model_name)
        self.model = model

    @instrument_call("gemini_generate_content")
    def rate(self, image_b64: str, mime_type: str) -> RatingFields:
        """Return the model's critique of the image.

        Raises:
            TransientNetworkError: the model call itself failed.
            ResponseFormatError: the model answered without a valid rating object.
        """

        image_bytes = decode_image_payload(image_b64)
        try:
            response = self.model.generate_content(
                [stylist_instruction(), {"mime_type": mime_type, "data": image_bytes}],
                generation_config={"response_mime_type": "application/json"},
                request_options={"timeout": self.timeout_seconds},
            )
        except Exception as exc:
            LOGGER.error("Gemini request failed", extra={"model": self.model_name}, exc_info=exc)
            raise TransientNetworkError(f"stylist model call failed: {exc}") from exc

        text = self._response_text(response)
        if not text:
            raise ResponseFormatError("stylist model returned no content")
        return parse_rating(text)

    @staticmethod
    def _response_text(response: Any) -> str:
        try:
            return response.text
        except (ValueError, AttributeError):
            # .text raises when the candidate was blocked or has no parts.
            candidates = getattr(response, "candidates", None) or []
            for candidate in candidates:
                parts = getattr(getattr(candidate, "content", None), "parts", None) or []
                for part in parts:
                    if getattr(part, "text", None):
                        return part.text
            return ""


__all__ = ["GeminiStylist"]
