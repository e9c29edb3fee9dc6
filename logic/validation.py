"""Pydantic schemas and helpers for validating rating payloads."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from models.errors import PayloadValidationError, ResponseFormatError
from models.rating_record import RatingFields

# Documented request limit of the rating endpoint, measured on decoded bytes.
MAX_PAYLOAD_BYTES = int(2.5 * 1024 * 1024)
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}


class RateOutfitRequest(BaseModel):
    """Body of ``POST /api/rate-outfit``."""

    image: str = Field(min_length=1)
    mimeType: str = "image/jpeg"

    @field_validator("image")
    @classmethod
    def _reject_data_prefix(cls, image: str) -> str:
        if image.startswith("data:"):
            raise ValueError("image must be raw base64 without a data: prefix")
        return image

    @field_validator("mimeType")
    @classmethod
    def _known_mime_type(cls, mime_type: str) -> str:
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValueError(f"unsupported mimeType {mime_type}")
        return mime_type


class RatingPayload(BaseModel):
    """Rating object the stylist model must return."""

    outfit_vibe: str = Field(min_length=1)
    look_score: float = Field(ge=0.0, le=10.0)
    look_comment: str = ""
    color_score: float = Field(ge=0.0, le=10.0)
    color_comment: str = ""
    suggestions: List[str] = []
    observations: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_suggestion(cls, data: Any) -> Any:
        # Older prompts returned a single "suggestion" string.
        if isinstance(data, dict) and "suggestions" not in data and "suggestion" in data:
            data = {**data, "suggestions": data["suggestion"]}
        return data

    @field_validator("suggestions", mode="before")
    @classmethod
    def _coerce_suggestions(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    def to_fields(self) -> RatingFields:
        return RatingFields(**self.model_dump())


class RateOutfitResponse(BaseModel):
    """Envelope returned by the rating endpoint."""

    success: bool
    rating: Optional[RatingPayload] = None
    error: Optional[str] = None


def decoded_size(image_b64: str) -> int:
    """Byte length of a base64 payload without decoding it."""

    stripped = image_b64.strip()
    padding = len(stripped) - len(stripped.rstrip("="))
    return (len(stripped) * 3) // 4 - padding


def ensure_payload_size(image_b64: str, limit: int = MAX_PAYLOAD_BYTES) -> None:
    size = decoded_size(image_b64)
    if size > limit:
        raise PayloadValidationError(f"image payload is {size} bytes, limit is {limit}")


def decode_image_payload(image_b64: str) -> bytes:
    try:
        return base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise PayloadValidationError("image is not valid base64") from exc


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first well-formed JSON object found in ``text``.

    Models sometimes wrap the object in prose or code fences, so every ``{`` is
    tried as a starting point until one decodes to a dict.
    """

    if text is None:
        raise ResponseFormatError("empty model response")
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    raise ResponseFormatError("no JSON object found in model response")


def parse_rating(payload: Dict[str, Any] | str) -> RatingFields:
    """Validate a rating object (or text containing one) into ``RatingFields``."""

    if isinstance(payload, str):
        payload = extract_json_object(payload)
    try:
        return RatingPayload.model_validate(payload).to_fields()
    except ValidationError as exc:
        raise ResponseFormatError(f"rating object failed schema checks: {exc.errors()}") from exc


__all__ = [
    "MAX_PAYLOAD_BYTES",
    "RateOutfitRequest",
    "RateOutfitResponse",
    "RatingPayload",
    "decode_image_payload",
    "decoded_size",
    "ensure_payload_size",
    "extract_json_object",
    "parse_rating",
]
