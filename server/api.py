"""FastAPI server exposing the outfit rating endpoint."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from logic.validation import RateOutfitRequest, ensure_payload_size
from models.errors import PayloadValidationError, ResponseFormatError, TransientNetworkError
from rater_app.config import RaterConfig
from rater_app.logging_config import configure_logging, get_logger, log_event, operation_context
from tools.gemini_stylist import GeminiStylist
from tools.identity import IdentityProvider, SupabaseIdentityProvider

configure_logging()
LOGGER = get_logger(__name__)

app = FastAPI(title="Outfit Rater", version="0.1.0")


@lru_cache(maxsize=1)
def get_config() -> RaterConfig:
    return RaterConfig.from_env()


@lru_cache(maxsize=1)
def get_stylist() -> GeminiStylist:
    config = get_config()
    return GeminiStylist(model_name=config.model, api_key=config.google_api_key)


@lru_cache(maxsize=1)
def get_token_verifier() -> Optional[IdentityProvider]:
    """Supabase verifier when configured; otherwise only presence is checked."""

    config = get_config()
    if config.supabase_url and config.supabase_anon_key:
        return SupabaseIdentityProvider(url=config.supabase_url, key=config.supabase_anon_key)
    return None


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.exception_handler(RequestValidationError)
async def _invalid_request(_: Request, exc: RequestValidationError) -> JSONResponse:
    return _failure(400, f"invalid request body: {exc.errors()[0].get('msg', 'validation error')}")


@app.get("/healthz")
async def healthcheck() -> dict:
    """Lightweight readiness probe."""

    config = get_config()
    return {
        "status": "ok",
        "service": "outfit-rater",
        "environment": config.environment or "local",
        "model": config.model,
    }


@app.post("/api/rate-outfit")
def rate_outfit(
    request: RateOutfitRequest,
    authorization: Optional[str] = Header(default=None),
    stylist: GeminiStylist = Depends(get_stylist),
    verifier: Optional[IdentityProvider] = Depends(get_token_verifier),
):
    """Critique one outfit photo and return the structured rating."""

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return _failure(401, "missing bearer credential")
    if verifier is not None and verifier.verify_token(token.strip()) is None:
        return _failure(401, "invalid or expired credential")

    with operation_context("api:rate_outfit"):
        try:
            ensure_payload_size(request.image)
        except PayloadValidationError as exc:
            return _failure(413, str(exc))

        try:
            rating = stylist.rate(request.image, request.mimeType)
        except PayloadValidationError as exc:
            return _failure(400, str(exc))
        except TransientNetworkError as exc:
            log_event(LOGGER, logging.ERROR, "stylist_unavailable", error=str(exc))
            return _failure(502, "stylist model unavailable, try again")
        except ResponseFormatError as exc:
            log_event(LOGGER, logging.ERROR, "stylist_bad_response", error=str(exc))
            return _failure(502, "stylist model returned an unreadable rating")

        log_event(LOGGER, logging.INFO, "rating_served", outfit_vibe=rating.outfit_vibe)
        return {"success": True, "rating": rating.to_dict()}


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=8080, reload=False)
