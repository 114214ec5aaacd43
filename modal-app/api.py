"""
HTTP API for the Vehicle Listing Scraper.

POST /scrape  - scrape one listing
GET  /health  - liveness check
"""

import functools
import json
import logging
import math
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AnyUrl, BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from browser import render_page
from config import Settings
from constants import (
    ERROR_BODY_TOO_LARGE,
    ERROR_DOMAIN_NOT_ALLOWED,
    ERROR_INTERNAL,
    ERROR_INVALID_JSON,
    ERROR_RATE_LIMITED,
    ERROR_TARGET_REQUIRED,
    MAX_BODY_BYTES,
)
from log import configure_logging
from rate_limiter import SlidingWindowRateLimiter
from scrapers import (
    Renderer,
    is_allowed_domain,
    scrape_with_retry,
    vehicle_to_dict,
    vin_only_vehicle,
)

logger = logging.getLogger(__name__)


class ScrapeRequest(BaseModel):
    """Body of POST /scrape. At least one of url and vin is required."""
    model_config = ConfigDict(str_strip_whitespace=True)

    url: Optional[AnyUrl] = None
    vin: Optional[str] = Field(default=None, min_length=6, max_length=64)

    @model_validator(mode="after")
    def require_url_or_vin(self) -> "ScrapeRequest":
        if self.url is None and not self.vin:
            raise PydanticCustomError("url_or_vin_required", ERROR_TARGET_REQUIRED)
        return self


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def _parse_body(raw: bytes):
    """Empty body counts as an empty object. Raises ValueError on bad JSON."""
    if not raw.strip():
        return {}
    return json.loads(raw)


def _is_json(content_type: str) -> bool:
    """Only application/json bodies are parsed; anything else reads as {}."""
    return content_type.split(";")[0].strip().lower() == "application/json"


async def _read_body(request: Request, limit: int) -> Optional[bytes]:
    """
    Read the request body, stopping once it grows past limit.

    A declared Content-Length over the limit is refused before reading.
    Returns None when the body is too large.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None

    received = bytearray()
    async for chunk in request.stream():
        received += chunk
        if len(received) > limit:
            return None
    return bytes(received)


def create_app(
    settings: Optional[Settings] = None,
    *,
    renderer: Optional[Renderer] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        settings: Service settings (default: read from the environment)
        renderer: Page renderer override; defaults to headless Chromium with
            the configured user agent
        clock: Time source for the rate limiter (tests only)

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    if renderer is None:
        renderer = functools.partial(
            render_page,
            user_agent=settings.user_agent,
            headless=settings.headless,
        )

    limiter_kwargs = {"clock": clock} if clock is not None else {}
    limiter = SlidingWindowRateLimiter(
        settings.rate_limit_window_ms, settings.rate_limit_max, **limiter_kwargs
    )

    app = FastAPI(title="vehicle-listing-scraper", version="1.0.0")

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        decision = limiter.hit(client)
        headers = {
            "RateLimit-Limit": str(decision.limit),
            "RateLimit-Remaining": str(decision.remaining),
            "RateLimit-Reset": str(math.ceil(decision.reset_after_s)),
        }
        if not decision.allowed:
            headers["Retry-After"] = headers["RateLimit-Reset"]
            return error_response(429, ERROR_RATE_LIMITED, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response

    # Added last so it wraps the limiter and 429s still carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}: {exc}")
        return error_response(500, ERROR_INTERNAL)

    @app.post("/scrape")
    async def scrape(request: Request):
        """
        POST /scrape

        Scrape a vehicle listing.

        Request body (application/json, any other content type reads as {}):
        {
            "url": "https://auto.ria.com/uk/auto_toyota_camry_12345678.html",
            "vin": "JTNB11HK5J3000001"
        }

        Returns:
        - 200 with title, brand, model, year, engine_volume, mileage, color,
          price_usd and vin (vin only when no url was given)
        - 400 {"error": ...} on a bad body or a domain outside the allowlist
        - 413 {"error": ...} when the body is over 1 MB
        - 500 {"error": ...} when both scrape attempts failed
        """
        payload = {}
        if _is_json(request.headers.get("content-type", "")):
            raw = await _read_body(request, MAX_BODY_BYTES)
            if raw is None:
                return error_response(413, ERROR_BODY_TOO_LARGE)

            try:
                payload = _parse_body(raw)
            except ValueError:
                return error_response(400, ERROR_INVALID_JSON)

        try:
            body = ScrapeRequest.model_validate(payload)
        except ValidationError as e:
            issues = e.errors()
            message = issues[0]["msg"] if issues else "Invalid payload"
            logger.info(f"[API] Rejected body: {message}")
            return error_response(400, message)

        if body.url is None:
            return vehicle_to_dict(vin_only_vehicle(body.vin))

        url = str(body.url)
        if not is_allowed_domain(url, settings.allowed_domains):
            logger.info(f"[API] Domain not allowed: {url}")
            return error_response(400, ERROR_DOMAIN_NOT_ALLOWED)

        result = await scrape_with_retry(
            url,
            body.vin,
            renderer=renderer,
            attempts=settings.scrape_attempts,
            timeout_s=settings.scrape_timeout_s,
        )

        if not result.success:
            return error_response(500, result.error_message)

        return vehicle_to_dict(result.data)

    @app.get("/health")
    async def health() -> dict:
        """
        GET /health

        Health check endpoint.
        """
        return {"ok": True}

    return app


def main() -> None:
    """Run the API with uvicorn on 0.0.0.0:$PORT."""
    import uvicorn

    settings = Settings.from_env()
    app = create_app(settings)
    logger.info(f"Scraper running on port {settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
