"""FastAPI relay in front of the image generation and storage providers.

Endpoints:
- GET  /                liveness text
- GET  /health
- POST /generate-image  { "prompt": "...", "width"?: int, "height"?: int }
- POST /upload-image    multipart field "image"
- WS   /ws              realtime request-image channel
"""
from __future__ import annotations
import logging
from typing import Any

from fastapi import Depends, FastAPI, File, Request, Response, UploadFile, WebSocket
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from image_relay.abuse_guard import RATE_LIMITED, AbuseGuard, FixedWindowGuard
from image_relay.common.config import Settings, load_settings
from image_relay.common.errors import ProviderError, RateLimitError, ValidationError
from image_relay.common.logging_setup import setup_logging
from image_relay.dispatcher import PROMPT_REQUIRED, GenerationDispatcher, build_request
from image_relay.providers.cloudinary import CloudinaryUploader
from image_relay.providers.stability import StabilityClient
from image_relay.serve.realtime import RealtimeChannel

LOGGER = logging.getLogger("imagerelay.app")

LIVENESS_TEXT = "AI Image Generator Backend is Running!"
NO_FILE = "No file uploaded!"
FILE_TOO_LARGE = "File too large!"
UPLOAD_FAILED = "Image upload failed"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}

class GenerateIn(BaseModel):
    # Loose types: invalid dimensions fall back to defaults, a bad prompt is a 400.
    prompt: Any = None
    width: Any = None
    height: Any = None

def client_address(request: Request) -> str:
    settings: Settings = request.app.state.settings
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"

async def enforce_rate_limit(request: Request, response: Response) -> None:
    """Count a generation request against the caller's window."""
    guard: AbuseGuard = request.app.state.guard
    address = client_address(request)
    decision = guard.hit(address)
    if not decision.allowed:
        LOGGER.warning("Rate limit exceeded for %s", address)
        raise RateLimitError(RATE_LIMITED, retry_after=decision.reset_after, limit=decision.limit)
    response.headers.update({
        "RateLimit-Limit": str(decision.limit),
        "RateLimit-Remaining": str(decision.remaining),
        "RateLimit-Reset": str(decision.reset_after),
    })

def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message}, headers=headers)

def create_app(
    settings: Settings | None = None,
    dispatcher: GenerationDispatcher | None = None,
    guard: AbuseGuard | None = None,
    uploader: CloudinaryUploader | None = None,
) -> FastAPI:
    """Build the relay app; collaborators default to ones derived from settings."""
    settings = settings or load_settings()
    if dispatcher is None:
        if not settings.stability_api_key:
            LOGGER.warning("STABLE_DIFFUSION_API_KEY is not set; generation calls will be rejected upstream")
        dispatcher = GenerationDispatcher(
            StabilityClient(
                settings.stability_api_key,
                base_url=settings.stability_api_url,
                timeout=settings.provider_timeout,
            )
        )
    if guard is None:
        guard = FixedWindowGuard(settings.rate_limit_max, settings.rate_limit_window_seconds)
    if uploader is None:
        uploader = CloudinaryUploader(
            settings.cloud_name,
            settings.cloud_api_key,
            settings.cloud_api_secret,
            folder=settings.upload_folder,
            fmt=settings.upload_format,
        )

    app = FastAPI(title="Image Relay")
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.guard = guard
    app.state.uploader = uploader
    app.state.realtime = RealtimeChannel(dispatcher)

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RateLimitError)
    async def _rate_limited(request: Request, exc: RateLimitError) -> JSONResponse:
        return _error(
            429,
            str(exc),
            headers={
                "Retry-After": str(exc.retry_after),
                "RateLimit-Limit": str(exc.limit),
                "RateLimit-Remaining": "0",
                "RateLimit-Reset": str(exc.retry_after),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError):
        if request.url.path == "/generate-image":
            return _error(400, PROMPT_REQUIRED)
        return await request_validation_exception_handler(request, exc)

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return LIVENESS_TEXT

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "provider": "stability"}

    @app.post("/generate-image", dependencies=[Depends(enforce_rate_limit)])
    async def generate_image(body: GenerateIn, request: Request, response: Response) -> dict[str, Any]:
        gen_request = build_request(body.prompt, body.width, body.height)
        result = await request.app.state.dispatcher.dispatch(gen_request)
        if not result.ok:
            response.status_code = 500
        return result.to_payload()

    @app.post("/upload-image")
    async def upload_image(request: Request, image: UploadFile | None = File(None)) -> Any:
        if image is None or not image.filename:
            raise ValidationError(NO_FILE)
        limit = request.app.state.settings.upload_max_bytes
        content = await image.read(limit + 1)
        if len(content) > limit:
            raise ValidationError(FILE_TOO_LARGE)
        try:
            url = await request.app.state.uploader.upload(image.filename, content, image.content_type)
        except ProviderError as e:
            LOGGER.error("Image upload failed: %s | detail=%s", e, e.detail)
            return JSONResponse(
                status_code=502,
                content={"status": "error", "message": UPLOAD_FAILED, "error": e.detail},
            )
        return {"status": "success", "url": url}

    @app.websocket("/ws")
    async def realtime(websocket: WebSocket) -> None:
        await websocket.app.state.realtime.serve(websocket)

    return app

SETTINGS = load_settings()
# serve.server.main configures logging before uvicorn imports this module
if not logging.getLogger().handlers:
    setup_logging(SETTINGS.log_level, SETTINGS.log_file or None)
app = create_app(SETTINGS)
