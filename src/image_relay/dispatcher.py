"""Generation dispatcher shared by the HTTP and realtime transports.

Validates input, calls the provider once and normalizes the outcome into a
GenerationResult. It knows nothing about the transport that called it.
"""
from __future__ import annotations
import logging
from typing import Any, Protocol

from image_relay.common.errors import ProviderError, ValidationError
from image_relay.common.schema import DEFAULT_SIZE, GenerationRequest, GenerationResult

LOGGER = logging.getLogger("imagerelay.dispatcher")

PROMPT_REQUIRED = "Prompt is required!"
GENERATION_FAILED = "Image generation failed"

class ImageProvider(Protocol):
    async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
        ...

def _dimension(value: Any) -> int:
    """Return a positive integer dimension, or the default when invalid."""
    if value is None or isinstance(value, bool):
        return DEFAULT_SIZE
    if isinstance(value, float):
        if not value.is_integer():
            return DEFAULT_SIZE
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return DEFAULT_SIZE
    if not isinstance(value, int) or value <= 0:
        return DEFAULT_SIZE
    return value

def build_request(prompt: Any, width: Any = None, height: Any = None) -> GenerationRequest:
    """
    Validate raw transport input into a GenerationRequest.

    Raises:
        ValidationError: if the prompt is missing, not text, or blank.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError(PROMPT_REQUIRED)
    return GenerationRequest(prompt=prompt, width=_dimension(width), height=_dimension(height))

class GenerationDispatcher:
    def __init__(self, provider: ImageProvider) -> None:
        self.provider = provider

    async def dispatch(self, request: GenerationRequest) -> GenerationResult:
        """Call the provider for a validated request; never raises."""
        LOGGER.info(
            "Generating image: prompt=%r width=%d height=%d",
            request.prompt[:80],
            request.width,
            request.height,
        )
        try:
            artifact = await self.provider.generate(
                request.prompt, request.width, request.height, samples=1
            )
        except ProviderError as e:
            LOGGER.error("Error generating image: %s | detail=%s", e, e.detail)
            return GenerationResult.error(GENERATION_FAILED, e.detail)
        except Exception as e:
            LOGGER.exception("Unexpected error generating image")
            return GenerationResult.error(GENERATION_FAILED, str(e) or type(e).__name__)
        return GenerationResult.success(artifact)

    async def generate(self, prompt: Any, width: Any = None, height: Any = None) -> GenerationResult:
        """Validate then dispatch. Raises ValidationError before any provider call."""
        return await self.dispatch(build_request(prompt, width, height))
