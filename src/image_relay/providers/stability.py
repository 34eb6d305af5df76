"""Async client for the Stability AI text-to-image endpoint."""
from __future__ import annotations
import logging
from typing import Any

import httpx

from image_relay.common.config import STABILITY_SD3_URL
from image_relay.common.errors import ProviderError

LOGGER = logging.getLogger("imagerelay.providers.stability")

class StabilityClient:
    """Thin wrapper that turns provider replies into an artifact or a ProviderError."""

    name = "stability"

    def __init__(
        self,
        api_key: str,
        base_url: str = STABILITY_SD3_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def generate(self, prompt: str, width: int, height: int, samples: int = 1) -> str:
        """
        Request one image and return its base64 payload.

        Raises:
            ProviderError: on transport failure, non-2xx reply or missing artifact.
        """
        payload = {"prompt": prompt, "width": width, "height": height, "samples": samples}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.base_url, headers=self._headers(), json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(str(e), _error_body(e.response)) from e
        except httpx.HTTPError as e:
            raise ProviderError(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderError(f"Malformed provider response: {e}") from e

        return _first_artifact(data)

def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        pass
    text = response.text.strip()
    return text or f"{response.status_code} {response.reason_phrase}"

def _first_artifact(data: Any) -> str:
    try:
        artifact = data["artifacts"][0]["base64"]
    except (KeyError, IndexError, TypeError):
        artifact = None
    if not isinstance(artifact, str) or not artifact:
        LOGGER.error("Provider response without artifact: keys=%s", list(data) if isinstance(data, dict) else type(data).__name__)
        raise ProviderError("Provider response contained no image artifact")
    return artifact
