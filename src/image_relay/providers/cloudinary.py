"""Signed uploads to Cloudinary's REST upload API."""
from __future__ import annotations
import hashlib
import logging
import time

import httpx

from image_relay.common.errors import ProviderError

LOGGER = logging.getLogger("imagerelay.providers.cloudinary")

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"

def sign_params(params: dict[str, str], api_secret: str) -> str:
    """SHA-1 signature over the sorted `key=value` pairs followed by the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()

class CloudinaryUploader:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "AI_Generated_Images",
        fmt: str = "png",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.fmt = fmt
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def upload(self, filename: str, content: bytes, content_type: str | None = None) -> str:
        """
        Upload raw bytes and return the public URL of the stored asset.

        Raises:
            ProviderError: when storage is not configured or the upload fails.
        """
        if not self.configured:
            raise ProviderError("Storage provider is not configured")

        params = {"folder": self.folder, "format": self.fmt, "timestamp": str(int(time.time()))}
        data = {**params, "api_key": self.api_key, "signature": sign_params(params, self.api_secret)}
        files = {"file": (filename or "upload", content, content_type or "application/octet-stream")}
        url = UPLOAD_URL.format(cloud_name=self.cloud_name)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, data=data, files=files)
                r.raise_for_status()
                body = r.json()
        except httpx.HTTPStatusError as e:
            detail: object
            try:
                detail = e.response.json()
            except ValueError:
                detail = e.response.text or str(e)
            raise ProviderError(str(e), detail) from e
        except httpx.HTTPError as e:
            raise ProviderError(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderError(f"Malformed storage response: {e}") from e

        public_url = (body.get("secure_url") or body.get("url")) if isinstance(body, dict) else None
        if not public_url:
            raise ProviderError("Storage response contained no URL", body)
        LOGGER.info("Uploaded %s to %s", filename, public_url)
        return public_url
