"""Request/response types passed between transports and the dispatcher."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any

DEFAULT_SIZE = 512
DATA_URI_PREFIX = "data:image/png;base64,"

@dataclass(frozen=True)
class GenerationRequest:
    """A validated image generation request."""
    prompt: str
    width: int = DEFAULT_SIZE
    height: int = DEFAULT_SIZE

@dataclass(frozen=True)
class GenerationResult:
    """Normalized outcome of one generation call.

    Exactly one shape is populated: `image` for success, `message` (and
    optionally `error_detail`) for error.
    """
    status: str
    image: str | None = None
    message: str | None = None
    error_detail: Any = None

    @classmethod
    def success(cls, artifact: str) -> "GenerationResult":
        return cls(status="success", image=f"{DATA_URI_PREFIX}{artifact}")

    @classmethod
    def error(cls, message: str, detail: Any = None) -> "GenerationResult":
        return cls(status="error", message=message, error_detail=detail)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_payload(self) -> dict[str, Any]:
        """Client-facing wire shape shared by HTTP and realtime responses."""
        if self.ok:
            return {"status": "success", "image": self.image}
        payload: dict[str, Any] = {"status": "error", "message": self.message}
        if self.error_detail is not None:
            payload["error"] = self.error_detail
        return payload
