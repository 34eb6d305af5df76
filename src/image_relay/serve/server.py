"""Run the relay with uvicorn using HOST/PORT from settings."""
from __future__ import annotations
import logging

import uvicorn

from image_relay.common.config import load_settings
from image_relay.common.logging_setup import setup_logging

LOGGER = logging.getLogger("imagerelay.server")

def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file or None)
    LOGGER.info("Server running on port %s", settings.port)
    uvicorn.run(
        "image_relay.serve.fastapi_app:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )

if __name__ == "__main__":
    main()
