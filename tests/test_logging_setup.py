from __future__ import annotations

import logging
from pathlib import Path

from image_relay.common.logging_setup import setup_logging


def test_setup_logging_with_file(tmp_path: Path) -> None:
    log_file = tmp_path / "server.log"
    setup_logging("debug", str(log_file))
    logging.getLogger("imagerelay.test").info("hello relay")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert logging.getLogger().level == logging.DEBUG
    assert "hello relay" in log_file.read_text(encoding="utf-8")
    setup_logging()


def test_unknown_level_name_falls_back_to_info() -> None:
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_app_import_keeps_configured_file_handler(tmp_path: Path) -> None:
    import importlib

    import image_relay.serve.fastapi_app as app_mod

    setup_logging("INFO", str(tmp_path / "server.log"))
    importlib.reload(app_mod)
    assert any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)
    setup_logging()


def test_app_import_configures_log_file_when_unconfigured(tmp_path: Path, monkeypatch) -> None:
    import importlib

    import image_relay.serve.fastapi_app as app_mod

    log_file = tmp_path / "relay.log"
    monkeypatch.setenv("LOG_FILE", str(log_file))
    logging.getLogger().handlers.clear()
    importlib.reload(app_mod)
    files = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
    assert [h.baseFilename for h in files] == [str(log_file)]
    setup_logging()
