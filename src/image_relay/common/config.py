"""Settings for the relay, read once at startup.

Values come from environment variables; an optional YAML file (path in
RELAY_CONFIG) supplies defaults for anything the environment leaves unset.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "configs/relay.yaml"
STABILITY_SD3_URL = "https://api.stability.ai/v2beta/stable-image/generate/sd3"

@dataclass(frozen=True)
class Settings:
    stability_api_key: str = ""
    stability_api_url: str = STABILITY_SD3_URL
    provider_timeout: float = 120.0
    cloud_name: str = ""
    cloud_api_key: str = ""
    cloud_api_secret: str = ""
    upload_folder: str = "AI_Generated_Images"
    upload_format: str = "png"
    upload_max_bytes: int = 10 * 1024 * 1024
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: tuple[str, ...] = ("https://your-frontend-domain.com",)
    rate_limit_max: int = 20
    rate_limit_window_seconds: int = 15 * 60
    trust_proxy: bool = False
    log_level: str = "INFO"
    log_file: str = "server.log"

    @property
    def storage_configured(self) -> bool:
        return bool(self.cloud_name and self.cloud_api_key and self.cloud_api_secret)

# Settings field -> environment variable
ENV_VARS = {
    "stability_api_key": "STABLE_DIFFUSION_API_KEY",
    "stability_api_url": "STABILITY_API_URL",
    "provider_timeout": "PROVIDER_TIMEOUT",
    "cloud_name": "CLOUD_NAME",
    "cloud_api_key": "CLOUD_API_KEY",
    "cloud_api_secret": "CLOUD_API_SECRET",
    "upload_folder": "UPLOAD_FOLDER",
    "upload_max_bytes": "UPLOAD_MAX_BYTES",
    "host": "HOST",
    "port": "PORT",
    "cors_origins": "CORS_ORIGINS",
    "rate_limit_max": "RATE_LIMIT_MAX",
    "rate_limit_window_seconds": "RATE_LIMIT_WINDOW_SECONDS",
    "trust_proxy": "TRUST_PROXY",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}

def load_cfg(path: str) -> dict[str, Any]:
    """Read a YAML mapping; a missing or empty file yields an empty dict."""
    p = Path(path)
    if not p.exists():
        return {}
    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data

def _coerce(name: str, value: Any) -> Any:
    if name == "cors_origins":
        if isinstance(value, str):
            return tuple(o.strip() for o in value.split(",") if o.strip())
        return tuple(str(o) for o in value)
    if name in ("port", "rate_limit_max", "rate_limit_window_seconds", "upload_max_bytes"):
        return int(value)
    if name == "provider_timeout":
        return float(value)
    if name == "trust_proxy":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return "" if value is None else str(value)

def load_settings(
    config_path: str | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """
    Build settings from YAML defaults overlaid with environment variables.

    Args:
        config_path: YAML file path; defaults to $RELAY_CONFIG or configs/relay.yaml.
        environ: Environment mapping (defaults to os.environ).
    """
    env = os.environ if environ is None else environ
    path = config_path or env.get("RELAY_CONFIG", DEFAULT_CONFIG_PATH)
    cfg = load_cfg(path)

    known = {f.name for f in fields(Settings)}
    unknown = set(cfg) - known
    if unknown:
        raise ValueError(f"Unknown settings in {path}: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {k: _coerce(k, v) for k, v in cfg.items()}
    for name, var in ENV_VARS.items():
        raw = env.get(var)
        if raw is not None:
            values[name] = _coerce(name, raw)
    return Settings(**values)
