# frontend/config.py
# Environment-aware settings for the Teamboard Streamlit client

import os
from typing import Literal, Optional

LOCAL_BACKEND_URL = "http://127.0.0.1:8000"
KNOWN_ENVS = ("local", "staging", "production")

# Unknown values fall back to the strictest environment
_env_value = os.environ.get("ENV", "production").strip().lower()
ENV: Literal["local", "staging", "production"] = _env_value if _env_value in KNOWN_ENVS else "production"  # type: ignore

IS_LOCAL = ENV == "local"
IS_STAGING = ENV == "staging"
IS_PROD = ENV == "production"
IS_DEV = IS_LOCAL


def check_backend_url(url: str, env: str) -> None:
    """
    Hosted environments talk to the backend over TLS only, and never to a
    loopback address.

    Raises:
        ValueError: empty URL, or a URL not allowed for `env`
    """
    if not url:
        raise ValueError("Backend URL is empty")
    if env == "local":
        return
    if not url.startswith("https://"):
        raise ValueError(f"{env} requires an https:// backend URL, got {url}")
    if any(host in url for host in ("localhost", "127.0.0.1")):
        raise ValueError(f"{env} cannot point at a loopback backend, got {url}")


def resolve_backend_url(env: str, configured: Optional[str]) -> str:
    """
    BACKEND_URL wins when set; local development falls back to
    LOCAL_BACKEND_URL; hosted environments without one are a hard error.
    """
    configured = (configured or "").strip().rstrip("/")
    if configured:
        check_backend_url(configured, env)
        return configured
    if env == "local":
        return LOCAL_BACKEND_URL
    raise RuntimeError(
        f"BACKEND_URL is not set for the {env} environment. "
        f"Point it at the backend's https:// address."
    )


def get_api_base_url() -> str:
    return resolve_backend_url(ENV, os.environ.get("BACKEND_URL"))


def get_ws_url(base_url: str) -> str:
    """Websocket endpoint for a REST base URL (http -> ws, https -> wss)."""
    for scheme, ws_scheme in (("https://", "wss://"), ("http://", "ws://")):
        if base_url.startswith(scheme):
            return ws_scheme + base_url[len(scheme):].rstrip("/") + "/ws"
    raise ValueError(f"Unsupported backend URL scheme: {base_url}")


# Resolved once for display; API calls resolve again so a bad value surfaces in the UI
try:
    BACKEND_URL = get_api_base_url()
except (RuntimeError, ValueError) as e:
    print(f"[CONFIG] CRITICAL: {e}")
    BACKEND_URL = ""

# Seconds between polls of the real-time event queue on the project page
REALTIME_POLL_SECONDS = float(os.environ.get("REALTIME_POLL_SECONDS", "2"))

ENABLE_DEBUG_UI = IS_DEV

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Backend URL: {BACKEND_URL or '(not configured)'}")
