# frontend/test_frontend_config.py
# Unit tests for backend URL resolution and the derived websocket URL

import pytest

from frontend.config import LOCAL_BACKEND_URL, get_ws_url, resolve_backend_url


def test_local_falls_back_to_loopback():
    assert resolve_backend_url("local", None) == LOCAL_BACKEND_URL
    assert resolve_backend_url("local", "  ") == LOCAL_BACKEND_URL


def test_configured_url_wins_and_is_trimmed():
    assert resolve_backend_url("local", "http://localhost:9000/") == "http://localhost:9000"
    assert resolve_backend_url("production", "https://api.example.com/") == "https://api.example.com"


@pytest.mark.parametrize("env", ["staging", "production"])
def test_hosted_environments_require_a_url(env):
    with pytest.raises(RuntimeError):
        resolve_backend_url(env, None)


@pytest.mark.parametrize("url", ["http://api.example.com", "https://localhost:8000", "https://127.0.0.1"])
def test_hosted_environments_reject_insecure_or_loopback(url):
    with pytest.raises(ValueError):
        resolve_backend_url("production", url)


def test_get_ws_url():
    assert get_ws_url("http://127.0.0.1:8000") == "ws://127.0.0.1:8000/ws"
    assert get_ws_url("https://api.example.com") == "wss://api.example.com/ws"
    with pytest.raises(ValueError):
        get_ws_url("ftp://example.com")
