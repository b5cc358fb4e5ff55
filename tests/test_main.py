from storefront import __main__ as entrypoint
from storefront.config import DEFAULT_SESSION_SECRET, Settings


def test_main_serves_api_with_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda *a, **k: calls.append((a, k)))
    monkeypatch.setattr(entrypoint.settings, "host", "0.0.0.0")
    monkeypatch.setattr(entrypoint.settings, "port", 9000)

    entrypoint.main()

    assert calls == [(("storefront.api:app",), {"host": "0.0.0.0", "port": 9000})]


def test_default_session_secret_is_long_enough_for_hs256():
    assert len(DEFAULT_SESSION_SECRET.encode()) >= 32
    assert Settings.model_fields["session_secret"].default == DEFAULT_SESSION_SECRET
