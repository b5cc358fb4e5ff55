import pytest
import requests

from storefront import notifications
from storefront.config import Settings


class DummyResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")


@pytest.fixture
def config():
    return Settings(
        mail_service_id="service",
        mail_template_id="notify",
        mail_autoreply_template_id="autoreply",
        mail_public_key="public-key",
    )


def test_unconfigured_relay_sends_nothing(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("relay should not be called")

    monkeypatch.setattr(notifications.requests, "post", fail)
    assert not notifications.send_contact_message(
        "Ann", "ann@example.com", "Hello there", config=Settings()
    )


def test_sends_notification_and_autoreply(monkeypatch, config):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json))
        return DummyResponse()

    monkeypatch.setattr(notifications.requests, "post", fake_post)
    assert notifications.send_contact_message(
        "Ann", "ann@example.com", "Hello there", role="ADMIN", config=config
    )

    assert [c[1]["template_id"] for c in calls] == ["notify", "autoreply"]
    payload = calls[0][1]
    assert calls[0][0] == config.mail_relay_url
    assert payload["service_id"] == "service"
    assert payload["user_id"] == "public-key"
    assert payload["template_params"] == {
        "role": "ADMIN",
        "user_name": "Ann",
        "user_email": "ann@example.com",
        "message": "Hello there",
    }


def test_relay_error_returns_false(monkeypatch, config):
    monkeypatch.setattr(
        notifications.requests, "post", lambda *a, **k: DummyResponse(status_code=502)
    )
    assert not notifications.send_contact_message(
        "Ann", "ann@example.com", "Hello there", config=config
    )
