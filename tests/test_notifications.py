import httpx

from wellbank.config import get_settings
from wellbank.services import notifications


class _Reply:
    def __init__(self, status_code):
        self.status_code = status_code
        self.text = "" if status_code < 300 else "Forbidden"

    @property
    def is_success(self):
        return 200 <= self.status_code < 300


def _fake_client(statuses, calls):
    class FakeClient:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def post(self, url, auth=None, data=None):
            calls.append((url, data))
            return _Reply(statuses[len(calls) - 1])

    return FakeClient


def _configure_mailgun(monkeypatch):
    monkeypatch.setenv("MAILGUN_API_KEY", "key-test")
    monkeypatch.setenv("MAILGUN_DOMAIN", "mg.wellbank.ng")
    monkeypatch.setenv("MAILGUN_FROM_EMAIL", "hello@elsewhere.com")
    get_settings.cache_clear()


def test_send_email_without_provider_is_skipped(monkeypatch):
    calls = []
    monkeypatch.setattr(httpx, "Client", _fake_client([], calls))
    assert notifications.email_configured() is False
    assert notifications.send_email("jane@example.com", "Hi", "<p>Hi</p>") is False
    assert calls == []


def test_mailgun_retries_eu_region_after_401(monkeypatch):
    _configure_mailgun(monkeypatch)
    calls = []
    monkeypatch.setattr(httpx, "Client", _fake_client([401, 200], calls))

    assert notifications.send_otp_email("jane@example.com", "123456", 5) is True
    assert [url for url, _ in calls] == [
        "https://api.mailgun.net/v3/mg.wellbank.ng/messages",
        "https://api.eu.mailgun.net/v3/mg.wellbank.ng/messages",
    ]
    # Sender is forced onto the sending domain
    assert calls[0][1]["from"] == "WellBank <noreply@mg.wellbank.ng>"
    assert "123456" in calls[0][1]["text"]


def test_mailgun_other_failures_do_not_retry(monkeypatch):
    _configure_mailgun(monkeypatch)
    calls = []
    monkeypatch.setattr(httpx, "Client", _fake_client([500], calls))

    assert notifications.send_email("jane@example.com", "Hi", "<p>Hi</p>") is False
    assert len(calls) == 1
