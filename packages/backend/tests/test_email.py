"""Email delivery tests — failure policy, HTTP transport, message copy."""

import json

import httpx
import pytest

from tenantry.config import settings
from tenantry.errors import EmailDeliveryError
from tenantry.services.email_service import (
    ConsoleTransport,
    EmailMessage,
    HttpEmailTransport,
    deliver,
    get_transport,
    invite_message,
    magic_link_message,
)

MESSAGE = EmailMessage(to="alice@example.com", subject="Hi", text="Hello", html="<p>Hello</p>")


class BrokenTransport:
    async def send(self, message):
        raise ConnectionError("smtp down")


@pytest.mark.asyncio
async def test_failure_swallowed_outside_production():
    assert await deliver(MESSAGE, BrokenTransport(), production=False) is False


@pytest.mark.asyncio
async def test_failure_raises_in_production():
    with pytest.raises(EmailDeliveryError):
        await deliver(MESSAGE, BrokenTransport(), production=True)


@pytest.mark.asyncio
async def test_console_transport_delivers():
    assert await deliver(MESSAGE, ConsoleTransport(), production=False) is True


def test_console_is_default(monkeypatch):
    monkeypatch.setattr(settings, "email_api_url", "")
    assert isinstance(get_transport(), ConsoleTransport)


def test_http_transport_when_configured(monkeypatch):
    monkeypatch.setattr(settings, "email_api_url", "https://mail.example.com/emails")
    assert isinstance(get_transport(), HttpEmailTransport)


@pytest.mark.asyncio
async def test_http_transport_posts_json():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        transport = HttpEmailTransport(
            "https://mail.example.com/emails", "key-123", "Tenantry <noreply@example.com>", http
        )
        await transport.send(MESSAGE)

    request = seen[0]
    assert request.headers["Authorization"] == "Bearer key-123"
    payload = json.loads(request.content)
    assert payload == {
        "from": "Tenantry <noreply@example.com>",
        "to": ["alice@example.com"],
        "subject": "Hi",
        "text": "Hello",
        "html": "<p>Hello</p>",
    }


@pytest.mark.asyncio
async def test_http_transport_error_status_raises():
    def handler(request):
        return httpx.Response(503)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        transport = HttpEmailTransport("https://mail.example.com/emails", "k", "f", http)
        with pytest.raises(EmailDeliveryError):
            await deliver(MESSAGE, transport, production=True)


def test_magic_link_message():
    msg = magic_link_message("bob@example.com", "tok123", "login")
    assert msg.to == "bob@example.com"
    assert msg.subject == "Your magic link to log in"
    assert f"{settings.app_url}/auth/verify?token=tok123" in msg.text
    assert f"{settings.magic_link_ttl_minutes} minutes" in msg.text

    assert magic_link_message("b@example.com", "t", "verify_email").subject == "Verify your email"


def test_invite_message():
    msg = invite_message("carol@example.com", "Acme", "ABCD1234", "Alice")
    assert msg.subject == "You've been invited to join Acme"
    assert "Alice has invited you to join Acme" in msg.text
    assert "/auth/invite?code=ABCD1234" in msg.text

    assert "A teammate has invited you" in invite_message("c@example.com", "Acme", "X", None).text


def test_invite_message_with_sign_in_link():
    plain = invite_message("carol@example.com", "Acme", "ABCD1234", "Alice")
    assert "token=" not in plain.text

    msg = invite_message("carol@example.com", "Acme", "ABCD1234", "Alice", token="tok123")
    assert "/auth/verify?type=invite&token=tok123\n" in msg.text
    assert msg.text.index("code=ABCD1234") < msg.text.index("token=tok123")
