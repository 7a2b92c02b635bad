"""Email delivery for magic links and invites.

Learn: Two transports share one interface:
- ConsoleTransport logs the message (development default)
- HttpEmailTransport POSTs JSON to a transactional email API via httpx

deliver() applies the failure policy: outside production a send failure is
logged and swallowed so issuing a link never blocks on email; in production
it raises EmailDeliveryError and the request fails visibly.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from tenantry.config import settings
from tenantry.errors import EmailDeliveryError

logger = structlog.get_logger()


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


class EmailTransport(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class ConsoleTransport:
    """Logs emails instead of sending them."""

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "email.console",
            to=message.to,
            subject=message.subject,
            text=message.text,
        )


class HttpEmailTransport:
    """Sends through an HTTP email API (Resend/Postmark style JSON body)."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self._client = client

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            payload["html"] = message.html
        headers = {"Authorization": f"Bearer {self.api_key}"}

        if self._client is not None:
            r = await self._client.post(self.api_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                r = await client.post(self.api_url, json=payload, headers=headers)
        r.raise_for_status()


def get_transport() -> EmailTransport:
    if settings.email_api_url:
        return HttpEmailTransport(
            settings.email_api_url, settings.email_api_key, settings.email_from
        )
    return ConsoleTransport()


async def deliver(
    message: EmailMessage,
    transport: Optional[EmailTransport] = None,
    production: Optional[bool] = None,
) -> bool:
    """Send a message. Returns False if a non-fatal failure was swallowed."""
    transport = transport or get_transport()
    production = settings.is_production if production is None else production
    try:
        await transport.send(message)
    except Exception as e:
        logger.error(
            "email.delivery_failed",
            to=message.to,
            subject=message.subject,
            error=str(e),
        )
        if production:
            raise EmailDeliveryError("Failed to send email") from e
        return False
    return True


# ─── Message builders ──────────────────────────────────

_LINK_COPY = {
    "login": ("Your magic link to log in", "log in", "Log In"),
    "invite": ("Your invitation link", "accept your invitation", "Accept Invitation"),
    "verify_email": ("Verify your email", "verify your email address", "Verify Email"),
}


def magic_link_message(email: str, token: str, purpose: str) -> EmailMessage:
    subject, action, button = _LINK_COPY[purpose]
    link = f"{settings.app_url}/auth/verify?token={token}"
    minutes = settings.magic_link_ttl_minutes
    text = (
        f"Click the link below to {action}:\n\n{link}\n\n"
        f"This link will expire in {minutes} minutes."
    )
    html = (
        f"<h2>{subject}</h2>"
        f'<p><a href="{link}">{button}</a></p>'
        f"<p>This link will expire in {minutes} minutes. "
        "If you didn't request this, you can safely ignore this email.</p>"
    )
    return EmailMessage(to=email, subject=subject, text=text, html=html)


def invite_message(
    email: str,
    company_name: str,
    invite_code: str,
    invited_by: Optional[str],
    token: Optional[str] = None,
) -> EmailMessage:
    """Invite email. With a token it also carries a sign-in link for new users."""
    link = f"{settings.app_url}/auth/invite?code={invite_code}"
    inviter = invited_by or "A teammate"
    subject = f"You've been invited to join {company_name}"
    text = (
        f"{inviter} has invited you to join {company_name}.\n\n"
        f"Accept the invitation here:\n\n{link}\n\n"
    )
    if token:
        text += (
            "New here? Sign in with this link first:\n\n"
            f"{settings.app_url}/auth/verify?type=invite&token={token}\n\n"
        )
    text += f"This invitation will expire in {settings.invite_ttl_days} days."
    return EmailMessage(to=email, subject=subject, text=text)


async def send_magic_link_email(
    email: str,
    token: str,
    purpose: str,
    transport: Optional[EmailTransport] = None,
) -> bool:
    return await deliver(magic_link_message(email, token, purpose), transport)
