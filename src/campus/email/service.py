"""Outgoing email: template rendering, per-recipient throttling and delivery.

The provider is picked by ``CAMPUS_EMAIL_PROVIDER`` (``smtp``, ``resend`` or
``ses``). Sending never raises on delivery problems; callers get ``False``
and decide whether that matters (onboarding mails do not block onboarding).
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

import structlog

from campus.config import Settings, get_settings
from campus.email.templates import account_created, campus_welcome

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

# name -> (renderer, context keys in argument order)
TEMPLATES: dict[str, tuple[Callable[..., tuple[str, str, str]], tuple[str, ...]]] = {
    "campus_welcome": (campus_welcome, ("campus_name", "admin_name", "admin_email", "login_url")),
    "account_created": (account_created, ("campus_name", "full_name", "user_type", "login_url")),
}


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str


def render_template(name: str, context: dict[str, str]) -> tuple[str, str, str]:
    """Return ``(subject, html, text)``; unknown names and missing keys are ValueErrors."""
    try:
        render, keys = TEMPLATES[name]
    except KeyError:
        msg = f"Unknown template: {name}"
        raise ValueError(msg) from None
    missing = [k for k in keys if k not in context]
    if missing:
        msg = f"Missing template context for {name}: {', '.join(missing)}"
        raise ValueError(msg)
    return render(*(context[k] for k in keys))


class EmailProvider(ABC):
    """A delivery backend. Subclasses implement ``_deliver`` and may raise."""

    name = "base"

    def __init__(self, from_address: str, from_name: str) -> None:
        self.sender = f"{from_name} <{from_address}>"

    @abstractmethod
    async def _deliver(self, email: OutgoingEmail) -> None: ...

    async def send(self, email: OutgoingEmail) -> bool:
        try:
            await self._deliver(email)
        except Exception:  # noqa: BLE001
            logger.exception("email_send_failed", to=email.to, provider=self.name)
            return False
        logger.info("email_sent", to=email.to, subject=email.subject, provider=self.name)
        return True


class SMTPProvider(EmailProvider):
    name = "smtp"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings.email_from_address, settings.email_from_name)
        self.settings = settings

    def build_message(self, email: OutgoingEmail) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = email.to
        message["Subject"] = email.subject
        message.attach(MIMEText(email.text, "plain", "utf-8"))
        message.attach(MIMEText(email.html, "html", "utf-8"))
        return message

    async def _deliver(self, email: OutgoingEmail) -> None:
        import aiosmtplib

        s = self.settings
        await aiosmtplib.send(
            self.build_message(email),
            hostname=s.smtp_host,
            port=s.smtp_port,
            username=s.smtp_username or None,
            password=s.smtp_password or None,
            start_tls=s.smtp_use_tls,
            tls_context=ssl.create_default_context() if s.smtp_use_tls else None,
        )


class ResendProvider(EmailProvider):
    name = "resend"
    endpoint = "https://api.resend.com/emails"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings.email_from_address, settings.email_from_name)
        self.api_key = settings.resend_api_key

    async def _deliver(self, email: OutgoingEmail) -> None:
        import httpx

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                self.endpoint,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.sender,
                    "to": [email.to],
                    "subject": email.subject,
                    "html": email.html,
                    "text": email.text,
                },
            )
            response.raise_for_status()


class SESProvider(EmailProvider):
    """AWS SES; credentials come from the default AWS chain."""

    name = "ses"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings.email_from_address, settings.email_from_name)
        self.region = settings.ses_region

    async def _deliver(self, email: OutgoingEmail) -> None:
        import aioboto3

        async with aioboto3.Session().client("ses", region_name=self.region) as ses:
            await ses.send_email(
                Source=self.sender,
                Destination={"ToAddresses": [email.to]},
                Message={
                    "Subject": {"Data": email.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": email.text, "Charset": "UTF-8"},
                        "Html": {"Data": email.html, "Charset": "UTF-8"},
                    },
                },
            )


PROVIDERS: dict[str, type[EmailProvider]] = {p.name: p for p in (SMTPProvider, ResendProvider, SESProvider)}


def create_provider(settings: Settings | None = None) -> EmailProvider:
    settings = settings or get_settings()
    provider_cls = PROVIDERS.get(settings.email_provider.lower())
    if provider_cls is None:
        msg = f"Unsupported email provider: {settings.email_provider}"
        raise ValueError(msg)
    return provider_cls(settings)


class EmailService:
    """Renders templates and throttles each recipient to N mails per hour (when Redis is available)."""

    WINDOW_SECONDS = 3600

    def __init__(self, provider: EmailProvider | None = None, redis: Redis | None = None) -> None:
        self.provider = provider or create_provider()
        self._redis = redis
        self.per_hour = get_settings().email_rate_limit_per_hour

    async def _allowed(self, address: str) -> bool:
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(address.lower().encode()).hexdigest()}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.WINDOW_SECONDS)
        return count <= self.per_hour

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        if not await self._allowed(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        return await self.provider.send(OutgoingEmail(to, subject, html_body, text_body))

    async def send_template(self, to: str, template_name: str, context: dict[str, str]) -> bool:
        subject, html_body, text_body = render_template(template_name, context)
        return await self.send_email(to, subject, html_body, text_body)


_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service
