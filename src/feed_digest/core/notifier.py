"""
Digest rendering and delivery through the Mailgun HTTP API.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx
from feedparser.datetimes import _parse_date
from markupsafe import escape

from feed_digest.core.scraper import strip_html
from feed_digest.exceptions import NotificationError
from feed_digest.logger import get_logger
from feed_digest.models import DEFAULT_GROUP, SourceJob

logger = get_logger(__name__)

FALLBACK_SUBJECT = "RSS Feed"


@dataclass
class Notification:
    """A rendered digest ready to hand to a channel."""

    from_address: str
    to_address: str
    subject: str
    text_body: str
    html_body: str


def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Parse a feed timestamp into aware UTC.

    Accepts every format feedparser understands (RFC 822, ISO 8601, W3C-DTF
    and several regional variants). Timestamps without an offset are UTC.

    Returns:
        datetime, or None if the value is empty or unparseable
    """
    if not value:
        return None
    parsed = _parse_date(value.strip())
    if parsed is None:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


def format_published(value: Optional[str]) -> str:
    """Format a timestamp as "D.M. at HH:MM", or "" if it cannot be parsed."""
    parsed = parse_published(value)
    if parsed is None:
        return ""
    return f"{parsed.day}.{parsed.month}. at {parsed:%H:%M}"


def digest_subject(jobs: list[SourceJob], group_name: str) -> str:
    """Subject line: the group name, else the only source's title."""
    if group_name and group_name != DEFAULT_GROUP:
        return group_name
    if len(jobs) == 1:
        return jobs[0].source.title
    return FALLBACK_SUBJECT


def render_digest(
    jobs: list[SourceJob],
    group_name: str,
    from_address: str,
    to_address: str,
) -> Notification:
    """Render one digest covering all jobs of a group.

    Args:
        jobs: Sources with their new items, in run order
        group_name: Group label
        from_address: Sender address
        to_address: Recipient address

    Returns:
        Notification with text and HTML bodies
    """
    subject = digest_subject(jobs, group_name)

    html_parts = [
        '<div style="font-size: 1.2em; line-height: 1.6;">',
        f'<h2 style="font-size: 1.8em; margin-bottom: 1rem;">{escape(subject)}</h2>',
    ]
    text_parts = [f"{subject}\n"]

    for job in jobs:
        prefix = job.source.link_prefix or ""
        html_parts.append(
            f'<h3 style="font-size: 1.5em; margin-top: 1.5rem; margin-bottom: 0.75rem;">'
            f"{escape(job.source.title)}</h3>"
        )
        text_lines = [f"\n{job.source.title}"]

        for item in job.items:
            link = prefix + item.link
            date = format_published(item.published)
            summary = strip_html(item.summary)

            entry = (
                f'<div style="margin-bottom: 1.2rem;">'
                f'<a href="{escape(link)}" target="_blank" rel="noopener" '
                f'style="font-weight: 600; text-decoration: none; color: #2563eb;">{escape(item.title)}</a>'
            )
            if date:
                entry += f' <span style="color: #6b7280;">{escape(date)}</span>'
            if summary:
                entry += f'<p style="margin-top: 0.5rem; color: #4b5563;">{escape(summary)}</p>'
            html_parts.append(entry + "</div>")

            text_lines.append(f"{item.title}{f' ({date})' if date else ''} - {link}")
            if summary:
                text_lines.append(summary)

        text_parts.append("\n".join(text_lines))

    html_parts.append("</div>")

    return Notification(
        from_address=from_address,
        to_address=to_address,
        subject=subject,
        text_body="\n".join(text_parts),
        html_body="\n".join(html_parts),
    )


class Notifier(ABC):
    """Channel delivering one digest per group."""

    @abstractmethod
    def send_digest(self, jobs: list[SourceJob], group_name: str) -> Notification:
        """Render and deliver a digest.

        Returns:
            The delivered Notification

        Raises:
            NotificationError: If delivery failed
        """


class MailgunNotifier(Notifier):
    """Sends digests as email through Mailgun."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        domain: Optional[str] = None,
        from_address: Optional[str] = None,
        recipient: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize notifier.

        Args:
            api_key: Mailgun API key
            domain: Mailgun sending domain
            from_address: Sender address
            recipient: Digest recipient
            base_url: API base URL
            timeout_seconds: Request timeout
            transport: Optional httpx transport override

        Note:
            Omitted settings come from the global config.
        """
        from feed_digest.config import get_config

        config = get_config().notifier

        self.api_key = api_key or config.api_key
        self.domain = domain or config.domain
        self.from_address = from_address or config.from_address
        self.recipient = recipient or config.recipient
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.timeout_seconds
        self.transport = transport

    def send_digest(self, jobs: list[SourceJob], group_name: str) -> Notification:
        notification = render_digest(
            jobs,
            group_name,
            from_address=self.from_address,
            to_address=self.recipient or "",
        )
        self.send(notification)
        return notification

    def send(self, notification: Notification) -> None:
        """POST a notification to the Mailgun messages endpoint.

        Raises:
            NotificationError: On missing credentials, transport failure or non-2xx
        """
        if not self.api_key:
            raise NotificationError("MAILGUN_API_KEY missing")
        if not self.domain:
            raise NotificationError("MAILGUN_DOMAIN missing")
        if not notification.to_address:
            raise NotificationError("MAILGUN_RECIPIENT missing")

        url = f"{self.base_url}/{self.domain}/messages"
        data = {
            "from": notification.from_address,
            "to": notification.to_address,
            "subject": notification.subject,
            "text": notification.text_body,
            "html": notification.html_body,
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(url, data=data, auth=("api", self.api_key))
        except httpx.HTTPError as e:
            raise NotificationError(f"Mailgun request failed: {e}") from e

        if not response.is_success:
            raise NotificationError(
                f"Mailgun error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        logger.info(f"Sent digest '{notification.subject}' to {notification.to_address}")


def create_notifier(transport: Optional[httpx.BaseTransport] = None) -> MailgunNotifier:
    """Create a MailgunNotifier from settings."""
    return MailgunNotifier(transport=transport)
