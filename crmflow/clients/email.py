"""SMTP email sender."""

import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from crmflow.core.config import Settings, get_settings
from crmflow.core.exceptions import ActionHandlerError
from crmflow.core.logging import get_logger

logger = get_logger(__name__)


class EmailSender:
    """Email delivery using SMTP."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    async def send(self, to: list[str], subject: str, body: str, html: bool = False) -> None:
        """Send an email.

        Args:
            to: Recipient addresses
            subject: Subject line
            body: Message body (plain text, or HTML when ``html`` is set)
            html: Whether body is already HTML

        Raises:
            ActionHandlerError: If SMTP is not configured or delivery fails
        """
        if not self._settings.smtp_host:
            raise ActionHandlerError("send_email", "SMTP not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject[:200]
        msg["From"] = self._settings.smtp_from or self._settings.smtp_user
        msg["To"] = ", ".join(to)

        if html:
            msg.attach(MIMEText(_strip_tags(body), "plain", "utf-8"))
            msg.attach(MIMEText(body, "html", "utf-8"))
        else:
            msg.attach(MIMEText(body, "plain", "utf-8"))
            msg.attach(MIMEText(_to_html(body), "html", "utf-8"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._settings.smtp_host,
                port=self._settings.smtp_port,
                username=self._settings.smtp_user or None,
                password=self._settings.smtp_password or None,
                use_tls=not self._settings.smtp_use_tls,
                start_tls=self._settings.smtp_use_tls,
                timeout=self._settings.action_timeout_seconds,
            )
        except aiosmtplib.SMTPException as e:
            raise ActionHandlerError("send_email", f"SMTP delivery failed: {e}") from e
        except OSError as e:
            raise ActionHandlerError("send_email", f"SMTP unreachable: {e}") from e

        logger.info("Email sent", recipients=len(to))


def _to_html(message: str) -> str:
    html = message.replace("\n", "<br>")
    html = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", html)
    return f"<html><body>{html}</body></html>"


def _strip_tags(html: str) -> str:
    return re.sub(r"<[^>]+>", "", html)
