"""Deliver notifications to users by email, or to the log when SMTP is not set up."""
from __future__ import annotations

import re
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable

from autoapply.config import get_env
from autoapply.log import get_logger
from autoapply.retry import retry

log = get_logger(__name__)


class Notifier(ABC):
    @abstractmethod
    def notify(self, owner: str, subject: str, body: str) -> bool:
        """Deliver a message to *owner*; return False when it could not be sent."""


class LogNotifier(Notifier):
    """Writes notifications to the log; keeps them for inspection."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def notify(self, owner: str, subject: str, body: str) -> bool:
        self.sent.append((owner, subject, body))
        log.info("Notification for %s: %s", owner, subject)
        return True


def _md_to_html(md: str) -> str:
    """Lightweight markdown-to-HTML for notification emails."""
    html_parts: list[str] = []
    for line in md.split("\n"):
        stripped = line.strip()
        if not stripped:
            html_parts.append("<br>")
        elif stripped.startswith("## "):
            html_parts.append(f'<h2 style="margin:18px 0 6px;color:#2c3e50">{_inline(stripped[3:])}</h2>')
        elif stripped.startswith("# "):
            html_parts.append(f'<h1 style="margin:0 0 8px;color:#2c3e50">{_inline(stripped[2:])}</h1>')
        elif stripped.startswith("- "):
            html_parts.append(f'<div style="margin:2px 0 2px 16px">• {_inline(stripped[2:])}</div>')
        else:
            html_parts.append(f"<p style='margin:4px 0'>{_inline(stripped)}</p>")
    return "\n".join(html_parts)


def _inline(text: str) -> str:
    text = re.sub(r'\*\*(.+?)\*\*', r'<strong>\1</strong>', text)
    text = re.sub(r'\[([^\]]+)\]\(([^)]+)\)', r'<a href="\2" style="color:#1a73e8">\1</a>', text)
    return text


@retry(max_attempts=3, base_delay=3.0, retryable=(smtplib.SMTPException, OSError))
def _smtp_send(
    host: str, port: int, user: str, password: str,
    from_addr: str, to_addr: str, msg: MIMEMultipart,
) -> None:
    with smtplib.SMTP(host, port) as server:
        server.starttls()
        server.login(user, password)
        server.sendmail(from_addr, [to_addr], msg.as_string())


class EmailNotifier(Notifier):
    """SMTP delivery; *resolve_email* maps an owner id to an address."""

    def __init__(
        self,
        resolve_email: Callable[[str], str | None],
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        from_addr: str,
    ) -> None:
        self.resolve_email = resolve_email
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_addr = from_addr

    def notify(self, owner: str, subject: str, body: str) -> bool:
        to_addr = self.resolve_email(owner)
        if not to_addr:
            log.warning("No email address for %s — dropping %r", owner, subject)
            return False

        html_body = f"""<div style="font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;max-width:720px;margin:0 auto;padding:16px;color:#333">
{_md_to_html(body)}
<hr style="border:none;border-top:1px solid #e0e0e0;margin:20px 0 8px">
<p style="font-size:11px;color:#999">Sent by AutoApply</p>
</div>"""

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_addr
        msg["To"] = to_addr
        msg.attach(MIMEText(body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            _smtp_send(self.host, self.port, self.user, self.password, self.from_addr, to_addr, msg)
            log.info("Email sent to %s: %s", to_addr, subject)
            return True
        except (smtplib.SMTPException, OSError) as e:
            log.error("Email to %s failed: %s", to_addr, e)
            return False


def build_notifier(resolve_email: Callable[[str], str | None]) -> Notifier:
    """EmailNotifier when SMTP_HOST/SMTP_USER/SMTP_PASSWORD are set, else LogNotifier."""
    host = get_env("SMTP_HOST")
    user = get_env("SMTP_USER")
    password = get_env("SMTP_PASSWORD")
    if not all([host, user, password]):
        log.info("SMTP not configured (set SMTP_HOST, SMTP_USER, SMTP_PASSWORD) — logging notifications")
        return LogNotifier()
    try:
        port = int(get_env("SMTP_PORT", "587"))
    except ValueError:
        port = 587
    return EmailNotifier(
        resolve_email,
        host=host,
        port=port,
        user=user,
        password=password,
        from_addr=get_env("FROM_EMAIL", user),
    )
