"""Read the parts of an email message the pipeline needs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from email import policy
from email.message import EmailMessage, Message
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path


@dataclass(frozen=True)
class MailMessage:
    subject: str
    author: str
    recipients: tuple[str, ...]
    sent_at: datetime | None
    body: str


def extract_text_body(part: Message | None) -> str:
    """Return the first ``text/plain`` body found depth-first, or ``""``."""
    if part is None:
        return ""
    if part.is_multipart():
        for child in part.iter_parts() if isinstance(part, EmailMessage) else part.get_payload():
            text = extract_text_body(child)
            if text:
                return text
        return ""
    if part.get_content_type() != "text/plain":
        return ""
    if isinstance(part, EmailMessage):
        content = part.get_content()
        return content if isinstance(content, str) else ""
    payload = part.get_payload(decode=True)
    if not payload:
        return ""
    return payload.decode(part.get_content_charset() or "utf-8", errors="replace")


def read_message(raw: bytes) -> MailMessage:
    """Parse an RFC 822 message."""
    msg = BytesParser(policy=policy.default).parsebytes(raw)

    sent_at: datetime | None = None
    if msg["Date"]:
        try:
            sent_at = parsedate_to_datetime(str(msg["Date"]))
        except (TypeError, ValueError):
            sent_at = None

    recipient_headers = [str(h) for h in msg.get_all("To", []) + msg.get_all("Cc", [])]
    recipients = tuple(addr for _, addr in getaddresses(recipient_headers) if addr)
    return MailMessage(
        subject=str(msg["Subject"] or ""),
        author=str(msg["From"] or ""),
        recipients=recipients,
        sent_at=sent_at,
        body=extract_text_body(msg),
    )


def read_message_file(path: str | Path) -> MailMessage:
    return read_message(Path(path).read_bytes())
