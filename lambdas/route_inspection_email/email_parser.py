"""
Email Parser Module

Decodes SES inbound notifications (delivered through SNS) and the raw MIME
message they carry into the pieces the inspection extractor needs: sender,
subject, HTML part and plain-text part.
"""

import base64
import binascii
import email
import re
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.policy import default as default_policy
from typing import Any

import structlog

log = structlog.get_logger()

# Raw MIME begins with a header line; anything else is treated as base64
MIME_HEADER_PATTERN = re.compile(rb"^[A-Za-z][A-Za-z0-9-]*:")


@dataclass
class ParsedEmail:
    """Decoded inbound email."""

    from_address: str
    subject: str
    message_id: str
    html: str = ""
    text: str = ""
    to_addresses: list[str] = field(default_factory=list)

    # Parsing metadata
    parse_errors: list[str] = field(default_factory=list)


def _extract_address(header_value: str) -> str:
    """
    Extract email address from a header value.

    Handles formats like:
    - "Jane Doe <jane@example.com>"
    - "<jane@example.com>"
    - "jane@example.com"
    """
    if not header_value:
        return ""

    match = re.search(r"<([^>]+)>", header_value)
    if match:
        return match.group(1).strip()

    return header_value.strip()


def _extract_addresses(header_value: str | None) -> list[str]:
    """Extract multiple email addresses from a header (e.g., To)."""
    if not header_value:
        return []

    return [addr for addr in (_extract_address(part) for part in header_value.split(",")) if addr]


def _decode_part(part: EmailMessage) -> str:
    payload = part.get_payload(decode=True)
    if not payload:
        return ""

    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def _extract_bodies(msg: EmailMessage) -> tuple[str, str]:
    """
    Return the first inline text/html and text/plain parts.

    Attachments are ignored; forwarded ComplianceGo reports carry the
    report as inline content.
    """
    html = ""
    text = ""

    for part in msg.walk():
        if part.is_multipart():
            continue
        if "attachment" in str(part.get("Content-Disposition", "")):
            continue

        content_type = part.get_content_type()
        if content_type == "text/html" and not html:
            html = _decode_part(part)
        elif content_type == "text/plain" and not text:
            text = _decode_part(part)

    return html, text


def parse_raw_email(raw_email: str | bytes) -> ParsedEmail:
    """
    Parse raw email content (MIME format).

    Args:
        raw_email: Raw email content as string or bytes

    Returns:
        ParsedEmail; parse_errors is non-empty when nothing usable was found
    """
    raw_bytes = raw_email.encode("utf-8") if isinstance(raw_email, str) else raw_email

    try:
        msg = email.message_from_bytes(raw_bytes, policy=default_policy)
    except Exception as e:
        log.error("email_parse_failed", error=str(e))
        return ParsedEmail(
            from_address="",
            subject="",
            message_id="",
            parse_errors=[f"Failed to parse email: {e}"],
        )

    html, text = _extract_bodies(msg)
    parse_errors = [] if html or text else ["Could not extract email body"]

    return ParsedEmail(
        from_address=_extract_address(str(msg.get("From", "") or "")),
        subject=str(msg.get("Subject", "") or ""),
        message_id=str(msg.get("Message-ID", "") or ""),
        html=html,
        text=text,
        to_addresses=_extract_addresses(str(msg.get("To", "") or "")),
        parse_errors=parse_errors,
    )


def decode_embedded_content(content: str) -> bytes:
    """
    Turn the SES "content" field into raw MIME bytes.

    SES embeds the message base64-encoded; test fixtures and some
    configurations embed it as plain text.
    """
    raw = content.encode("utf-8")
    if MIME_HEADER_PATTERN.match(raw):
        return raw

    try:
        return base64.b64decode(content, validate=False)
    except (binascii.Error, ValueError):
        log.warning("embedded_content_not_base64", length=len(content))
        return raw


def extract_s3_reference(ses_message: dict[str, Any]) -> tuple[str, str] | None:
    """
    Extract S3 bucket/key from the SES receipt action.

    Returns:
        Tuple of (bucket, key), or None when the content is embedded
    """
    action = ses_message.get("receipt", {}).get("action", {})

    if action.get("type") == "S3":
        return action.get("bucketName"), action.get(
            "objectKey", action.get("objectKeyPrefix", "")
        )

    return None
