"""
Email Tools

SES operations: send a notification, forward an inbound message.
"""

import email
from email.policy import default as default_policy
from email.utils import formataddr

import boto3
from botocore.exceptions import ClientError
import structlog

from inspections.shared.config import get_settings
from inspections.shared.exceptions import SESError

log = structlog.get_logger()

# Headers that SES rejects or that would misattribute a forwarded message
STRIPPED_FORWARD_HEADERS = (
    "DKIM-Signature",
    "Return-Path",
    "Sender",
    "Message-ID",
)


def _get_client():
    """Get SES client."""
    settings = get_settings()
    return boto3.client("ses", **settings.ses_config)


def _source_address(from_address: str | None, from_name: str | None) -> str:
    settings = get_settings()
    sender = from_address or settings.ses_from_address
    sender_name = from_name or settings.ses_from_name
    return formataddr((sender_name, sender)) if sender_name else sender


def send_ses_email(
    to_address: str,
    subject: str,
    body_text: str,
    *,
    body_html: str | None = None,
    from_address: str | None = None,
    from_name: str | None = None,
) -> str:
    """
    Send an email via SES.

    Args:
        to_address: Recipient email address
        subject: Email subject
        body_text: Plain text body
        body_html: Optional HTML body
        from_address: Override from address
        from_name: Override from display name

    Returns:
        SES message ID

    Raises:
        SESError: If send fails
    """
    client = _get_client()

    message_body = {"Text": {"Data": body_text, "Charset": "UTF-8"}}
    if body_html:
        message_body["Html"] = {"Data": body_html, "Charset": "UTF-8"}

    send_params = {
        "Source": _source_address(from_address, from_name),
        "Destination": {"ToAddresses": [to_address]},
        "Message": {
            "Subject": {"Data": subject, "Charset": "UTF-8"},
            "Body": message_body,
        },
    }

    log.info(
        "sending_ses_email",
        to=to_address,
        subject=subject[:50],
    )

    try:
        response = client.send_email(**send_params)
        message_id = response["MessageId"]

        log.info(
            "ses_email_sent",
            message_id=message_id,
            to=to_address,
        )

        return message_id

    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        error_message = e.response["Error"]["Message"]

        log.error(
            "ses_send_failed",
            to=to_address,
            error_code=error_code,
            error_message=error_message,
        )

        raise SESError(
            operation="send",
            recipient=to_address,
            error_message=f"{error_code}: {error_message}",
        ) from e


def build_forward_message(
    raw_email: bytes,
    *,
    source: str,
) -> bytes:
    """
    Rewrite an inbound MIME message so SES will relay it.

    The original sender moves to Reply-To and the verified source address
    becomes From. Body and attachments are left untouched.
    """
    msg = email.message_from_bytes(raw_email, policy=default_policy)
    original_from = msg.get("From", "")

    for header in STRIPPED_FORWARD_HEADERS:
        del msg[header]
    del msg["From"]
    msg["From"] = source

    if original_from and "Reply-To" not in msg:
        msg["Reply-To"] = original_from

    return msg.as_bytes()


def forward_raw_email(
    raw_email: bytes,
    to_address: str,
    *,
    from_address: str | None = None,
    from_name: str | None = None,
) -> str:
    """
    Forward an inbound message unchanged apart from its sender headers.

    Returns:
        SES message ID

    Raises:
        SESError: If SES rejects the message
    """
    client = _get_client()
    source = _source_address(from_address, from_name)
    data = build_forward_message(raw_email, source=source)

    log.info("forwarding_email", to=to_address, size_bytes=len(data))

    try:
        response = client.send_raw_email(
            Source=source,
            Destinations=[to_address],
            RawMessage={"Data": data},
        )
    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        error_message = e.response["Error"]["Message"]
        log.error(
            "ses_forward_failed",
            to=to_address,
            error_code=error_code,
            error_message=error_message,
        )
        raise SESError(
            operation="forward",
            recipient=to_address,
            error_message=f"{error_code}: {error_message}",
        ) from e

    message_id = response["MessageId"]
    log.info("email_forwarded", message_id=message_id, to=to_address)
    return message_id
