"""
Outcome Notifier

Emails a human one message per pipeline run: uploaded, already archived,
or failed. Delivery problems are logged and never reach the pipeline.
"""

from html import escape
from typing import Callable

import structlog

from inspections.shared.config import get_settings
from inspections.shared.models import REASON_EXTRACTION_FAILED, PipelineOutcome
from inspections.shared.state_machine import PipelineStatus
from inspections.shared.tools.email import send_ses_email

log = structlog.get_logger()

SUBJECT_PREFIX = "[Inspection Router]"

STATUS_HEADLINES = {
    PipelineStatus.UPLOADED: "Inspection report uploaded",
    PipelineStatus.SKIPPED: "Inspection report already archived",
    PipelineStatus.FAILED: "Inspection report upload failed",
}

# Failures that happen before a report could be located
REASON_HEADLINES = {
    REASON_EXTRACTION_FAILED: "Inspection email could not be read",
}


def _detail_rows(outcome: PipelineOutcome) -> list[tuple[str, str]]:
    rows = [
        ("Site", outcome.site_name),
        ("Contractor", outcome.contractor or "-"),
        ("Project", outcome.project or "-"),
        ("File", outcome.filename or "-"),
        ("Folder", outcome.folder_path or "-"),
        ("Report", outcome.report_url or "-"),
    ]

    if outcome.status == PipelineStatus.FAILED:
        rows.append(("Reason", outcome.reason or "unknown"))
        rows.append(("Error", outcome.error or "unknown error"))
        if outcome.attempts:
            rows.append(("Attempts", str(outcome.attempts)))
    else:
        rows.append(("Link", outcome.web_url or "-"))

    return rows


def format_notification(outcome: PipelineOutcome) -> tuple[str, str, str]:
    """
    Build the notification for a pipeline outcome.

    Args:
        outcome: Terminal outcome of one pipeline run

    Returns:
        Tuple of (subject, plain text body, HTML body)
    """
    headline = REASON_HEADLINES.get(outcome.reason) or STATUS_HEADLINES.get(
        outcome.status, f"Inspection report {outcome.status.value}"
    )
    if outcome.contractor and outcome.project:
        label = f"{outcome.contractor} - {outcome.project} ({outcome.filename})"
    else:
        label = outcome.site_name

    subject = f"{SUBJECT_PREFIX} {headline}: {label}"

    rows = _detail_rows(outcome)
    body_text = "\n".join([headline, ""] + [f"{name}: {value}" for name, value in rows])

    html_rows = "".join(
        f"<tr><th align=\"left\">{escape(name)}</th><td>{escape(value)}</td></tr>"
        for name, value in rows
    )
    body_html = f"<p><strong>{escape(headline)}</strong></p><table>{html_rows}</table>"

    return subject, body_text, body_html


def notify(
    outcome: PipelineOutcome,
    *,
    to_address: str | None = None,
    from_address: str | None = None,
    from_name: str | None = None,
    send: Callable[..., str] = send_ses_email,
) -> bool:
    """
    Send the notification for an outcome.

    Args:
        outcome: Terminal outcome of one pipeline run
        to_address: Recipient; defaults to the configured notification address
        send: Email sender, called like send_ses_email

    Returns:
        True if a message was sent, False if disabled or delivery failed
    """
    recipient = to_address or get_settings().notify_to_address
    if not recipient:
        log.info("notification_disabled", status=outcome.status.value, site_name=outcome.site_name)
        return False

    subject, body_text, body_html = format_notification(outcome)

    try:
        message_id = send(
            recipient,
            subject,
            body_text,
            body_html=body_html,
            from_address=from_address,
            from_name=from_name,
        )
    except Exception as e:
        log.error(
            "notification_failed",
            to_address=recipient,
            status=outcome.status.value,
            site_name=outcome.site_name,
            error=str(e),
        )
        return False

    log.info(
        "notification_sent",
        to_address=recipient,
        status=outcome.status.value,
        message_id=message_id,
    )
    return True
