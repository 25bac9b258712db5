"""
RouteInspectionEmail Lambda Handler

Main entry point for inbound mail addressed to the inspection router.
Archives ComplianceGo inspection reports to SharePoint and forwards every
email on to the shared inbox.

Trigger: SNS topic subscribed to an SES receipt rule
Output: PDF in SharePoint, notification email, forwarded original

Flow:
1. Parse SNS notification (skip Bounce/Complaint)
2. Obtain raw MIME (embedded or from S3)
3. Check the sender against the allow-list
4. Extract site name, report URL and inspection date
   (an allowed sender whose email cannot be read is reported to the notifier)
5. Start the render-and-upload pipeline in the background
6. Forward the original email (always, whatever the pipeline does)
7. Wait for background pipelines before returning
"""

import json
import logging
from concurrent.futures import Future
from typing import Any

import structlog
from botocore.exceptions import ClientError

from inspections.router.background import BackgroundTasks
from inspections.router.extractor import (
    extract_inspection,
    find_missing_fields,
    should_process_email,
)
from inspections.router.notifier import notify
from inspections.router.pipeline import InspectionPipeline
from inspections.shared.config import get_settings
from inspections.shared.models import REASON_EXTRACTION_FAILED, InspectionRecord, PipelineOutcome
from inspections.shared.state_machine import PipelineStatus
from inspections.shared.tools.email import forward_raw_email
from inspections.shared.tools.renderer import BrowserRenderingClient
from inspections.shared.tools.s3 import fetch_email_from_s3
from inspections.shared.tools.sharepoint import SharePointClient
from lambdas.route_inspection_email.email_parser import (
    ParsedEmail,
    decode_embedded_content,
    extract_s3_reference,
    parse_raw_email,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)
logging.getLogger().setLevel(get_settings().log_level)

log = structlog.get_logger()

# Time kept back from the Lambda deadline when draining background work
DRAIN_SAFETY_MARGIN_SECONDS = 5.0

_pipeline: InspectionPipeline | None = None


def _get_pipeline() -> InspectionPipeline:
    """Get the pipeline, reusing its clients across warm invocations."""
    global _pipeline
    if _pipeline is None:
        _pipeline = InspectionPipeline(
            SharePointClient(),
            BrowserRenderingClient(),
            notify=notify,
        )
    return _pipeline


def _run_pipeline(inspection: InspectionRecord) -> PipelineOutcome:
    return _get_pipeline().run(inspection)


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {"statusCode": status_code, "body": json.dumps(body)}


def _drain_timeout(context: Any) -> float:
    """Seconds available for background work before the Lambda deadline."""
    limit = get_settings().background_drain_seconds
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if callable(remaining_ms):
        limit = min(limit, remaining_ms() / 1000 - DRAIN_SAFETY_MARGIN_SECONDS)
    return max(0.0, limit)


def _forward(raw_email: bytes, message_id: str) -> dict[str, Any]:
    """Forward the original email; failures are reported, never raised."""
    to_address = get_settings().forward_to_address

    try:
        forward_id = forward_raw_email(raw_email, to_address)
    except Exception as e:
        log.error("email_forward_failed", message_id=message_id, to=to_address, error=str(e))
        return {"forwarded": False, "forward_error": str(e)}

    return {"forwarded": True, "forward_message_id": forward_id}


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for routing inbound inspection emails.

    Args:
        event: SNS event containing SES notification
        context: Lambda context

    Returns:
        Response dict with processing status
    """
    request_id = getattr(context, "aws_request_id", "local")

    log.info(
        "processing_inbound_email",
        request_id=request_id,
        event_keys=list(event.keys()),
    )

    tasks = BackgroundTasks()
    try:
        # Handle SNS Records format (Lambda trigger)
        if "Records" in event:
            results = [
                _process_sns_record(record, request_id, tasks) for record in event["Records"]
            ]
        # Handle direct SNS message (for testing)
        elif "Message" in event:
            results = [_process_ses_message(json.loads(event["Message"]), request_id, tasks)]
        # Handle raw SES notification (for testing)
        elif "mail" in event or "content" in event:
            results = [_process_ses_message(event, request_id, tasks)]
        else:
            log.error("unknown_event_format", event_keys=list(event.keys()))
            return _response(400, {"error": "Unknown event format"})

        tasks.drain(timeout=_drain_timeout(context))

    except Exception as e:
        log.error("lambda_handler_failed", error=str(e), exc_info=True)
        return _response(500, {"error": str(e)})
    finally:
        tasks.shutdown()

    bodies = [_finalize(body, future) for body, future in results]
    status_code = 500 if any(body["status"] == "error" for body in bodies) else 200

    if len(bodies) == 1:
        return _response(status_code, bodies[0])
    return _response(status_code, {"status": "batch", "results": bodies})


def _finalize(body: dict[str, Any], future: Future | None) -> dict[str, Any]:
    """Attach the pipeline outcome once its background task has finished."""
    if future is None:
        return body

    if not future.done():
        body["pipeline"] = {"status": "running"}
    elif future.exception() is not None:
        body["pipeline"] = {"status": "error", "error": str(future.exception())}
    else:
        body["pipeline"] = future.result().to_dict()
    return body


def _extraction_failure(
    parsed: ParsedEmail, missing: list[str], found: dict[str, str]
) -> PipelineOutcome:
    """Outcome for an allowed sender's email that could not be read as an inspection."""
    problems = list(parsed.parse_errors)
    if missing:
        problems.append(f"Missing {', '.join(missing)}")

    return PipelineOutcome(
        status=PipelineStatus.FAILED,
        site_name=found.get("site_name") or parsed.subject or "(unknown site)",
        report_url=found.get("report_url", ""),
        error="; ".join(problems) or "Extraction failed",
        reason=REASON_EXTRACTION_FAILED,
    )


def _process_sns_record(
    record: dict[str, Any], request_id: str, tasks: BackgroundTasks
) -> tuple[dict[str, Any], Future | None]:
    """Process a single SNS record from Lambda event."""
    message = record.get("Sns", {}).get("Message", "{}")

    try:
        ses_message = json.loads(message)
    except json.JSONDecodeError as e:
        log.error("sns_message_parse_failed", error=str(e))
        return {"status": "error", "error": "Invalid SNS message JSON"}, None

    return _process_ses_message(ses_message, request_id, tasks)


def _load_raw_email(ses_message: dict[str, Any]) -> bytes | None:
    s3_ref = extract_s3_reference(ses_message)
    if s3_ref:
        bucket, key = s3_ref
        log.info("email_stored_in_s3", bucket=bucket, key=key)
        return fetch_email_from_s3(bucket, key)

    content = ses_message.get("content")
    if content:
        return decode_embedded_content(content)

    return None


def _process_ses_message(
    ses_message: dict[str, Any], request_id: str, tasks: BackgroundTasks
) -> tuple[dict[str, Any], Future | None]:
    """
    Process one SES notification.

    Returns the response body and, when an inspection was dispatched, the
    future of its background pipeline run.
    """
    notification_type = ses_message.get("notificationType")
    message_id = ses_message.get("mail", {}).get("messageId", "")

    if notification_type in ("Bounce", "Complaint"):
        log.info("received_delivery_notification", type=notification_type, message_id=message_id)
        return {
            "status": "skipped",
            "reason": f"{notification_type} notification - not an inbound email",
        }, None

    try:
        raw_email = _load_raw_email(ses_message)
    except ClientError as e:
        return {"status": "error", "error": f"Failed to fetch email from S3: {e}"}, None

    if raw_email is None:
        log.error("email_content_missing", message_id=message_id, request_id=request_id)
        return {"status": "error", "error": "Email content not embedded and not in S3"}, None

    parsed = parse_raw_email(raw_email)
    message_id = parsed.message_id or message_id
    settings = get_settings()

    log.info(
        "inbound_email_parsed",
        request_id=request_id,
        message_id=message_id,
        from_address=parsed.from_address,
        subject=parsed.subject[:80],
    )

    if not should_process_email(parsed.from_address, settings.allowed_senders):
        log.info("sender_not_allowed", from_address=parsed.from_address)
        return {"status": "forwarded", "reason": "sender_not_allowed", **_forward(raw_email, message_id)}, None

    try:
        inspection = extract_inspection(parsed.html, parsed.text)
    except Exception as e:
        log.error("inspection_extraction_error", message_id=message_id, error=str(e), exc_info=True)
        inspection = None

    if inspection is None:
        missing, found = find_missing_fields(parsed.html, parsed.text)
        log.warning(
            "inspection_parse_failed",
            message_id=message_id,
            subject=parsed.subject[:80],
            missing_fields=missing,
            parse_errors=parsed.parse_errors,
        )
        notified = notify(_extraction_failure(parsed, missing, found))
        return {
            "status": "forwarded",
            "reason": REASON_EXTRACTION_FAILED,
            "missing_fields": missing,
            "notified": notified,
            **_forward(raw_email, message_id),
        }, None

    log.info(
        "inspection_detected",
        site_name=inspection.site_name,
        report_url=inspection.report_url,
        inspection_date=inspection.inspection_date.date().isoformat(),
    )

    future = tasks.spawn(_run_pipeline, inspection)
    body = {
        "status": "processed",
        "inspection": {
            "site_name": inspection.site_name,
            "site_address": inspection.site_address,
            "report_url": inspection.report_url,
            "inspection_date": inspection.inspection_date.date().isoformat(),
        },
        **_forward(raw_email, message_id),
    }
    return body, future
