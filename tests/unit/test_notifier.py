"""
Unit tests for the outcome notifier.
"""

from unittest.mock import MagicMock, patch

import pytest

from inspections.router.notifier import format_notification, notify
from inspections.shared.exceptions import SESError
from inspections.shared.models import REASON_EXTRACTION_FAILED, PipelineOutcome
from inspections.shared.state_machine import PipelineStatus

FOLDER = "SWPPP/INSPECTIONS/PROJECTS/PROJECTS A-M/ARCO/KTEC PHX/2026"


def _outcome(status: PipelineStatus, **fields) -> PipelineOutcome:
    base = dict(
        status=status,
        site_name="ARCO - KTEC PHX",
        report_url="https://cdn3.compliancego.com/reports/r.html",
        contractor="ARCO",
        project="KTEC PHX",
        folder_path=FOLDER,
        filename="01.21.26.pdf",
    )
    base.update(fields)
    return PipelineOutcome(**base)


class TestFormatNotification:
    """Tests for format_notification."""

    def test_uploaded(self):
        subject, text, html = format_notification(
            _outcome(PipelineStatus.UPLOADED, web_url="https://sharepoint.example/f.pdf")
        )

        assert "uploaded" in subject
        assert "ARCO - KTEC PHX (01.21.26.pdf)" in subject
        assert "Contractor: ARCO" in text
        assert "Project: KTEC PHX" in text
        assert "File: 01.21.26.pdf" in text
        assert f"Folder: {FOLDER}" in text
        assert "Link: https://sharepoint.example/f.pdf" in text
        assert "https://sharepoint.example/f.pdf" in html

    def test_skipped(self):
        subject, text, _ = format_notification(
            _outcome(PipelineStatus.SKIPPED, web_url="https://sharepoint.example/f.pdf")
        )

        assert "already archived" in subject
        assert "Link: https://sharepoint.example/f.pdf" in text

    def test_failed_includes_error(self):
        subject, text, html = format_notification(
            _outcome(
                PipelineStatus.FAILED,
                error="Render failed (HTTP 503)",
                reason="render_failed",
                attempts=5,
            )
        )

        assert "failed" in subject
        assert "Error: Render failed (HTTP 503)" in text
        assert "Reason: render_failed" in text
        assert "Attempts: 5" in text
        assert "Link:" not in text
        assert "Render failed (HTTP 503)" in html

    def test_unroutable_uses_site_name(self):
        outcome = PipelineOutcome(
            status=PipelineStatus.FAILED,
            site_name="InvalidSiteName",
            report_url="https://cdn3.compliancego.com/reports/r.html",
            error="Could not determine folder",
            reason="unroutable",
        )

        subject, text, _ = format_notification(outcome)

        assert subject.endswith("InvalidSiteName")
        assert "Contractor: -" in text

    def test_extraction_failure_has_own_headline(self):
        outcome = PipelineOutcome(
            status=PipelineStatus.FAILED,
            site_name="ARCO - KTEC PHX",
            report_url="",
            error="Missing report_url",
            reason=REASON_EXTRACTION_FAILED,
        )

        subject, text, _ = format_notification(outcome)

        assert subject == "[Inspection Router] Inspection email could not be read: ARCO - KTEC PHX"
        assert "Report: -" in text
        assert "Reason: extraction_failed" in text
        assert "Error: Missing report_url" in text

    def test_html_escaped(self):
        _, _, html = format_notification(
            _outcome(PipelineStatus.FAILED, error="<script>x</script>", reason="upload_failed")
        )
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestNotify:
    """Tests for notify."""

    def test_sends_to_recipient(self):
        send = MagicMock(return_value="msg-1")
        outcome = _outcome(PipelineStatus.UPLOADED, web_url="https://sharepoint.example/f.pdf")

        assert notify(outcome, to_address="ops@example.com", send=send) is True

        args, kwargs = send.call_args
        assert args[0] == "ops@example.com"
        assert "uploaded" in args[1]
        assert kwargs["body_html"]

    def test_defaults_to_configured_recipient(self):
        send = MagicMock(return_value="msg-1")

        notify(_outcome(PipelineStatus.SKIPPED), send=send)

        assert send.call_args.args[0] == "coordinator@example.com"

    def test_disabled_without_recipient(self):
        send = MagicMock()
        settings = MagicMock(notify_to_address=None)

        with patch("inspections.router.notifier.get_settings", return_value=settings):
            assert notify(_outcome(PipelineStatus.UPLOADED), send=send) is False

        send.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [SESError(operation="send", recipient="ops@example.com", error_message="Throttling"), RuntimeError("boom")],
    )
    def test_send_failure_swallowed(self, error):
        send = MagicMock(side_effect=error)

        assert notify(_outcome(PipelineStatus.FAILED, error="x"), to_address="ops@example.com", send=send) is False
