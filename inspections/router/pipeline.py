"""
Render-and-Upload Pipeline

Takes one extracted inspection to a PDF in SharePoint:

1. Resolve the destination folder and filename from the site name
2. Skip if that file is already in the folder
3. Render the report URL to PDF (retried with backoff)
4. Upload the PDF
5. Hand the outcome to the notifier

Every run ends in exactly one PipelineOutcome and one notification; the
pipeline never raises to its caller.
"""

import random
from typing import Callable, Protocol

import structlog

from inspections.router.retry import (
    RenderRetryState,
    build_render_retrying,
    render_with_retry,
)
from inspections.router.site_names import (
    format_filename,
    parse_site_name,
    resolve_storage_path,
)
from inspections.shared.config import Settings, get_settings
from inspections.shared.exceptions import UnroutableSiteError
from inspections.shared.models import (
    REASON_RENDER_FAILED,
    REASON_UNROUTABLE,
    REASON_UPLOAD_FAILED,
    InspectionRecord,
    PipelineOutcome,
    StoreItem,
    UploadResult,
)
from inspections.shared.state_machine import PipelineStatus, validate_transition

log = structlog.get_logger()


class DocumentStore(Protocol):
    """Folder listing and upload capability of the archive."""

    def list_folder(self, folder_path: str) -> list[StoreItem]: ...

    def put_file(
        self,
        folder_path: str,
        file_name: str,
        content: bytes,
        *,
        content_type: str = "application/pdf",
    ) -> UploadResult: ...


class PdfRenderer(Protocol):
    """Single-attempt URL to PDF capability."""

    def render_pdf(self, url: str) -> bytes: ...


class RunStatus:
    """Current status of one run; every move is checked against the state machine."""

    def __init__(self, status: PipelineStatus = PipelineStatus.PENDING) -> None:
        self.status = status

    def advance(self, new_status: PipelineStatus) -> PipelineStatus:
        validate_transition(self.status, new_status)
        self.status = new_status
        return new_status


class InspectionPipeline:
    """
    Runs inspections through resolve, check, render and upload.

    Holds no per-inspection state, so one instance can serve concurrent runs.

    Usage:
        pipeline = InspectionPipeline(SharePointClient(), BrowserRenderingClient(),
                                      notify=notify)
        outcome = pipeline.run(inspection)
    """

    def __init__(
        self,
        store: DocumentStore,
        renderer: PdfRenderer,
        *,
        notify: Callable[[PipelineOutcome], object] | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], None] | None = None,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._store = store
        self._renderer = renderer
        self._notify = notify
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._rng = rng

    def run(self, inspection: InspectionRecord) -> PipelineOutcome:
        """Process one inspection and notify its outcome."""
        outcome = self._process(inspection)

        log.info("inspection_pipeline_finished", **outcome.to_dict())

        if self._notify is not None:
            self._notify(outcome)
        return outcome

    def _process(self, inspection: InspectionRecord) -> PipelineOutcome:
        site_name = inspection.site_name
        report_url = inspection.report_url

        log.info(
            "inspection_pipeline_started",
            site_name=site_name,
            report_url=report_url,
            inspection_date=inspection.inspection_date.date().isoformat(),
        )

        run_status = RunStatus()
        folder_path = resolve_storage_path(site_name, inspection.inspection_date.year)
        identity = parse_site_name(site_name)
        if folder_path is None or identity is None:
            run_status.advance(PipelineStatus.FAILED)
            error = UnroutableSiteError(site_name)
            log.error("inspection_unroutable", site_name=site_name, report_url=report_url)
            return PipelineOutcome(
                status=run_status.status,
                site_name=site_name,
                report_url=report_url,
                error=str(error),
                reason=REASON_UNROUTABLE,
            )

        run_status.advance(PipelineStatus.PATH_RESOLVED)
        return self.deliver(
            site_name=site_name,
            report_url=report_url,
            contractor=identity.contractor,
            project=identity.project,
            folder_path=folder_path,
            filename=format_filename(inspection.inspection_date),
            run_status=run_status,
        )

    def deliver(
        self,
        *,
        site_name: str,
        report_url: str,
        contractor: str,
        project: str,
        folder_path: str,
        filename: str,
        run_status: RunStatus | None = None,
    ) -> PipelineOutcome:
        """
        Check, render and upload to an already-resolved destination.

        Also the entry point for manual re-runs, where the destination comes
        from the operator rather than from a site name.
        """
        run_status = run_status or RunStatus(PipelineStatus.PATH_RESOLVED)
        bound = log.bind(
            site_name=site_name,
            report_url=report_url,
            folder_path=folder_path,
            filename=filename,
        )

        def outcome(status: PipelineStatus, **fields) -> PipelineOutcome:
            return PipelineOutcome(
                status=run_status.advance(status),
                site_name=site_name,
                report_url=report_url,
                contractor=contractor,
                project=project,
                folder_path=folder_path,
                filename=filename,
                **fields,
            )

        existing = self._find_existing(folder_path, filename)
        run_status.advance(PipelineStatus.EXISTS_CHECKED)
        if existing is not None:
            bound.info("inspection_already_archived", web_url=existing.web_url)
            return outcome(PipelineStatus.SKIPPED, web_url=existing.web_url or None)

        run_status.advance(PipelineStatus.RENDERING)
        state = RenderRetryState(max_attempts=self._settings.render_max_attempts)
        retrying = build_render_retrying(self._settings, sleep=self._sleep, rng=self._rng)

        try:
            pdf = render_with_retry(
                self._renderer.render_pdf, report_url, retrying=retrying, state=state
            )
        except Exception as e:
            bound.error(
                "inspection_render_failed",
                attempts=state.attempt,
                error=str(e),
                error_type=type(e).__name__,
            )
            return outcome(
                PipelineStatus.FAILED,
                error=str(e),
                reason=REASON_RENDER_FAILED,
                attempts=state.attempt,
            )

        run_status.advance(PipelineStatus.RENDERED)
        bound.info("inspection_rendered", attempts=state.attempt, size_bytes=len(pdf))

        run_status.advance(PipelineStatus.UPLOADING)
        try:
            result = self._store.put_file(folder_path, filename, pdf, content_type="application/pdf")
        except Exception as e:
            bound.error("inspection_upload_failed", error=str(e), error_type=type(e).__name__)
            return outcome(
                PipelineStatus.FAILED,
                error=str(e),
                reason=REASON_UPLOAD_FAILED,
                attempts=state.attempt,
            )

        bound.info("inspection_uploaded", web_url=result.web_url)
        return outcome(PipelineStatus.UPLOADED, web_url=result.web_url, attempts=state.attempt)

    def _find_existing(self, folder_path: str, filename: str) -> StoreItem | None:
        """
        Look for the target file in its folder.

        Best effort: a failed listing counts as "not there" so the upload
        still goes ahead.
        """
        try:
            items = self._store.list_folder(folder_path)
        except Exception as e:
            log.warning(
                "existing_file_check_failed",
                folder_path=folder_path,
                error=str(e),
                action="proceeding_with_upload",
            )
            return None

        return next(
            (item for item in items if item.name == filename and not item.is_folder),
            None,
        )
