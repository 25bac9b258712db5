"""
Shared Models

Immutable values passed between the extractor, the path resolver,
the pipeline and the notifier.
"""

from dataclasses import dataclass
from datetime import datetime

from inspections.shared.state_machine import PipelineStatus


@dataclass(frozen=True)
class SiteIdentity:
    """Contractor and project parsed from a vendor site name."""

    contractor: str  # Upper-cased
    project: str     # Original case


@dataclass(frozen=True)
class InspectionRecord:
    """
    Inspection details extracted from one notification email.

    inspection_date carries a fixed 12:00 time of day; only the calendar
    date is meaningful.
    """

    site_name: str
    site_address: str
    report_url: str
    inspection_date: datetime


@dataclass(frozen=True)
class StoreItem:
    """One entry of a document-store folder listing."""

    name: str
    is_folder: bool
    id: str
    web_url: str
    size: int | None = None


@dataclass(frozen=True)
class UploadResult:
    """Location of a file written to the document store."""

    id: str
    web_url: str


# Failure reasons reported on PipelineOutcome.reason
REASON_UNROUTABLE = "unroutable"
REASON_EXTRACTION_FAILED = "extraction_failed"
REASON_RENDER_FAILED = "render_failed"
REASON_UPLOAD_FAILED = "upload_failed"


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal result of one render-and-upload run."""

    status: PipelineStatus
    site_name: str
    report_url: str
    contractor: str | None = None
    project: str | None = None
    folder_path: str | None = None
    filename: str | None = None
    web_url: str | None = None
    error: str | None = None
    reason: str | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        """True for both a fresh upload and an idempotent skip."""
        return self.status in (PipelineStatus.UPLOADED, PipelineStatus.SKIPPED)

    @property
    def skipped(self) -> bool:
        return self.status == PipelineStatus.SKIPPED

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and Lambda responses."""
        return {
            "status": self.status.value,
            "site_name": self.site_name,
            "report_url": self.report_url,
            "contractor": self.contractor,
            "project": self.project,
            "folder_path": self.folder_path,
            "filename": self.filename,
            "web_url": self.web_url,
            "error": self.error,
            "reason": self.reason,
            "attempts": self.attempts,
        }
