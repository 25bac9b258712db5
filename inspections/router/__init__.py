# Inspection Router Core
"""
Routing logic for inspection-report emails.

- Site name parsing and SharePoint path resolution
- ComplianceGo email extraction
- Render-and-upload pipeline with retry policy
- Outcome notification and background task runner
"""

from inspections.router.site_names import (
    build_storage_path,
    format_filename,
    get_alphabetic_bucket,
    parse_site_name,
    resolve_storage_path,
)
from inspections.router.extractor import (
    extract_inspection,
    parse_inspection_date,
    should_process_email,
)
from inspections.router.retry import (
    RenderRetryState,
    classify_failure,
    compute_backoff,
    render_with_retry,
)
from inspections.router.pipeline import InspectionPipeline
from inspections.router.notifier import format_notification, notify
from inspections.router.background import BackgroundTasks

__all__ = [
    # Site names
    "parse_site_name",
    "get_alphabetic_bucket",
    "build_storage_path",
    "resolve_storage_path",
    "format_filename",
    # Extraction
    "extract_inspection",
    "parse_inspection_date",
    "should_process_email",
    # Retry
    "RenderRetryState",
    "classify_failure",
    "compute_backoff",
    "render_with_retry",
    # Pipeline
    "InspectionPipeline",
    "format_notification",
    "notify",
    "BackgroundTasks",
]
