#!/usr/bin/env python3
"""
Manual Inspection Upload

Re-runs the render-and-upload chain for an inspection whose email was missed
or whose automatic run failed. Safe to repeat: an existing file is left alone.

Usage:
    # Upload today's report
    python scripts/manual_upload.py "https://cdn3.compliancego.com/..." "BPR COMPANIES" "PV LOT C3"

    # Upload under a specific inspection date
    python scripts/manual_upload.py "<report-url>" "BPR COMPANIES" "PV LOT C3" --date 2026-01-21

    # Show the destination without touching SharePoint
    python scripts/manual_upload.py "<report-url>" "BPR COMPANIES" "PV LOT C3" --dry-run

Azure and Cloudflare credentials come from INSPECTIONS_* variables or .env.

Exit codes: 0 uploaded or already present, 1 failed.
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import structlog

from inspections.router.pipeline import InspectionPipeline
from inspections.router.site_names import build_storage_path, format_filename
from inspections.shared.config import get_settings
from inspections.shared.models import SiteIdentity
from inspections.shared.tools.renderer import BrowserRenderingClient
from inspections.shared.tools.sharepoint import SharePointClient

log = structlog.get_logger()


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render an inspection report and upload it to SharePoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("report_url", help="ComplianceGo report URL")
    parser.add_argument("contractor", help="Contractor folder name, e.g. 'BPR COMPANIES'")
    parser.add_argument("project", help="Project folder name, e.g. 'PV LOT C3'")
    parser.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help="Inspection date (YYYY-MM-DD); defaults to today",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the destination and exit",
    )
    return parser


def main(argv: list[str] | None = None, pipeline: InspectionPipeline | None = None) -> int:
    args = build_parser().parse_args(argv)

    identity = SiteIdentity(contractor=args.contractor.strip().upper(), project=args.project.strip())
    if not identity.contractor or not identity.project:
        print("Contractor and project must not be blank", file=sys.stderr)
        return 1

    inspection_date = args.date or date.today()
    folder_path = build_storage_path(identity, inspection_date.year)
    filename = format_filename(inspection_date)

    print(f"\nDestination: {folder_path}/{filename}")

    if args.dry_run:
        print("Dry run, nothing uploaded")
        return 0

    if pipeline is None:
        settings = get_settings()
        if not settings.graph_configured:
            print("Missing Azure credentials in environment", file=sys.stderr)
            return 1
        pipeline = InspectionPipeline(SharePointClient(settings), BrowserRenderingClient(settings))

    outcome = pipeline.deliver(
        site_name=f"{identity.contractor} - {identity.project}",
        report_url=args.report_url,
        contractor=identity.contractor,
        project=identity.project,
        folder_path=folder_path,
        filename=filename,
    )
    log.info("manual_upload_finished", **outcome.to_dict())

    if outcome.skipped:
        print("\nFile already exists in SharePoint")
        if outcome.web_url:
            print(f"URL: {outcome.web_url}")
        return 0

    if outcome.succeeded:
        print(f"\nUploaded successfully after {outcome.attempts} render attempt(s)")
        print(f"URL: {outcome.web_url}")
        return 0

    print(f"\nUpload failed ({outcome.reason}): {outcome.error}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
