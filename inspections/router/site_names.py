"""
Site Name Routing

Turns a vendor "Site/Location Name" into the SharePoint folder its
inspection reports are archived under.

    "ARCO - KTEC PHX", 2026
    -> "SWPPP/INSPECTIONS/PROJECTS/PROJECTS A-M/ARCO/KTEC PHX/2026"

The folder layout predates this service, so generated paths must match the
existing tree exactly.
"""

from datetime import date, datetime
from typing import Final

from inspections.shared.models import SiteIdentity

INSPECTIONS_ROOT: Final = "SWPPP/INSPECTIONS/PROJECTS"

# Contractor folders are split into two buckets by first character
BUCKET_LOW: Final = "PROJECTS A-M"
BUCKET_HIGH: Final = "PROJECTS N-Z"

# Checked in order; the spaced form cannot collide with hyphenated names
SITE_NAME_SEPARATORS: Final[tuple[str, ...]] = (" - ", "-")

REPORT_EXTENSION: Final = "pdf"


def parse_site_name(site_name: str) -> SiteIdentity | None:
    """
    Split a site name into contractor and project.

    The contractor is everything before the first separator, upper-cased; the
    project is the rest with its original case. " - " is tried before a bare
    "-", so "ARCO-WEST - KTEC-PHX" keeps both hyphenated names intact while
    "3411 BUILDERS-ATLAS KEIRLAND" still splits on the bare hyphen.

    Returns:
        SiteIdentity, or None when no separator is present or either side
        is blank
    """
    for separator in SITE_NAME_SEPARATORS:
        parts = site_name.split(separator)
        if len(parts) < 2:
            continue

        contractor = parts[0].strip().upper()
        project = separator.join(parts[1:]).strip()
        if not contractor or not project:
            return None
        return SiteIdentity(contractor=contractor, project=project)

    return None


def get_alphabetic_bucket(contractor: str) -> str:
    """
    Pick the bucket folder for a contractor.

    Digits and A-M go to PROJECTS A-M; anything else, including symbols and
    non-ASCII letters, goes to PROJECTS N-Z.
    """
    first_char = contractor[:1].upper()
    is_number_or_a_to_m = ("0" <= first_char <= "9") or ("A" <= first_char <= "M")
    return BUCKET_LOW if is_number_or_a_to_m else BUCKET_HIGH


def build_storage_path(identity: SiteIdentity, year: int) -> str:
    """Compose the folder path for an already-parsed site."""
    bucket = get_alphabetic_bucket(identity.contractor)
    return f"{INSPECTIONS_ROOT}/{bucket}/{identity.contractor}/{identity.project}/{year}"


def resolve_storage_path(site_name: str, year: int | None = None) -> str | None:
    """
    Convert a site name to its SharePoint folder, including the year folder.

    Args:
        site_name: Raw vendor site name
        year: Year folder; defaults to the current year

    Returns:
        Folder path, or None if the site name cannot be parsed
    """
    identity = parse_site_name(site_name)
    if identity is None:
        return None

    return build_storage_path(identity, year if year is not None else date.today().year)


def format_filename(inspection_date: date | datetime) -> str:
    """Archive filename for an inspection date, e.g. 01.21.26.pdf."""
    return f"{inspection_date:%m.%d.%y}.{REPORT_EXTENSION}"
