"""
Inspection Email Extractor

Pulls the site name, site address and report URL out of a ComplianceGo
"Inspection Completion Report" email, and dates the inspection from the
report URL's filename.

The vendor markup is not a stable schema. Fields are located by an ordered
table of patterns: an HTML-structured pattern first, then a plain-text
fallback where one exists.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from types import MappingProxyType
from typing import Final, Mapping, Sequence

import structlog

from inspections.shared.models import InspectionRecord

log = structlog.get_logger()

SITE_NAME_HTML_PATTERN = re.compile(
    r"Site/Location Name:</span>\s*<span[^>]*>([^<]+)</span>", re.IGNORECASE
)
SITE_NAME_TEXT_PATTERN = re.compile(r"Site/Location Name:\s*([^\r\n]+)", re.IGNORECASE)
SITE_ADDRESS_HTML_PATTERN = re.compile(
    r"Site/Location Address:</span>\s*<a[^>]*>(?:<span[^>]*>)?([^<]+)", re.IGNORECASE
)
REPORT_URL_PATTERN = re.compile(
    r'href="(https://cdn3\.compliancego\.com/[^"]+\.html)"', re.IGNORECASE
)

# e.g. IR_Arco-KtecPhx_21Jan26-11:36AM_<uuid>.html
DATE_TOKEN_PATTERN = re.compile(r"(\d{1,2})([A-Za-z]{3})(\d{2})-")

# Abbreviations exactly as the vendor emits them
MONTHS: Final[Mapping[str, int]] = MappingProxyType({
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
})

INSPECTION_TIME_OF_DAY: Final = time(12, 0)

DEFAULT_ALLOWED_SENDERS: Final[tuple[str, ...]] = (
    "chi@desertservices.net",
    "compliancego.com",
)


@dataclass(frozen=True)
class FieldRule:
    """
    How one field is located in an email.

    primary runs against the preferred body (HTML, else text); fallback runs
    against HTML and text combined.
    """

    name: str
    primary: re.Pattern[str]
    fallback: re.Pattern[str] | None
    required: bool
    search_combined: bool = False


FIELD_RULES: Final[tuple[FieldRule, ...]] = (
    FieldRule(
        name="site_name",
        primary=SITE_NAME_HTML_PATTERN,
        fallback=SITE_NAME_TEXT_PATTERN,
        required=True,
    ),
    FieldRule(
        name="site_address",
        primary=SITE_ADDRESS_HTML_PATTERN,
        fallback=None,
        required=False,
    ),
    # The link may only be present in one of the two representations
    FieldRule(
        name="report_url",
        primary=REPORT_URL_PATTERN,
        fallback=None,
        required=True,
        search_combined=True,
    ),
)


def _first_group(pattern: re.Pattern[str], content: str) -> str:
    match = pattern.search(content)
    return match.group(1).strip() if match else ""


def _extract_field(rule: FieldRule, preferred: str, combined: str) -> str:
    value = _first_group(rule.primary, combined if rule.search_combined else preferred)
    if not value and rule.fallback is not None:
        value = _first_group(rule.fallback, combined)
    return value


def parse_inspection_date(
    report_url: str,
    *,
    months: Mapping[str, int] = MONTHS,
    today: date | None = None,
) -> datetime:
    """
    Date an inspection from the token embedded in its report URL.

    The token looks like "21Jan26-": day, month abbreviation, two-digit year
    in the 2000s. The time of day is fixed at noon so that the calendar date
    survives any timezone shift.

    Falls back to today (at noon) when the token is missing, the month is
    unknown or the day does not exist in that month.
    """
    fallback_day = today or date.today()
    match = DATE_TOKEN_PATTERN.search(report_url.rsplit("/", 1)[-1])

    if not match:
        log.debug("inspection_date_token_missing", report_url=report_url)
        return datetime.combine(fallback_day, INSPECTION_TIME_OF_DAY)

    day_str, month_str, year_str = match.groups()
    month = months.get(month_str)
    if month is None:
        log.warning("inspection_date_unknown_month", month=month_str, report_url=report_url)
        return datetime.combine(fallback_day, INSPECTION_TIME_OF_DAY)

    try:
        inspection_day = date(2000 + int(year_str), month, int(day_str))
    except ValueError:
        log.warning("inspection_date_invalid", token=match.group(0), report_url=report_url)
        return datetime.combine(fallback_day, INSPECTION_TIME_OF_DAY)

    return datetime.combine(inspection_day, INSPECTION_TIME_OF_DAY)


def extract_inspection(
    html: str,
    text: str | None = None,
    *,
    rules: Sequence[FieldRule] = FIELD_RULES,
    months: Mapping[str, int] = MONTHS,
    today: date | None = None,
) -> InspectionRecord | None:
    """
    Parse inspection details from decoded email content.

    Args:
        html: HTML body (may be empty)
        text: Plain-text body, searched when HTML lacks a field

    Returns:
        InspectionRecord, or None when the site name or report URL is missing
    """
    preferred = html or text or ""
    combined = f"{html}\n{text or ''}"

    values: dict[str, str] = {}
    for rule in rules:
        value = _extract_field(rule, preferred, combined)
        if rule.required and not value:
            log.info("inspection_field_missing", field=rule.name)
            return None
        values[rule.name] = value

    report_url = values["report_url"]
    return InspectionRecord(
        site_name=values["site_name"],
        site_address=values.get("site_address", ""),
        report_url=report_url,
        inspection_date=parse_inspection_date(report_url, months=months, today=today),
    )


def find_missing_fields(
    html: str,
    text: str | None = None,
    *,
    rules: Sequence[FieldRule] = FIELD_RULES,
) -> tuple[list[str], dict[str, str]]:
    """
    Report which required fields an email lacks.

    Returns:
        Tuple of (missing required field names, values that were found)
    """
    preferred = html or text or ""
    combined = f"{html}\n{text or ''}"

    missing: list[str] = []
    found: dict[str, str] = {}
    for rule in rules:
        value = _extract_field(rule, preferred, combined)
        if value:
            found[rule.name] = value
        elif rule.required:
            missing.append(rule.name)
    return missing, found


def should_process_email(
    from_address: str,
    allowed_senders: Sequence[str] = DEFAULT_ALLOWED_SENDERS,
) -> bool:
    """
    Check whether an email comes from a sender allowed to submit inspections.

    Matches are case-insensitive substrings, so a bare domain allows every
    address on it. Whether the email really is an inspection is decided by
    extract_inspection.
    """
    from_lower = from_address.lower()
    return any(sender.lower() in from_lower for sender in allowed_senders if sender)
