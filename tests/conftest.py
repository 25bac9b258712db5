"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, settings, inspection records and fakes for the
document store and renderer.
"""

import os
from datetime import datetime

import boto3
import pytest
from moto import mock_aws

# Set test environment before importing application modules
os.environ["INSPECTIONS_AZURE_TENANT_ID"] = "test-tenant"
os.environ["INSPECTIONS_AZURE_CLIENT_ID"] = "test-client"
os.environ["INSPECTIONS_AZURE_CLIENT_SECRET"] = "test-secret"
os.environ["INSPECTIONS_CLOUDFLARE_ACCOUNT_ID"] = "test-account"
os.environ["INSPECTIONS_CLOUDFLARE_API_TOKEN"] = "test-cf-token"
os.environ["INSPECTIONS_FORWARD_TO_ADDRESS"] = "dustpermits@example.com"
os.environ["INSPECTIONS_NOTIFY_TO_ADDRESS"] = "coordinator@example.com"
os.environ["INSPECTIONS_SES_FROM_ADDRESS"] = "router@example.com"
os.environ["INSPECTIONS_AWS_REGION"] = "us-west-2"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from inspections.shared.config import Settings  # noqa: E402
from inspections.shared.models import InspectionRecord  # noqa: E402
from tests.fixtures.inspection_emails import REPORT_URL  # noqa: E402
from tests.mocks.fake_services import FakeRenderer, FakeStore  # noqa: E402


# --- Settings Fixtures ---


@pytest.fixture
def settings() -> Settings:
    """Settings with a zero-jitter retry policy."""
    return Settings(render_jitter_ratio=0.0)


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


@pytest.fixture
def mock_ses(aws_credentials):
    """Create a mocked SES client with verified identity."""
    with mock_aws():
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress="router@example.com")
        yield ses


@pytest.fixture
def mock_s3(aws_credentials):
    """Create a mocked S3 bucket for SES-stored inbound mail."""
    with mock_aws():
        s3 = boto3.client("s3", **aws_credentials)
        s3.create_bucket(
            Bucket="test-inbound-mail",
            CreateBucketConfiguration={"LocationConstraint": "us-west-2"},
        )
        yield s3


# --- Domain Fixtures ---


@pytest.fixture
def inspection() -> InspectionRecord:
    """Inspection for ARCO - KTEC PHX on 2026-01-21."""
    return InspectionRecord(
        site_name="ARCO - KTEC PHX",
        site_address="16741 W Northern Ave, Waddell, AZ 85355 USA",
        report_url=REPORT_URL,
        inspection_date=datetime(2026, 1, 21, 12, 0),
    )


@pytest.fixture
def expected_folder() -> str:
    return "SWPPP/INSPECTIONS/PROJECTS/PROJECTS A-M/ARCO/KTEC PHX/2026"


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def no_sleep() -> list[float]:
    """Collects requested backoff delays instead of sleeping."""
    return []
