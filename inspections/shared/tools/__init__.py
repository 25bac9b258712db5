# Shared Tools
"""
Adapters for the external capabilities the router depends on.

- Microsoft Graph token acquisition and SharePoint document store
- Browser Rendering (report URL to PDF)
- SES sending/forwarding and S3 retrieval of inbound mail
"""

from inspections.shared.tools.graph_auth import GraphTokenProvider
from inspections.shared.tools.sharepoint import SharePointClient
from inspections.shared.tools.renderer import BrowserRenderingClient
from inspections.shared.tools.email import (
    forward_raw_email,
    send_ses_email,
)
from inspections.shared.tools.s3 import fetch_email_from_s3

__all__ = [
    # Graph / SharePoint
    "GraphTokenProvider",
    "SharePointClient",
    # Rendering
    "BrowserRenderingClient",
    # Email
    "send_ses_email",
    "forward_raw_email",
    "fetch_email_from_s3",
]
