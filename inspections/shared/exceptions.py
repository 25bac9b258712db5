"""
Custom Exceptions for the Inspection Router

All exceptions follow the pattern of specific, actionable errors
with context needed for debugging and logging.
"""

from dataclasses import dataclass
from typing import Any


class InspectionRouterError(Exception):
    """Base exception for the inspection router."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


@dataclass
class UnroutableSiteError(InspectionRouterError):
    """Site name could not be turned into a storage path."""

    site_name: str

    def __init__(self, site_name: str) -> None:
        self.site_name = site_name
        super().__init__(
            f"Could not determine folder for site '{site_name}'",
            site_name=site_name,
        )


@dataclass
class InvalidStateTransitionError(InspectionRouterError):
    """Attempted invalid pipeline state transition."""

    current_status: str
    new_status: str
    allowed_transitions: list[str]

    def __init__(
        self,
        current_status: str,
        new_status: str,
        allowed_transitions: list[str],
    ) -> None:
        self.current_status = current_status
        self.new_status = new_status
        self.allowed_transitions = allowed_transitions
        super().__init__(
            f"Cannot transition from '{current_status}' to '{new_status}'. "
            f"Allowed transitions: {allowed_transitions}",
            current_status=current_status,
            new_status=new_status,
            allowed_transitions=allowed_transitions,
        )


@dataclass
class RenderError(InspectionRouterError):
    """Rendering a report URL to PDF failed."""

    url: str
    error_message: str = ""
    status_code: int | None = None

    def __init__(
        self,
        url: str,
        error_message: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.error_message = error_message or "Unknown error"
        self.status_code = status_code
        status_hint = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"Render failed{status_hint} for '{url}': {self.error_message}",
            url=url,
            status_code=status_code,
        )


@dataclass
class GraphAuthError(InspectionRouterError):
    """Client-credentials token request failed."""

    tenant_id: str
    status_code: int | None = None

    def __init__(
        self,
        tenant_id: str,
        status_code: int | None = None,
        error_message: str | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.status_code = status_code
        super().__init__(
            f"Token request failed: {status_code or error_message or 'Unknown error'}",
            tenant_id=tenant_id,
            status_code=status_code,
            error_message=error_message,
        )


@dataclass
class SharePointError(InspectionRouterError):
    """SharePoint (Graph drive) operation failed."""

    operation: str  # "resolve_site", "resolve_drive", "list", "upload"
    path: str
    status_code: int | None = None

    def __init__(
        self,
        operation: str,
        path: str,
        status_code: int | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.path = path
        self.status_code = status_code
        status_hint = f"{status_code} - " if status_code else ""
        super().__init__(
            f"SharePoint {operation} failed for '{path}': "
            f"{status_hint}{error_message or 'Unknown error'}",
            operation=operation,
            path=path,
            status_code=status_code,
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


@dataclass
class SESError(InspectionRouterError):
    """SES email operation failed."""

    operation: str  # "send", "forward"
    recipient: str | None = None

    def __init__(
        self,
        operation: str,
        recipient: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.recipient = recipient
        super().__init__(
            f"SES {operation} failed{f' for {recipient}' if recipient else ''}: "
            f"{error_message or 'Unknown error'}",
            operation=operation,
            recipient=recipient,
            error_message=error_message,
        )
