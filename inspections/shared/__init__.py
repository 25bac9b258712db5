# Shared Infrastructure for the Inspection Router
"""
Shared infrastructure components for the inspection router.

This package provides:
- Pipeline state machine (PipelineStatus, valid transitions)
- Immutable models passed between components
- Adapters for SharePoint, Browser Rendering, SES and S3
- Configuration management
- Custom exceptions
"""

from inspections.shared.state_machine import PipelineStatus, VALID_TRANSITIONS, validate_transition
from inspections.shared.exceptions import (
    InspectionRouterError,
    UnroutableSiteError,
    InvalidStateTransitionError,
    RenderError,
    GraphAuthError,
    SharePointError,
    SESError,
)
from inspections.shared.models import (
    InspectionRecord,
    PipelineOutcome,
    SiteIdentity,
    StoreItem,
    UploadResult,
)
from inspections.shared.config import Settings, get_settings

__all__ = [
    # State machine
    "PipelineStatus",
    "VALID_TRANSITIONS",
    "validate_transition",
    # Exceptions
    "InspectionRouterError",
    "UnroutableSiteError",
    "InvalidStateTransitionError",
    "RenderError",
    "GraphAuthError",
    "SharePointError",
    "SESError",
    # Models
    "InspectionRecord",
    "PipelineOutcome",
    "SiteIdentity",
    "StoreItem",
    "UploadResult",
    # Config
    "Settings",
    "get_settings",
]
