"""
API Module - Black Box Interface

Purpose: HTTP routing and module orchestration
Interface: REST API endpoints (see deployments.create_deployment_router)
Hidden: Request validation, error classification, response envelopes

The API module only orchestrates - it contains no business logic.
All logic is delegated to appropriate modules.
"""

from .errors import (
    APIError,
    ConflictError,
    NotFoundError,
    UnsupportedMediaTypeError,
    UpstreamFailure,
    ValidationError,
)
from .models import (
    DeploymentListResponse,
    DeploymentResponse,
    PodListResponse,
    PodResponse,
    ScaleDeploymentRequest,
    WireEvent,
    to_deployment_response,
    to_pod_response,
)
from .responses import respond_error, respond_success

__all__ = [
    "APIError",
    "ConflictError",
    "NotFoundError",
    "UnsupportedMediaTypeError",
    "UpstreamFailure",
    "ValidationError",
    "DeploymentListResponse",
    "DeploymentResponse",
    "PodListResponse",
    "PodResponse",
    "ScaleDeploymentRequest",
    "WireEvent",
    "to_deployment_response",
    "to_pod_response",
    "respond_error",
    "respond_success",
]
