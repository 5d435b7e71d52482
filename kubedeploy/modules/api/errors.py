"""
API error taxonomy.

Handlers raise these; a single exception handler renders the error envelope.
"""

from typing import Optional

from ..gateway import GatewayError


class APIError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(APIError):
    """Malformed namespace, name or request body."""

    status_code = 400


class UnsupportedMediaTypeError(APIError):
    """Request body in a format other than JSON or YAML."""

    status_code = 415


class NotFoundError(APIError):
    status_code = 404


class ConflictError(APIError):
    """Object already exists, or was modified concurrently."""

    status_code = 409


class UpstreamFailure(APIError):
    """Gateway, network or serialization failure not otherwise classified."""

    status_code = 500


def classify_gateway_error(
    error: GatewayError,
    action: str,
    not_found: str = "Deployment not found",
    already_exists: str = "Deployment already exists",
    conflict: str = "Deployment was modified, please retry (resourceVersion conflict)",
) -> APIError:
    """
    Map a gateway failure onto the API taxonomy.

    Args:
        error: Failure raised by the gateway
        action: What was attempted, used in the catch-all message
        not_found: Message for missing objects
        already_exists: Message for create-on-existing
        conflict: Message for stale writes
    """
    if error.is_not_found:
        return NotFoundError(not_found)
    if error.is_already_exists:
        return ConflictError(already_exists)
    if error.is_conflict:
        return ConflictError(conflict)
    return UpstreamFailure(f"Failed to {action}: {error.message}")
