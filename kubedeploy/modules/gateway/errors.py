"""Classified failures raised by resource gateways."""

import json
from enum import Enum
from typing import Optional

from kubernetes.client.exceptions import ApiException


class GatewayErrorKind(str, Enum):
    """Failure classes the API layer distinguishes."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    CONFLICT = "conflict"
    OTHER = "other"


class GatewayError(Exception):
    """A resource store operation failed."""

    def __init__(self, kind: GatewayErrorKind, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.kind is GatewayErrorKind.NOT_FOUND

    @property
    def is_already_exists(self) -> bool:
        return self.kind is GatewayErrorKind.ALREADY_EXISTS

    @property
    def is_conflict(self) -> bool:
        return self.kind is GatewayErrorKind.CONFLICT

    @classmethod
    def from_api_exception(cls, exc: ApiException) -> "GatewayError":
        """
        Classify a Kubernetes client error.

        The API server answers 409 both for create-on-existing (reason
        ``AlreadyExists``) and for stale resourceVersion writes (reason
        ``Conflict``); the Status body tells them apart.
        """
        reason = exc.reason or ""
        message = reason
        if exc.body:
            try:
                body = json.loads(exc.body)
            except (TypeError, ValueError):
                body = None
            if isinstance(body, dict):
                reason = body.get("reason") or reason
                message = body.get("message") or message

        status = exc.status
        if status == 404:
            kind = GatewayErrorKind.NOT_FOUND
        elif status == 409 and reason == "AlreadyExists":
            kind = GatewayErrorKind.ALREADY_EXISTS
        elif status == 409:
            kind = GatewayErrorKind.CONFLICT
        else:
            kind = GatewayErrorKind.OTHER

        return cls(kind, message or f"Kubernetes API returned {status}", status=status)

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value!r}, message={self.message!r}, status={self.status!r})"
