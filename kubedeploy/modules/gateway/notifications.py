"""
Upstream change notifications.

A watch on the Kubernetes API yields raw events of the form
``{"type": "ADDED", "object": {...}}``. This module turns them into a
tagged value with exactly one populated payload slot, so consumers branch on
the slot that is set rather than inspecting payload types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ChangeType(str, Enum):
    """Kind of change reported by the upstream watch."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class UpstreamStatus:
    """Status record sent by the API server (``kind: Status``)."""

    message: str
    code: int
    reason: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UpstreamStatus":
        """Create from a decoded Status object."""
        try:
            code = int(data.get("code") or 0)
        except (TypeError, ValueError):
            code = 0
        return cls(
            message=str(data.get("message") or ""),
            code=code,
            reason=data.get("reason"),
            raw=dict(data),
        )


@dataclass(frozen=True)
class ChangeNotification:
    """
    One change from the upstream feed.

    Exactly one of ``deployment``, ``status`` or ``raw`` carries the payload:
    - deployment: Deployment manifest as returned by the API server
    - status: error record, normally paired with ``ChangeType.ERROR``
    - raw: anything the feed sent that is neither of the above
    """

    type: ChangeType
    deployment: Optional[Dict[str, Any]] = None
    status: Optional[UpstreamStatus] = None
    raw: Any = None

    @classmethod
    def from_watch_event(
        cls, event: Mapping[str, Any], default_kind: Optional[str] = None
    ) -> "ChangeNotification":
        """
        Classify a decoded watch event.

        Args:
            event: Mapping with ``type`` and ``object`` keys
            default_kind: Kind assumed for objects that do not declare one

        Raises:
            ValueError: If the event type is not a known change type
        """
        change_type = ChangeType(str(event.get("type", "")).upper())
        obj = event.get("object")

        kind = None
        if isinstance(obj, Mapping):
            kind = obj.get("kind") or default_kind

        if kind == "Deployment":
            return cls(type=change_type, deployment=dict(obj))
        if kind == "Status":
            return cls(type=change_type, status=UpstreamStatus.from_mapping(obj))
        return cls(type=change_type, raw=obj)

    @classmethod
    def failure(cls, message: str, code: int = 500) -> "ChangeNotification":
        """Build an ERROR notification for a failure local to this process."""
        raw = {
            "kind": "Status",
            "apiVersion": "v1",
            "status": "Failure",
            "message": message,
            "reason": "InternalError",
            "code": code,
        }
        return cls(type=ChangeType.ERROR, status=UpstreamStatus.from_mapping(raw))

    @property
    def payload_type(self) -> str:
        """Name of the payload's type, for diagnostics."""
        if self.deployment is not None:
            return "Deployment"
        if self.status is not None:
            return "Status"
        if isinstance(self.raw, Mapping) and self.raw.get("kind"):
            return str(self.raw["kind"])
        return type(self.raw).__name__
