"""
Event translation.

Turns one upstream ChangeNotification into one WireEvent. Translation is
total: every notification yields an event, and a payload that cannot be
projected degrades into an error event instead of raising.
"""

import logging

from ..api.models import WireEvent, to_deployment_response
from ..gateway import ChangeNotification

logger = logging.getLogger("kubedeploy.watch.events")

ERROR_SOURCE = "K8s API"
UNRECOGNIZED_PAYLOAD_ERROR = "event object is neither a Deployment nor a Status"


def translate_notification(notification: ChangeNotification) -> WireEvent:
    """
    Translate a change notification into its wire form.

    Args:
        notification: Change from the upstream feed

    Returns:
        WireEvent whose ``type`` mirrors the notification type
    """
    event_type = notification.type.value

    if notification.deployment is not None:
        try:
            return WireEvent(type=event_type, object=to_deployment_response(notification.deployment))
        except Exception as e:
            metadata = notification.deployment.get("metadata")
            name = metadata.get("name") if isinstance(metadata, dict) else None
            logger.warning(f"Could not project deployment {name!r} from {event_type} event: {e}")
            return WireEvent(
                type=event_type,
                error=f"failed to convert Deployment {name!r}: {e}",
                raw_object="Deployment",
            )

    if notification.status is not None:
        status = notification.status
        return WireEvent(
            type=event_type,
            error=f"{ERROR_SOURCE} Error: {status.message} (Code: {status.code})",
            status=status.raw,
        )

    return WireEvent(
        type=event_type,
        error=UNRECOGNIZED_PAYLOAD_ERROR,
        raw_object=notification.payload_type,
    )
