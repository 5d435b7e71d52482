"""
Gateway Module - Black Box Interface

Purpose: Abstract all access to the Deployment store
Interface: ResourceGateway (list, create, get, update, delete, scale, watch, pod_list)
Hidden: Kubernetes client, worker threads, watch stream decoding

Can be replaced with any store that offers CRUD and a change feed.
"""

from .errors import GatewayError, GatewayErrorKind
from .interfaces import ChannelSubscription, Manifest, ResourceGateway, Subscription
from .manifest import ManifestError, label_selector_from, parse_deployment_manifest
from .notifications import ChangeNotification, ChangeType, UpstreamStatus

__all__ = [
    "ChangeNotification",
    "ChangeType",
    "ChannelSubscription",
    "GatewayError",
    "GatewayErrorKind",
    "Manifest",
    "ManifestError",
    "ResourceGateway",
    "Subscription",
    "UpstreamStatus",
    "label_selector_from",
    "parse_deployment_manifest",
]
