"""
Kubedeploy shared data models.

Read models are field-limited projections of Kubernetes objects: clients
never see the raw manifests the gateway works with.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset optionals omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# Request Models (API Input)


class ScaleDeploymentRequest(BaseModel):
    """Request to change a Deployment's replica count."""

    replicas: int = Field(..., description="Desired number of replicas", ge=0)


# Response Models (API Output)


class ContainerSummary(CamelModel):
    """Container name and image."""

    name: str
    image: Optional[str] = None


class DeploymentCondition(CamelModel):
    """Deployment status condition."""

    type: str
    status: str
    reason: Optional[str] = None
    message: Optional[str] = None


class DeploymentResponse(CamelModel):
    """External view of a Deployment."""

    name: str
    namespace: str
    uid: Optional[str] = None
    resource_version: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    replicas: int = Field(1, description="Desired replicas")
    ready_replicas: int = 0
    available_replicas: int = 0
    updated_replicas: int = 0
    selector: Dict[str, str] = Field(default_factory=dict)
    strategy: Optional[str] = None
    containers: List[ContainerSummary] = Field(default_factory=list)
    conditions: List[DeploymentCondition] = Field(default_factory=list)
    creation_timestamp: Optional[datetime] = None


class DeploymentListResponse(CamelModel):
    """List of Deployments; items is never null."""

    items: List[DeploymentResponse] = Field(default_factory=list)
    total: int = 0


class PodResponse(CamelModel):
    """External view of a Pod."""

    name: str
    namespace: str
    uid: Optional[str] = None
    phase: Optional[str] = None
    pod_ip: Optional[str] = None
    host_ip: Optional[str] = None
    node_name: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    ready: bool = False
    restart_count: int = 0
    containers: List[ContainerSummary] = Field(default_factory=list)
    creation_timestamp: Optional[datetime] = None


class PodListResponse(CamelModel):
    """Pods of one Deployment; total counts this batch only."""

    items: List[PodResponse] = Field(default_factory=list)
    total: int = 0


class WireEvent(CamelModel):
    """
    One change as delivered on the watch stream.

    ``type`` is always set. ``object`` or ``error`` carries the content;
    ``rawObject`` names the payload type when it could not be interpreted.
    """

    type: str
    object: Optional[DeploymentResponse] = None
    error: Optional[str] = None
    status: Optional[Dict[str, Any]] = None
    raw_object: Optional[str] = None


# Projections


def _containers(pod_spec: Mapping[str, Any]) -> List[ContainerSummary]:
    return [
        ContainerSummary(name=c.get("name", ""), image=c.get("image"))
        for c in pod_spec.get("containers") or []
    ]


def to_deployment_response(deployment: Mapping[str, Any]) -> DeploymentResponse:
    """
    Project a Deployment manifest onto its read model.

    Raises:
        pydantic.ValidationError: If the manifest holds values of the wrong type
    """
    metadata = deployment.get("metadata") or {}
    spec = deployment.get("spec") or {}
    status = deployment.get("status") or {}
    template_spec = (spec.get("template") or {}).get("spec") or {}

    replicas = spec.get("replicas")
    return DeploymentResponse(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        uid=metadata.get("uid"),
        resource_version=metadata.get("resourceVersion"),
        labels=metadata.get("labels") or {},
        annotations=metadata.get("annotations") or {},
        replicas=1 if replicas is None else replicas,
        ready_replicas=status.get("readyReplicas") or 0,
        available_replicas=status.get("availableReplicas") or 0,
        updated_replicas=status.get("updatedReplicas") or 0,
        selector=(spec.get("selector") or {}).get("matchLabels") or {},
        strategy=(spec.get("strategy") or {}).get("type"),
        containers=_containers(template_spec),
        conditions=[
            DeploymentCondition(
                type=c.get("type", ""),
                status=c.get("status", ""),
                reason=c.get("reason"),
                message=c.get("message"),
            )
            for c in status.get("conditions") or []
        ],
        creation_timestamp=metadata.get("creationTimestamp"),
    )


def to_pod_response(pod: Mapping[str, Any]) -> PodResponse:
    """Project a Pod manifest onto its read model."""
    metadata = pod.get("metadata") or {}
    spec = pod.get("spec") or {}
    status = pod.get("status") or {}
    container_statuses = status.get("containerStatuses") or []

    return PodResponse(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        uid=metadata.get("uid"),
        phase=status.get("phase"),
        pod_ip=status.get("podIP"),
        host_ip=status.get("hostIP"),
        node_name=spec.get("nodeName"),
        labels=metadata.get("labels") or {},
        ready=bool(container_statuses) and all(cs.get("ready") for cs in container_statuses),
        restart_count=sum(cs.get("restartCount") or 0 for cs in container_statuses),
        containers=_containers(spec),
        creation_timestamp=metadata.get("creationTimestamp"),
    )


__all__ = [
    "ScaleDeploymentRequest",
    "ContainerSummary",
    "DeploymentCondition",
    "DeploymentResponse",
    "DeploymentListResponse",
    "PodResponse",
    "PodListResponse",
    "WireEvent",
    "to_deployment_response",
    "to_pod_response",
]
