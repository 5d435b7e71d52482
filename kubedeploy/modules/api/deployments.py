"""
Deployment endpoints.

Every handler follows the same order: validate path inputs, then call the
gateway, then classify failures. Nothing reaches the gateway before
validation passes.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...config.provider import ConfigProvider
from ..gateway import GatewayError, ManifestError, ResourceGateway, parse_deployment_manifest
from ..validation import validate_namespace, validate_resource_name
from ..watch.session import SessionContext, StreamSession
from ..watch.transport import stream_response
from .errors import UnsupportedMediaTypeError, UpstreamFailure, ValidationError, classify_gateway_error
from .models import (
    DeploymentListResponse,
    PodListResponse,
    ScaleDeploymentRequest,
    to_deployment_response,
    to_pod_response,
)
from .responses import respond_success

logger = logging.getLogger("kubedeploy.api.deployments")

DEFAULT_POD_LIMIT = 500
SUPPORTED_BODY_TYPES = ("json", "yaml")


def get_gateway(request: Request) -> ResourceGateway:
    """Resolve the gateway built at startup."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(503, "Service not initialized")
    return gateway


def _require_namespace(namespace: str) -> None:
    if not validate_namespace(namespace):
        raise ValidationError("Invalid namespace format")


def _require_name(name: str) -> None:
    if not validate_resource_name(name):
        raise ValidationError("Invalid Deployment name format")


def parse_limit(raw: Optional[str], default: int = DEFAULT_POD_LIMIT) -> int:
    """Parse the pods limit; missing, non-numeric or non-positive values fall back."""
    try:
        limit = int(raw) if raw is not None else default
    except ValueError:
        return default
    return limit if limit > 0 else default


async def read_manifest(request: Request, namespace: str) -> Dict[str, Any]:
    """
    Read a Deployment manifest from a JSON or YAML body.

    The manifest's namespace defaults to the path namespace and must match
    it when set.
    """
    content_type = request.headers.get("content-type", "").lower()
    if not any(t in content_type for t in SUPPORTED_BODY_TYPES):
        raise UnsupportedMediaTypeError(
            "Unsupported Content-Type, use application/json or application/yaml"
        )

    body = await request.body()
    try:
        manifest = parse_deployment_manifest(body)
    except ManifestError as e:
        raise ValidationError(f"Failed to parse Deployment: {e}") from e

    metadata = manifest["metadata"]
    if not metadata.get("namespace"):
        metadata["namespace"] = namespace
    elif metadata["namespace"] != namespace:
        raise ValidationError(
            f"Manifest namespace {metadata['namespace']!r} does not match path namespace {namespace!r}"
        )
    return manifest


def create_deployment_router(config_provider: ConfigProvider) -> APIRouter:
    """
    Create Deployment router with injected config provider.

    Args:
        config_provider: Configuration provider instance

    Returns:
        FastAPI router with Deployment endpoints
    """
    router = APIRouter(prefix="/api/v1/namespaces", tags=["deployments"])
    stream_config = config_provider.get_stream_config()

    @router.get("/{namespace}/deployments")
    async def list_deployments(namespace: str, gateway: ResourceGateway = Depends(get_gateway)):
        """
        List Deployments in a namespace.

        Returns:
            200: {items, total}; items is an empty list when there are none
            400: Invalid namespace
        """
        _require_namespace(namespace)
        try:
            deployments = await gateway.list(namespace)
        except GatewayError as e:
            raise classify_gateway_error(e, "list Deployments") from e

        items = [to_deployment_response(d) for d in deployments or []]
        return respond_success(DeploymentListResponse(items=items, total=len(items)))

    @router.post("/{namespace}/deployments")
    async def create_deployment(
        namespace: str, request: Request, gateway: ResourceGateway = Depends(get_gateway)
    ):
        """
        Create a Deployment from a JSON or YAML manifest.

        Returns:
            200: Created Deployment
            400: Invalid namespace or manifest
            409: Deployment already exists
            415: Unsupported Content-Type
        """
        _require_namespace(namespace)
        manifest = await read_manifest(request, namespace)
        name = manifest["metadata"].get("name")
        if not validate_resource_name(name):
            raise ValidationError("Invalid Deployment name format")

        try:
            created = await gateway.create(namespace, manifest)
        except GatewayError as e:
            raise classify_gateway_error(e, "create Deployment") from e

        return respond_success(to_deployment_response(created))

    # Declared before /{name} so "watch" is never taken for a Deployment name
    @router.get("/{namespace}/deployments/watch")
    async def watch_deployments(
        namespace: str,
        label_selector: Optional[str] = Query(None, alias="labelSelector"),
        gateway: ResourceGateway = Depends(get_gateway),
    ):
        """
        Stream Deployment changes as Server-Sent Events.

        Each change is a ``message`` event carrying a WireEvent; when the
        upstream watch ends a single ``close`` event is sent.

        Returns:
            200: text/event-stream
            400: Invalid namespace
            500: Watch could not be established
        """
        namespace = namespace.strip()
        _require_namespace(namespace)

        try:
            subscription = await gateway.watch(namespace, label_selector or "")
        except GatewayError as e:
            logger.error(f"Failed to start watching deployments in {namespace}: {e.message}")
            raise UpstreamFailure(f"Failed to start watching Deployments: {e.message}") from e

        context = SessionContext(deadline=stream_config.stream_deadline)
        session = StreamSession(subscription, context, name=f"{namespace}/deployments")
        return stream_response(session, ping_seconds=stream_config.ping_seconds)

    @router.get("/{namespace}/deployments/{name}")
    async def get_deployment(
        namespace: str, name: str, gateway: ResourceGateway = Depends(get_gateway)
    ):
        """
        Get a Deployment.

        Returns:
            200: Deployment
            400: Invalid namespace or name
            404: Deployment not found
        """
        _require_namespace(namespace)
        _require_name(name)
        try:
            deployment = await gateway.get(namespace, name)
        except GatewayError as e:
            raise classify_gateway_error(e, "get Deployment") from e

        return respond_success(to_deployment_response(deployment))

    @router.put("/{namespace}/deployments/{name}")
    async def update_deployment(
        namespace: str, name: str, request: Request, gateway: ResourceGateway = Depends(get_gateway)
    ):
        """
        Replace a Deployment with a JSON or YAML manifest.

        Returns:
            200: Updated Deployment
            400: Invalid namespace, name or manifest
            404: Deployment not found (possibly deleted during the update)
            409: resourceVersion conflict
            415: Unsupported Content-Type
        """
        _require_namespace(namespace)
        _require_name(name)
        manifest = await read_manifest(request, namespace)

        metadata = manifest["metadata"]
        if not metadata.get("name"):
            metadata["name"] = name
        elif metadata["name"] != name:
            raise ValidationError(
                f"Manifest name {metadata['name']!r} does not match path name {name!r}"
            )

        try:
            updated = await gateway.update(namespace, name, manifest)
        except GatewayError as e:
            raise classify_gateway_error(
                e,
                "update Deployment",
                not_found="Deployment not found (it may have been deleted during the update)",
            ) from e

        return respond_success(to_deployment_response(updated))

    @router.delete("/{namespace}/deployments/{name}")
    async def delete_deployment(
        namespace: str, name: str, gateway: ResourceGateway = Depends(get_gateway)
    ):
        """
        Delete a Deployment.

        Returns:
            200: Deleted
            400: Invalid namespace or name
            404: Deployment not found
        """
        _require_namespace(namespace)
        _require_name(name)
        try:
            await gateway.delete(namespace, name)
        except GatewayError as e:
            raise classify_gateway_error(e, "delete Deployment") from e

        return respond_success({"message": "deleted"})

    @router.patch("/{namespace}/deployments/{name}/scale")
    async def scale_deployment(
        namespace: str,
        name: str,
        payload: ScaleDeploymentRequest,
        gateway: ResourceGateway = Depends(get_gateway),
    ):
        """
        Change a Deployment's replica count.

        Returns:
            200: Scaled Deployment
            400: Invalid namespace, name or replicas
            404: Deployment not found
        """
        _require_namespace(namespace)
        _require_name(name)
        try:
            deployment = await gateway.scale(namespace, name, payload.replicas)
        except GatewayError as e:
            raise classify_gateway_error(e, "scale Deployment") from e

        return respond_success(to_deployment_response(deployment))

    @router.get("/{namespace}/deployments/{name}/pods")
    async def list_deployment_pods(
        namespace: str,
        name: str,
        limit: Optional[str] = Query(None, description="Maximum pods to return (default 500)"),
        gateway: ResourceGateway = Depends(get_gateway),
    ):
        """
        List the Pods owned by a Deployment.

        Returns:
            200: {items, total}; total counts this batch only
            400: Invalid namespace or name
            404: Deployment not found
        """
        _require_namespace(namespace)
        _require_name(name)
        try:
            pods = await gateway.pod_list(namespace, name, parse_limit(limit))
        except GatewayError as e:
            raise classify_gateway_error(e, "list Pods") from e

        items = [to_pod_response(p) for p in pods or []]
        return respond_success(PodListResponse(items=items, total=len(items)))

    return router
