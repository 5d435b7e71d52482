"""
Shared pytest fixtures for Kubedeploy tests.

This module provides common fixtures including:
- FakeGateway: in-memory ResourceGateway that records every call
- RecordingSubscription: test-fed subscription that counts stop() calls
- FastAPI test client wired to the fake gateway
"""

import asyncio
import copy
import os
import sys
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubedeploy.config.provider import APIConfig, KubernetesConfig, StreamConfig
from kubedeploy.main import create_app
from kubedeploy.modules.gateway import (
    ChangeNotification,
    ChannelSubscription,
    GatewayError,
    GatewayErrorKind,
)


# =============================================================================
# Manifest builders
# =============================================================================

def make_deployment(
    name: str = "web",
    namespace: str = "default",
    replicas: int = 2,
    image: str = "nginx:1.25",
    labels: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a Deployment manifest in API server JSON shape."""
    labels = labels or {"app": name}
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": dict(labels)},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": dict(labels)},
            "strategy": {"type": "RollingUpdate"},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {"containers": [{"name": name, "image": image}]},
            },
        },
    }


def make_pod(name: str, namespace: str = "default", labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Build a running Pod manifest."""
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
        "spec": {"nodeName": "node-1", "containers": [{"name": "app", "image": "nginx:1.25"}]},
        "status": {
            "phase": "Running",
            "podIP": "10.0.0.5",
            "containerStatuses": [{"name": "app", "ready": True, "restartCount": 1}],
        },
    }


# =============================================================================
# Gateway fakes
# =============================================================================

class RecordingSubscription:
    """
    Subscription fed directly by a test.

    push() queues a notification, close() ends the feed; stop_calls counts
    every stop() so tests can assert it happened exactly once.
    """

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.stop_calls = 0
        self._closed = False

    def push(self, notification: ChangeNotification) -> None:
        self.queue.put_nowait(notification)

    def close(self) -> None:
        self.queue.put_nowait(None)

    async def receive(self) -> Optional[ChangeNotification]:
        if self._closed:
            return None
        item = await self.queue.get()
        if item is None:
            self._closed = True
        return item

    def stop(self) -> None:
        self.stop_calls += 1


class FakeGateway:
    """
    In-memory ResourceGateway.

    Behaves like the API server for the cases the handlers care about:
    AlreadyExists on create, NotFound on missing objects, Conflict on a
    stale resourceVersion.
    """

    def __init__(self):
        self.deployments: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.pods: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.watch_script: List[ChangeNotification] = []
        self.close_watch = True
        self.watch_error: Optional[GatewayError] = None
        self.subscriptions: List[ChannelSubscription] = []
        self.stop_calls = 0
        self._version = 0

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _require(self, namespace: str, name: str) -> Dict[str, Any]:
        key = (namespace, name)
        if key not in self.deployments:
            raise GatewayError(
                GatewayErrorKind.NOT_FOUND,
                f'deployments.apps "{name}" not found',
                status=404,
            )
        return self.deployments[key]

    async def list(self, namespace: str):
        self._record("list", namespace)
        return [copy.deepcopy(d) for (ns, _), d in self.deployments.items() if ns == namespace]

    async def create(self, namespace: str, manifest):
        self._record("create", namespace, manifest)
        name = manifest["metadata"]["name"]
        if (namespace, name) in self.deployments:
            raise GatewayError(
                GatewayErrorKind.ALREADY_EXISTS,
                f'deployments.apps "{name}" already exists',
                status=409,
            )
        stored = copy.deepcopy(manifest)
        stored["metadata"]["uid"] = str(uuid.uuid4())
        stored["metadata"]["resourceVersion"] = self._next_version()
        stored["metadata"]["creationTimestamp"] = "2024-05-01T12:00:00Z"
        self.deployments[(namespace, name)] = stored
        return copy.deepcopy(stored)

    async def get(self, namespace: str, name: str):
        self._record("get", namespace, name)
        return copy.deepcopy(self._require(namespace, name))

    async def update(self, namespace: str, name: str, manifest):
        self._record("update", namespace, name, manifest)
        current = self._require(namespace, name)
        requested = manifest["metadata"].get("resourceVersion")
        if requested and requested != current["metadata"]["resourceVersion"]:
            raise GatewayError(
                GatewayErrorKind.CONFLICT,
                "the object has been modified; please apply your changes to the latest version",
                status=409,
            )
        stored = copy.deepcopy(manifest)
        stored["metadata"]["uid"] = current["metadata"]["uid"]
        stored["metadata"]["creationTimestamp"] = current["metadata"]["creationTimestamp"]
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.deployments[(namespace, name)] = stored
        return copy.deepcopy(stored)

    async def delete(self, namespace: str, name: str):
        self._record("delete", namespace, name)
        self._require(namespace, name)
        del self.deployments[(namespace, name)]

    async def scale(self, namespace: str, name: str, replicas: int):
        self._record("scale", namespace, name, replicas)
        current = self._require(namespace, name)
        current["spec"]["replicas"] = replicas
        current["metadata"]["resourceVersion"] = self._next_version()
        return copy.deepcopy(current)

    async def watch(self, namespace: str, label_selector: str = ""):
        self._record("watch", namespace, label_selector)
        if self.watch_error is not None:
            raise self.watch_error

        subscription = ChannelSubscription(on_stop=self._on_stop)
        for notification in self.watch_script:
            subscription.publish(notification)
        if self.close_watch:
            subscription.close()
        self.subscriptions.append(subscription)
        return subscription

    def _on_stop(self) -> None:
        self.stop_calls += 1

    async def pod_list(self, namespace: str, owner_name: str, limit: int):
        self._record("pod_list", namespace, owner_name, limit)
        self._require(namespace, owner_name)
        return [copy.deepcopy(p) for p in self.pods.get(namespace, [])][:limit]


class StaticConfigProvider:
    """Config provider with fixed test values."""

    def __init__(self, max_stream_seconds: int = 0):
        self.max_stream_seconds = max_stream_seconds

    def get_api_config(self) -> APIConfig:
        return APIConfig(port=8080, host="127.0.0.1", debug=False, log_level="INFO", cors_origins=["*"])

    def get_kubernetes_config(self) -> KubernetesConfig:
        return KubernetesConfig(kubeconfig=None, context=None, in_cluster=False, request_timeout=5)

    def get_stream_config(self) -> StreamConfig:
        return StreamConfig(
            watch_timeout_seconds=60,
            max_stream_seconds=self.max_stream_seconds,
            ping_seconds=15,
        )


# =============================================================================
# SSE helpers
# =============================================================================

def parse_sse(text: str) -> List[Dict[str, str]]:
    """Split an SSE body into [{"event": ..., "data": ...}], skipping comments."""
    events = []
    for block in text.replace("\r\n", "\n").split("\n\n"):
        event: Dict[str, str] = {}
        for line in block.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            event[field] = value[1:] if value.startswith(" ") else value
        if event:
            events.append(event)
    return events


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first event loop."""
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    return create_app(gateway=gateway, config_provider=StaticConfigProvider())


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def recording_subscription():
    return RecordingSubscription()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
