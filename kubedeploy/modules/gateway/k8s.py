"""
Kubernetes-backed resource gateway.

Uses the official ``kubernetes`` client. Its calls are blocking, so CRUD
calls run in worker threads and each watch is read by a daemon thread that
feeds a ChannelSubscription.
"""

import asyncio
import functools
import json
import logging
import socket
import threading
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.watch.watch import iter_resp_lines

from ...config.provider import KubernetesConfig, StreamConfig
from .errors import GatewayError, GatewayErrorKind
from .interfaces import ChannelSubscription, Manifest
from .manifest import label_selector_from
from .notifications import ChangeNotification

logger = logging.getLogger("kubedeploy.gateway.k8s")


class KubernetesGateway:
    """Deployment operations against a live cluster."""

    def __init__(
        self,
        apps_api: Any,
        core_api: Any,
        api_client: Optional[Any] = None,
        request_timeout: int = 30,
        watch_timeout_seconds: int = 1800,
    ):
        """
        Initialize gateway.

        Args:
            apps_api: AppsV1Api instance
            core_api: CoreV1Api instance
            api_client: ApiClient used to turn models into plain dicts
            request_timeout: Per-request timeout in seconds
            watch_timeout_seconds: Server-side lifetime of one watch
        """
        self._apps = apps_api
        self._core = core_api
        self._api_client = api_client or client.ApiClient()
        self.request_timeout = request_timeout
        self.watch_timeout_seconds = watch_timeout_seconds

    @classmethod
    def from_config(cls, kube_config: KubernetesConfig, stream_config: StreamConfig) -> "KubernetesGateway":
        """Load cluster credentials and build a gateway."""
        if kube_config.in_cluster:
            logger.info("Loading in-cluster Kubernetes configuration")
            k8s_config.load_incluster_config()
        else:
            logger.info(
                f"Loading kubeconfig {kube_config.kubeconfig or '(default)'} "
                f"context {kube_config.context or '(current)'}"
            )
            k8s_config.load_kube_config(
                config_file=kube_config.kubeconfig, context=kube_config.context
            )

        api_client = client.ApiClient()
        return cls(
            client.AppsV1Api(api_client),
            client.CoreV1Api(api_client),
            api_client,
            request_timeout=kube_config.request_timeout,
            watch_timeout_seconds=stream_config.watch_timeout_seconds,
        )

    def close(self) -> None:
        """Release the HTTP connection pool."""
        self._api_client.close()

    async def _call(self, func, *args, **kwargs):
        kwargs.setdefault("_request_timeout", self.request_timeout)
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ApiException as e:
            raise GatewayError.from_api_exception(e) from e
        except Exception as e:
            logger.error(f"Kubernetes API call {getattr(func, '__name__', func)} failed: {e}")
            raise GatewayError(GatewayErrorKind.OTHER, str(e)) from e

    def _to_dict(self, obj: Any) -> Manifest:
        return self._api_client.sanitize_for_serialization(obj)

    async def list(self, namespace: str) -> List[Manifest]:
        result = await self._call(self._apps.list_namespaced_deployment, namespace)
        return [self._to_dict(item) for item in (result.items or [])]

    async def create(self, namespace: str, manifest: Manifest) -> Manifest:
        result = await self._call(self._apps.create_namespaced_deployment, namespace, manifest)
        logger.info(f"Created deployment {namespace}/{manifest.get('metadata', {}).get('name')}")
        return self._to_dict(result)

    async def get(self, namespace: str, name: str) -> Manifest:
        result = await self._call(self._apps.read_namespaced_deployment, name, namespace)
        return self._to_dict(result)

    async def update(self, namespace: str, name: str, manifest: Manifest) -> Manifest:
        result = await self._call(
            self._apps.replace_namespaced_deployment, name, namespace, manifest
        )
        logger.info(f"Updated deployment {namespace}/{name}")
        return self._to_dict(result)

    async def delete(self, namespace: str, name: str) -> None:
        await self._call(self._apps.delete_namespaced_deployment, name, namespace)
        logger.info(f"Deleted deployment {namespace}/{name}")

    async def scale(self, namespace: str, name: str, replicas: int) -> Manifest:
        await self._call(
            self._apps.patch_namespaced_deployment_scale,
            name,
            namespace,
            {"spec": {"replicas": replicas}},
        )
        logger.info(f"Scaled deployment {namespace}/{name} to {replicas} replicas")
        return await self.get(namespace, name)

    async def pod_list(self, namespace: str, owner_name: str, limit: int) -> List[Manifest]:
        deployment = await self.get(namespace, owner_name)
        selector = (deployment.get("spec") or {}).get("selector") or {}
        try:
            label_selector = label_selector_from(selector)
        except ValueError as e:
            raise GatewayError(GatewayErrorKind.OTHER, str(e)) from e
        if not label_selector:
            # An empty selector would match every pod in the namespace
            raise GatewayError(
                GatewayErrorKind.OTHER, f"deployment {owner_name} has no pod selector"
            )

        result = await self._call(
            self._core.list_namespaced_pod,
            namespace,
            label_selector=label_selector,
            limit=limit,
        )
        return [self._to_dict(item) for item in (result.items or [])]

    async def watch(self, namespace: str, label_selector: str = "") -> ChannelSubscription:
        kwargs: Dict[str, Any] = {
            "watch": True,
            "allow_watch_bookmarks": True,
            "timeout_seconds": self.watch_timeout_seconds,
            "_preload_content": False,
            # No read timeout: a quiet watch is not a failure
            "_request_timeout": (self.request_timeout, None),
        }
        if label_selector:
            kwargs["label_selector"] = label_selector

        # The request is made here so a refused watch fails before streaming starts
        response = await self._call(self._apps.list_namespaced_deployment, namespace, **kwargs)

        subscription = ChannelSubscription(
            asyncio.get_running_loop(), on_stop=functools.partial(self._interrupt, response)
        )
        pump = threading.Thread(
            target=self._pump,
            args=(response, subscription),
            name=f"watch-deployments-{namespace}",
            daemon=True,
        )
        pump.start()
        logger.info(
            f"Watching deployments in {namespace}"
            + (f" with selector {label_selector}" if label_selector else "")
        )
        return subscription

    def _pump(self, response: Any, subscription: ChannelSubscription) -> None:
        """Read watch lines until the server ends the watch or the consumer stops."""
        try:
            for line in iter_resp_lines(response):
                if subscription.stopped:
                    break
                if not line.strip():
                    continue
                subscription.publish(self._decode_line(line))
        except Exception as e:
            if not subscription.stopped:
                logger.error(f"Watch stream failed: {e}")
                subscription.publish(ChangeNotification.failure(f"watch stream failed: {e}"))
        finally:
            if not subscription.stopped:
                logger.info("Watch stream ended by the API server")
            subscription.close()
            try:
                response.close()
                response.release_conn()
            except Exception as e:
                logger.debug(f"Failed to release watch connection: {e}")

    @staticmethod
    def _interrupt(response: Any) -> None:
        """
        Unblock the pump thread's read from the consumer side.

        Runs on the event loop. close() would wait on the reader lock the pump
        holds until the next byte arrives, so only the socket is shut down
        here; the pump closes and releases the response itself.
        """
        shutdown = getattr(response, "shutdown", None)
        if callable(shutdown):
            # urllib3 >= 2.3
            try:
                shutdown()
                return
            except (ValueError, RuntimeError, OSError) as e:
                logger.debug(f"Response shutdown unavailable, using the socket: {e}")

        sock = getattr(getattr(response, "connection", None), "sock", None)
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Failed to shut down watch socket: {e}")

    @staticmethod
    def _decode_line(line: Any) -> ChangeNotification:
        if isinstance(line, (bytes, bytearray)):
            line = line.decode("utf-8")
        try:
            event = json.loads(line)
        except ValueError as e:
            return ChangeNotification.failure(f"malformed watch event: {e}")
        if not isinstance(event, dict):
            return ChangeNotification.failure("malformed watch event: not an object")
        try:
            return ChangeNotification.from_watch_event(event, default_kind="Deployment")
        except ValueError as e:
            return ChangeNotification.failure(f"unknown watch event type: {e}")
