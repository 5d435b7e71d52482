"""Gateway interfaces following Black Box Design principles."""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from .notifications import ChangeNotification

logger = logging.getLogger("kubedeploy.gateway")

Manifest = Dict[str, Any]


class Subscription(Protocol):
    """Open watch on the upstream feed."""

    async def receive(self) -> Optional[ChangeNotification]:
        """
        Wait for the next change.

        Returns:
            The next notification, or None once the feed is closed
            (every later call returns None as well)
        """
        ...

    def stop(self) -> None:
        """Release the watch."""
        ...


class ResourceGateway(Protocol):
    """Protocol for Deployment storage backends."""

    async def list(self, namespace: str) -> List[Manifest]:
        ...

    async def create(self, namespace: str, manifest: Manifest) -> Manifest:
        ...

    async def get(self, namespace: str, name: str) -> Manifest:
        ...

    async def update(self, namespace: str, name: str, manifest: Manifest) -> Manifest:
        ...

    async def delete(self, namespace: str, name: str) -> None:
        ...

    async def scale(self, namespace: str, name: str, replicas: int) -> Manifest:
        ...

    async def watch(self, namespace: str, label_selector: str = "") -> Subscription:
        """
        Open a watch on Deployments.

        Raises:
            GatewayError: If the upstream refuses the watch; nothing is
                streamed in that case
        """
        ...

    async def pod_list(self, namespace: str, owner_name: str, limit: int) -> List[Manifest]:
        ...


_CLOSED = object()


class ChannelSubscription:
    """
    Queue-backed subscription.

    Producers (possibly on another thread) call publish() and close();
    the single consumer awaits receive(). Items keep their publish order.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        on_stop: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize subscription.

        Args:
            loop: Event loop the consumer runs on (default: the running loop)
            on_stop: Called once when the consumer stops the subscription
        """
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_stop = on_stop
        self._closed = False
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def closed(self) -> bool:
        """True once the consumer has seen the end of the feed."""
        return self._closed

    def publish(self, notification: ChangeNotification) -> None:
        """Queue a notification; thread-safe."""
        self._put(notification)

    def close(self) -> None:
        """Mark the end of the feed; thread-safe."""
        self._put(_CLOSED)

    def _put(self, item: Any) -> None:
        if self._stopped or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Loop closed after the check; nobody is left to receive the item
            logger.debug("Dropped notification: consumer event loop is closed")

    async def receive(self) -> Optional[ChangeNotification]:
        if self._closed:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            return None
        return item

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._on_stop is not None:
            try:
                self._on_stop()
            except Exception as e:
                logger.warning(f"Error while stopping subscription: {e}")
