"""
Stream sessions.

A StreamSession owns one Subscription for the lifetime of one client
connection. Each iteration waits on two sources at once, the next upstream
change and the client's cancellation signal, and whichever fires first
decides the next state:

    OPEN -> EMITTING -> ... -> UPSTREAM_CLOSED -> CLOSED   (one close frame)
    OPEN -> EMITTING -> ... -> CLIENT_GONE     -> CLOSED   (no more frames)

The subscription is stopped exactly once, on entry to CLOSED.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional

from ..api.models import WireEvent
from ..gateway import ChangeNotification, Subscription
from .events import translate_notification

logger = logging.getLogger("kubedeploy.watch.session")

CLOSE_MESSAGE = "Watcher channel closed"

_CLIENT_GONE = object()


class SessionState(str, Enum):
    """Lifecycle of a stream session."""

    OPEN = "open"
    EMITTING = "emitting"
    UPSTREAM_CLOSED = "upstream_closed"
    CLIENT_GONE = "client_gone"
    CLOSED = "closed"


@dataclass(frozen=True)
class StreamFrame:
    """One unit of output: an event name and its JSON payload."""

    event: str
    data: Dict[str, Any]


class SessionContext:
    """
    Cancellation signal for one client connection.

    Done once cancel() is called (client disconnected, request superseded)
    or, when a deadline is set, once the deadline passes. Deadline expiry
    counts as a disconnect, not as an error.
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Initialize context.

        Args:
            deadline: Seconds the stream may stay open, measured from the
                first wait(); None for no limit
        """
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self.deadline = deadline

    @property
    def done(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "client disconnected") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> Optional[str]:
        """Wait until the context is done and return the reason."""
        if self.deadline is None:
            await self._event.wait()
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=self.deadline)
            except asyncio.TimeoutError:
                self.cancel("timeout")
        return self._reason


class StreamSession:
    """Serialized output loop for one subscription and one client."""

    def __init__(
        self,
        subscription: Subscription,
        context: SessionContext,
        translator: Callable[[ChangeNotification], WireEvent] = translate_notification,
        name: str = "watch",
    ):
        """
        Initialize session.

        Args:
            subscription: Established watch; owned by this session from now on
            context: Cancellation signal of the client connection
            translator: Turns notifications into wire events
            name: Label used in logs
        """
        self._subscription = subscription
        self._context = context
        self._translate = translator
        self._cancel_waiter: Optional[asyncio.Future] = None
        self._started = False
        self.name = name
        self.state = SessionState.OPEN
        self.events_sent = 0

    @property
    def context(self) -> SessionContext:
        return self._context

    async def frames(self) -> AsyncIterator[StreamFrame]:
        """
        Yield frames until the upstream closes or the client goes away.

        Raises:
            RuntimeError: If the session is consumed twice or after close()
        """
        if self._started or self.state is SessionState.CLOSED:
            raise RuntimeError(f"Stream session {self.name} can only be consumed once")
        self._started = True
        logger.info(f"Stream session {self.name} opened")

        try:
            while True:
                if self._context.done:
                    self._set_state(SessionState.CLIENT_GONE)
                    return

                try:
                    notification = await self._next_notification()
                except Exception as e:
                    # The channel itself broke: report it, then end as a closure
                    logger.error(f"Stream session {self.name} lost its subscription: {e}")
                    yield self._message(ChangeNotification.failure(f"subscription failed: {e}"))
                    notification = None

                if notification is _CLIENT_GONE:
                    self._set_state(SessionState.CLIENT_GONE)
                    return

                if notification is None:
                    self._set_state(SessionState.UPSTREAM_CLOSED)
                    logger.info(f"Stream session {self.name}: watcher channel closed")
                    yield StreamFrame("close", {"message": CLOSE_MESSAGE})
                    return

                self._set_state(SessionState.EMITTING)
                yield self._message(notification)
        except asyncio.CancelledError:
            self._context.cancel("client disconnected")
            self._set_state(SessionState.CLIENT_GONE)
            raise
        finally:
            self.close()

    def _message(self, notification: ChangeNotification) -> StreamFrame:
        event = self._translate(notification)
        self.events_sent += 1
        return StreamFrame("message", event.to_wire())

    async def _next_notification(self) -> Any:
        """Wait for the next change or for cancellation, whichever fires first."""
        if self._cancel_waiter is None:
            self._cancel_waiter = asyncio.ensure_future(self._context.wait())

        receive = asyncio.ensure_future(self._subscription.receive())
        try:
            done, _ = await asyncio.wait(
                {receive, self._cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            receive.cancel()
            raise

        # Cancellation wins a tie: nothing is emitted once the client is gone
        if self._cancel_waiter in done:
            receive.cancel()
            return _CLIENT_GONE
        return receive.result()

    def close(self) -> None:
        """Stop the subscription; later calls do nothing."""
        if self.state is SessionState.CLOSED:
            return
        if self.state not in (SessionState.UPSTREAM_CLOSED, SessionState.CLIENT_GONE):
            self._set_state(SessionState.CLIENT_GONE)
        if self._cancel_waiter is not None and not self._cancel_waiter.done():
            self._cancel_waiter.cancel()

        ending = self.state
        self._set_state(SessionState.CLOSED)
        try:
            self._subscription.stop()
        except Exception as e:
            logger.warning(f"Stream session {self.name}: failed to stop subscription: {e}")

        reason = "upstream closed" if ending is SessionState.UPSTREAM_CLOSED else (
            self._context.reason or "client disconnected"
        )
        logger.info(f"Stream session {self.name} closed after {self.events_sent} events ({reason})")

    async def aclose(self) -> None:
        """Awaitable close(), for response background tasks."""
        self.close()

    def _set_state(self, state: SessionState) -> None:
        logger.debug(f"Stream session {self.name}: {self.state.value} -> {state.value}")
        self.state = state
