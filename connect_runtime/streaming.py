"""Background consumer for push adapters."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Protocol

from connect_runtime.errors import AdapterConnectionError, AdapterError, AdapterStartError, DecodeError
from connect_runtime.pipeline import Event, EventPipeline
from connect_runtime.state import RunState

logger = logging.getLogger(__name__)

MessageCallback = Callable[[bytes], None]
Decoder = Callable[[bytes], Event]

_STOP = object()


class Subscription(Protocol):
    """Source-initiated message feed."""

    def open(self, on_message: MessageCallback) -> None:
        """Establish the subscription; raise if it cannot be established."""
        ...

    def close(self) -> None:
        ...


class StreamConsumer:
    """
    Forwards one decoded event per inbound message.

    Subscription callbacks only enqueue raw payloads. A single worker thread
    drains the queue, decodes and hands events to the pipeline, so stop() has
    one join point and no event is delivered once it returns.
    """

    def __init__(
        self,
        name: str,
        subscription: Subscription,
        decoder: Decoder,
        pipeline: EventPipeline,
        max_pending: int = 0,
    ) -> None:
        self._name = name
        self._subscription = subscription
        self._decoder = decoder
        self._pipeline = pipeline
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max_pending)

        self._state = RunState.IDLE
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> RunState:
        return self._state

    def start(self) -> None:
        """Open the subscription and spawn the worker; does not block."""
        with self._lock:
            if self._state is RunState.FAILED:
                raise AdapterStartError(f"{self._name} failed earlier and must be rebuilt")
            if self._state is not RunState.IDLE:
                raise AdapterStartError(f"{self._name} is already {self._state.value}")
            self._state = RunState.CONNECTING

        try:
            self._subscription.open(self._enqueue)
        except Exception as exc:
            with self._lock:
                if self._stopping.is_set():
                    logger.info("%s stopped while subscribing", self._name)
                    return None
                self._state = RunState.FAILED
            if isinstance(exc, AdapterError):
                raise
            raise AdapterConnectionError(f"Could not subscribe for {self._name}: {exc}") from exc

        with self._lock:
            if self._stopping.is_set():
                # stop() ran while open() was blocked; its close() predates the subscription.
                self._close_subscription()
                logger.info("%s stopped while subscribing", self._name)
                return None
            self._thread = threading.Thread(target=self._run, name=f"stream-{self._name}", daemon=True)
            self._state = RunState.RUNNING
            self._thread.start()
        logger.info("%s subscribed", self._name)

    def stop(self) -> None:
        """Unsubscribe and wait for the worker to exit."""
        with self._lock:
            if self._state in (RunState.STOPPED, RunState.FAILED):
                return None
            self._state = RunState.STOPPED
            self._stopping.set()
            thread = self._thread

        self._close_subscription()

        if thread is not None:
            self._wake()
            if thread is not threading.current_thread():
                thread.join()
        logger.info("%s stopped", self._name)

    def _close_subscription(self) -> None:
        try:
            self._subscription.close()
        except Exception:
            logger.exception("%s: error while closing subscription", self._name)

    def _enqueue(self, payload: bytes) -> None:
        if self._stopping.is_set():
            return None
        try:
            self._queue.put_nowait(payload)
        except queue.Full:
            logger.warning("%s: dropping message, %d pending", self._name, self._queue.qsize())

    def _wake(self) -> None:
        # Bounded queues may be full; make room so the worker sees the sentinel.
        while True:
            try:
                self._queue.put_nowait(_STOP)
                return None
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP or self._stopping.is_set():
                break
            self._handle(item)  # type: ignore[arg-type]

    def _handle(self, payload: bytes) -> None:
        try:
            event = self._decoder(payload)
        except DecodeError as exc:
            logger.warning("%s: dropping undecodable message: %s", self._name, exc)
            return None
        except Exception:
            logger.exception("%s: decoder failed, dropping message", self._name)
            return None

        if self._stopping.is_set():
            return None

        try:
            self._pipeline.process(event)
        except Exception:
            logger.exception("%s: pipeline rejected event", self._name)
