"""
NotificationDispatcher - outbound queue for committed workflow moves

Messages are queued by the MoveExecutor after a commit and delivered to
subscribers (the notification center, dashboards) on a background thread.
Delivery is best-effort: every message gets a bounded number of attempts per
subscriber, and exhausted deliveries are kept as NotificationDeliveryFailure
records instead of being retried forever or raised to the mover.
"""

import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from vehicle_workflow.data.core.audited_base import utcnow
from vehicle_workflow.utils.logger import get_logger
from vehicle_workflow.utils.logging_sanitizer import sanitize_exception_message

logger = get_logger("vehicle_workflow.workflow.notifications")


@dataclass(frozen=True)
class NotificationMessage:
    """One outbound notification; payload holds plain data only"""

    type: str
    vin: str
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: Any = field(default_factory=utcnow)


@dataclass(frozen=True)
class NotificationDeliveryFailure:
    """Record of a message a subscriber could not take after all attempts"""

    message: NotificationMessage
    subscriber: str
    attempts: int
    error: str
    failed_at: Any = field(default_factory=utcnow)


Subscriber = Union[Callable[[NotificationMessage], Any], Any]

_STOP = object()


def _subscriber_name(subscriber) -> str:
    return getattr(subscriber, 'name', None) or getattr(subscriber, '__name__', None) or type(subscriber).__name__


class NotificationDispatcher:
    """
    Fire-and-forget delivery of workflow notifications.

    Subscribers are callables or objects with a notify(message) method.
    The worker thread starts on the first queued message.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        failure_history: int = 100,
        max_queue_size: int = 0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.failures: Deque[NotificationDeliveryFailure] = deque(maxlen=failure_history)
        self.delivered_count = 0
        self.dropped_count = 0

        self._subscribers: List[Subscriber] = []
        self._queue: "queue.Queue" = queue.Queue(maxsize=max_queue_size)
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._closed = False

    # ========== Subscribers ==========

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    @property
    def subscribers(self) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers)

    # ========== Publishing ==========

    def notify(self, message: NotificationMessage) -> bool:
        """
        Queue a message for delivery. Never raises and never blocks.

        Returns:
            bool: False if the message was dropped (dispatcher closed or queue full)
        """
        # Checked and enqueued under the lock so nothing lands behind close's stop marker
        with self._lock:
            if self._closed:
                reason = "dispatcher is closed"
            else:
                self._start_worker_locked()
                try:
                    self._queue.put_nowait(message)
                    return True
                except queue.Full:
                    reason = "notification queue is full"

        self._drop(message, reason)
        return False

    def publish(self, message_type: str, vin: str, **payload) -> bool:
        return self.notify(NotificationMessage(type=message_type, vin=vin, payload=payload))

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every queued message has been handled.

        Returns:
            bool: True if the queue emptied before the timeout
        """
        if timeout is None:
            self._queue.join()
            return True

        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting messages, finish the queue and stop the worker"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker

        if worker is not None and worker.is_alive():
            self._queue.put(_STOP)
            worker.join(timeout)

    # ========== Worker ==========

    def _start_worker_locked(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(
                target=self._run,
                name="workflow-notifications",
                daemon=True,
            )
            self._worker.start()

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            try:
                if message is _STOP:
                    return
                self._deliver(message)
            finally:
                self._queue.task_done()

    def _deliver(self, message: NotificationMessage) -> None:
        for subscriber in self.subscribers:
            self._deliver_to(subscriber, message)

    def _deliver_to(self, subscriber: Subscriber, message: NotificationMessage) -> bool:
        handler = getattr(subscriber, 'notify', subscriber)
        name = _subscriber_name(subscriber)
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                handler(message)
            except Exception as e:
                last_error = sanitize_exception_message(e)
                logger.warning(
                    f"Notification {message.type} for {message.vin} to {name} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {last_error}"
                )
                if attempt < self.max_attempts and self.retry_delay:
                    time.sleep(self.retry_delay)
                continue

            with self._lock:
                self.delivered_count += 1
            return True

        failure = NotificationDeliveryFailure(
            message=message,
            subscriber=name,
            attempts=self.max_attempts,
            error=last_error or 'unknown error',
        )
        with self._lock:
            self.failures.append(failure)
        logger.error(
            f"NotificationDeliveryFailure: {message.type} for {message.vin} to {name} "
            f"after {self.max_attempts} attempts: {failure.error}"
        )
        return False

    def _drop(self, message: NotificationMessage, error: str) -> None:
        failure = NotificationDeliveryFailure(message=message, subscriber='*', attempts=0, error=error)
        with self._lock:
            self.dropped_count += 1
            self.failures.append(failure)
        logger.error(f"NotificationDeliveryFailure: {message.type} for {message.vin} dropped: {error}")
