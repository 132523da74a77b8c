"""Notification fan-out: outbox dispatcher, push hub and recipient queries."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.database import now_iso

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from worknest_service.services.notification_store import NotificationStore


class PushHub:
    """
    In-process publish/subscribe keyed by recipient email.

    Each live connection owns a bounded queue. Publishing to an email with
    no subscriber does nothing; a full queue drops the message, and the
    recipient still finds it by polling.
    """

    def __init__(self, queue_size: int) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = {}
        self._logger = get_logger(__name__)

    def subscribe(self, email: str) -> asyncio.Queue[dict[str, Any]]:
        """Register a new live connection for an email."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(email, set()).add(queue)
        return queue

    def unsubscribe(self, email: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        """Drop a live connection."""
        queues = self._subscribers.get(email)
        if queues is None:
            return
        queues.discard(queue)
        if len(queues) == 0:
            del self._subscribers[email]

    def subscriber_count(self, email: str) -> int:
        """Number of live connections for an email."""
        return len(self._subscribers.get(email, ()))

    def publish(self, notification: dict[str, Any]) -> int:
        """Deliver a notification to every live connection of its recipient."""
        delivered = 0
        for queue in list(self._subscribers.get(notification["to_email"], ())):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                self._logger.warning(
                    "Push queue full, dropping notification",
                    extra={
                        "notification_id": notification["notification_id"],
                        "to_email": notification["to_email"],
                    },
                )
                continue
            delivered += 1
        return delivered


class NotificationDispatcher:
    """
    Background task that drains the notification outbox into the push hub.

    Rows are stamped ``pushed_at`` whether or not the push succeeded, so a
    broken transport never blocks the outbox. Nothing here touches balances.
    """

    def __init__(
        self,
        store: NotificationStore,
        hub: PushHub,
        poll_interval_seconds: float,
        batch_size: int,
    ) -> None:
        self._store = store
        self._hub = hub
        self._poll_interval_seconds = poll_interval_seconds
        self._batch_size = batch_size
        self._task: asyncio.Task[None] | None = None
        self._logger = get_logger(__name__)

    @property
    def running(self) -> bool:
        """Whether the background loop is active."""
        return self._task is not None and not self._task.done()

    async def drain_once(self) -> int:
        """Push one batch from the outbox. Returns the number of rows handled."""
        batch = await run_in_threadpool(self._store.unpushed, self._batch_size)
        for notification in batch:
            try:
                self._hub.publish(notification)
            except Exception:
                self._logger.warning(
                    "Notification push failed",
                    exc_info=True,
                    extra={"notification_id": notification["notification_id"]},
                )
            await run_in_threadpool(
                self._store.mark_pushed, notification["notification_id"], now_iso()
            )
        return len(batch)

    async def _run(self) -> None:
        while True:
            try:
                handled = await self.drain_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception("Notification dispatcher iteration failed")
                handled = 0
            if handled < self._batch_size:
                await asyncio.sleep(self._poll_interval_seconds)

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self._logger.info(
            "Notification dispatcher started",
            extra={"poll_interval_seconds": self._poll_interval_seconds},
        )

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._logger.info("Notification dispatcher stopped")


class NotificationService:
    """Recipient-facing notification reads, read flags and the live stream."""

    def __init__(self, store: NotificationStore, hub: PushHub, keepalive_seconds: int) -> None:
        self._store = store
        self._hub = hub
        self._keepalive_seconds = keepalive_seconds

    def list_for_recipient(self, email: str) -> list[dict[str, Any]]:
        """A recipient's notifications, newest first."""
        return self._store.list_for_recipient(email)

    def mark_read(self, caller: dict[str, Any], notification_id: str) -> dict[str, Any]:
        """
        Flag a notification as read.

        Raises:
            ServiceError: NOTIFICATION_NOT_FOUND, FORBIDDEN.
        """
        notification = self._store.get_notification(notification_id)
        if notification is None:
            raise ServiceError("NOTIFICATION_NOT_FOUND", "Notification not found", 404, {})
        if notification["to_email"] != caller["email"]:
            raise ServiceError(
                "FORBIDDEN", "Only the recipient can mark a notification read", 403, {}
            )
        self._store.mark_read(notification_id)
        notification["is_read"] = True
        return notification

    async def stream(self, email: str) -> AsyncIterator[dict[str, Any]]:
        """Yield SSE events for one live connection until it closes."""
        queue = self._hub.subscribe(email)
        try:
            yield {"retry": 3000}
            while True:
                try:
                    notification = await asyncio.wait_for(
                        queue.get(), timeout=self._keepalive_seconds
                    )
                except TimeoutError:
                    yield {"comment": "keepalive"}
                    continue
                yield {
                    "event": "notification",
                    "id": notification["notification_id"],
                    "data": json.dumps(
                        {
                            "notification_id": notification["notification_id"],
                            "message": notification["message"],
                            "to_email": notification["to_email"],
                            "action_route": notification["action_route"],
                            "created_at": notification["created_at"],
                        }
                    ),
                }
        finally:
            self._hub.unsubscribe(email, queue)
