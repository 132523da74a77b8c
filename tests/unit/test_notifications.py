"""Unit tests for the notification hub, dispatcher and service."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from worknest_service.core.exceptions import ServiceError
from worknest_service.services.database import now_iso
from worknest_service.services.notifications import (
    NotificationDispatcher,
    NotificationService,
    PushHub,
)

ALICE = "alice@example.com"


def _notification(to_email: str = ALICE, notification_id: str = "n-1") -> dict[str, object]:
    return {
        "notification_id": notification_id,
        "message": "hello",
        "to_email": to_email,
        "action_route": "/dashboard",
        "created_at": now_iso(),
    }


@pytest.mark.unit
def test_hub_delivers_only_to_recipient() -> None:
    hub = PushHub(queue_size=5)
    alice_queue = hub.subscribe(ALICE)
    bob_queue = hub.subscribe("bob@example.com")

    delivered = hub.publish(_notification())

    assert delivered == 1
    assert alice_queue.qsize() == 1
    assert bob_queue.qsize() == 0


@pytest.mark.unit
def test_hub_without_subscribers_is_a_no_op() -> None:
    hub = PushHub(queue_size=5)
    assert hub.publish(_notification()) == 0


@pytest.mark.unit
def test_hub_drops_when_queue_full() -> None:
    hub = PushHub(queue_size=1)
    queue = hub.subscribe(ALICE)

    hub.publish(_notification(notification_id="n-1"))
    delivered = hub.publish(_notification(notification_id="n-2"))

    assert delivered == 0
    assert queue.qsize() == 1


@pytest.mark.unit
def test_hub_unsubscribe() -> None:
    hub = PushHub(queue_size=5)
    queue = hub.subscribe(ALICE)
    hub.unsubscribe(ALICE, queue)

    assert hub.subscriber_count(ALICE) == 0
    assert hub.publish(_notification()) == 0


@pytest.mark.unit
async def test_dispatcher_pushes_and_marks_outbox(services) -> None:
    hub = PushHub(queue_size=5)
    queue = hub.subscribe(ALICE)
    services.notifications.append(ALICE, "first", "/dashboard", now_iso())
    services.notifications.append(ALICE, "second", "/dashboard", now_iso())
    dispatcher = NotificationDispatcher(services.notifications, hub, 0.01, 100)

    handled = await dispatcher.drain_once()

    assert handled == 2
    assert [queue.get_nowait()["message"] for _ in range(2)] == ["first", "second"]
    assert services.notifications.unpushed(10) == []


@pytest.mark.unit
async def test_dispatcher_marks_pushed_even_when_hub_fails(services) -> None:
    hub = MagicMock()
    hub.publish.side_effect = RuntimeError("transport down")
    services.notifications.append(ALICE, "first", "/dashboard", now_iso())
    dispatcher = NotificationDispatcher(services.notifications, hub, 0.01, 100)

    handled = await dispatcher.drain_once()

    assert handled == 1
    assert services.notifications.unpushed(10) == []
    assert len(services.notifications.list_for_recipient(ALICE)) == 1


@pytest.mark.unit
async def test_dispatcher_background_loop(services) -> None:
    hub = PushHub(queue_size=5)
    queue = hub.subscribe(ALICE)
    dispatcher = NotificationDispatcher(services.notifications, hub, 0.01, 100)
    dispatcher.start()
    assert dispatcher.running

    services.notifications.append(ALICE, "live", "/dashboard", now_iso())
    pushed = await asyncio.wait_for(queue.get(), timeout=2)

    assert pushed["message"] == "live"
    await dispatcher.stop()
    assert not dispatcher.running


@pytest.mark.unit
def test_mark_read_by_recipient_only(services) -> None:
    service = NotificationService(services.notifications, PushHub(queue_size=5), 15)
    notification = services.notifications.append(ALICE, "hi", "/dashboard", now_iso())

    with pytest.raises(ServiceError) as exc_info:
        service.mark_read({"email": "bob@example.com"}, notification["notification_id"])
    assert exc_info.value.error == "FORBIDDEN"

    updated = service.mark_read({"email": ALICE}, notification["notification_id"])
    assert updated["is_read"] is True
    assert service.list_for_recipient(ALICE)[0]["is_read"] is True

    with pytest.raises(ServiceError) as exc_info:
        service.mark_read({"email": ALICE}, "n-missing")
    assert exc_info.value.error == "NOTIFICATION_NOT_FOUND"


@pytest.mark.unit
async def test_stream_yields_pushed_notifications(services) -> None:
    hub = PushHub(queue_size=5)
    service = NotificationService(services.notifications, hub, 15)
    stream = service.stream(ALICE)

    assert await anext(stream) == {"retry": 3000}
    pending = asyncio.ensure_future(anext(stream))
    await asyncio.sleep(0)
    hub.publish(_notification())
    event = await asyncio.wait_for(pending, timeout=2)

    assert event["event"] == "notification"
    assert json.loads(event["data"])["message"] == "hello"
    await stream.aclose()
    assert hub.subscriber_count(ALICE) == 0


@pytest.mark.unit
async def test_stream_sends_keepalive(services) -> None:
    service = NotificationService(services.notifications, PushHub(queue_size=5), 0)
    stream = service.stream(ALICE)

    await anext(stream)
    assert await anext(stream) == {"comment": "keepalive"}
    await stream.aclose()
