"""
Tests for the presence hub.
"""

import threading

from core.presence import PresenceHub, PresenceKind
from models.entities import Post, User


ALICE = User(id=1, display_name="Alice")


def test_event_not_delivered_to_origin():
    hub = PresenceHub()
    received = []
    origin = hub.subscribe(1, lambda event: received.append(("origin", event)))
    hub.subscribe(1, lambda event: received.append(("other", event)))

    delivered = hub.publish_typing(1, ALICE, origin=origin)

    assert delivered == 1
    assert [who for who, _ in received] == ["other"]
    assert received[0][1].kind == PresenceKind.TYPING
    assert received[0][1].user == ALICE


def test_events_are_scoped_to_thread():
    hub = PresenceHub()
    received = []
    hub.subscribe(1, received.append)
    hub.subscribe(2, received.append)

    post = Post(id=5, thread_id=2, author=ALICE, body_raw="hi")
    hub.publish_authored(2, post)

    assert len(received) == 1
    assert received[0].post == post
    assert received[0].kind == PresenceKind.AUTHORED


def test_unsubscribe():
    hub = PresenceHub()
    received = []
    subscription = hub.subscribe(1, received.append)

    hub.unsubscribe(subscription)
    hub.unsubscribe(subscription)
    hub.publish_typing(1, ALICE)

    assert received == []
    assert hub.subscriber_count(1) == 0


def test_failing_listener_does_not_stop_delivery():
    hub = PresenceHub()
    received = []

    def broken(event):
        raise RuntimeError("view gone")

    hub.subscribe(1, broken)
    hub.subscribe(1, received.append)

    delivered = hub.publish_typing(1, ALICE)

    assert delivered == 1
    assert len(received) == 1


def test_concurrent_subscribers():
    hub = PresenceHub()

    def subscribe_many():
        for _ in range(50):
            hub.subscribe(1, lambda event: None)

    workers = [threading.Thread(target=subscribe_many) for _ in range(4)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert hub.subscriber_count(1) == 200
