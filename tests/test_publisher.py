"""Tests for the UpdatePublisher."""

from queue import Empty

import pytest

from procwatch.models import MonitorKind
from procwatch.publisher import Subscription, UpdatePublisher


class TestUpdatePublisher:
    """Tests for subscription management and delivery."""

    def test_callback_receives_snapshots_of_its_kind(self):
        publisher = UpdatePublisher()
        received = []
        publisher.subscribe(MonitorKind.SYSTEM, received.append)

        publisher.publish(MonitorKind.SYSTEM, "snap-1")
        publisher.publish(MonitorKind.PROCESS, ("proc",))

        assert received == ["snap-1"]

    def test_string_kinds_are_accepted(self):
        publisher = UpdatePublisher()
        received = []
        subscription = publisher.subscribe("process", received.append)

        publisher.publish("process", ())

        assert isinstance(subscription, Subscription)
        assert subscription.kind is MonitorKind.PROCESS
        assert received == [()]

    def test_unsubscribe_is_idempotent(self):
        publisher = UpdatePublisher()
        received = []
        subscription = publisher.subscribe(MonitorKind.SYSTEM, received.append)

        publisher.unsubscribe(subscription)
        publisher.unsubscribe(subscription)
        publisher.publish(MonitorKind.SYSTEM, "snap")

        assert received == []
        assert not subscription.active
        assert publisher.subscriber_count(MonitorKind.SYSTEM) == 0

    def test_unsubscribe_during_delivery(self):
        publisher = UpdatePublisher()
        received = []
        handles = {}

        def first(payload):
            received.append(("first", payload))
            publisher.unsubscribe(handles["first"])
            publisher.unsubscribe(handles["second"])

        handles["first"] = publisher.subscribe(MonitorKind.SYSTEM, first)
        handles["second"] = publisher.subscribe(MonitorKind.SYSTEM, lambda p: received.append(("second", p)))

        delivered = publisher.publish(MonitorKind.SYSTEM, 1)
        publisher.publish(MonitorKind.SYSTEM, 2)

        # The second subscriber was closed before its turn came
        assert received == [("first", 1)]
        assert delivered == 1

    def test_failing_callback_does_not_block_others(self, caplog):
        publisher = UpdatePublisher()
        received = []

        def broken(payload):
            raise RuntimeError("boom")

        publisher.subscribe(MonitorKind.PROCESS, broken)
        publisher.subscribe(MonitorKind.PROCESS, received.append)

        delivered = publisher.publish(MonitorKind.PROCESS, "records")

        assert received == ["records"]
        assert delivered == 1
        assert "boom" in caplog.text

    def test_release_closes_every_subscription_of_a_kind(self):
        publisher = UpdatePublisher()
        system = publisher.subscribe(MonitorKind.SYSTEM)
        process = publisher.subscribe(MonitorKind.PROCESS)

        assert publisher.release(MonitorKind.SYSTEM) == 1

        assert not system.active
        assert process.active
        assert publisher.subscriber_count(MonitorKind.SYSTEM) == 0


class TestMailboxSubscription:
    """Tests for subscriptions without a callback."""

    def test_keeps_only_latest_snapshot(self):
        publisher = UpdatePublisher()
        subscription = publisher.subscribe(MonitorKind.SYSTEM)

        for value in range(5):
            publisher.publish(MonitorKind.SYSTEM, value)

        assert subscription.get(timeout=1.0) == 4
        assert subscription.latest() is None

    def test_get_times_out(self):
        subscription = UpdatePublisher().subscribe(MonitorKind.PROCESS)

        with pytest.raises(Empty):
            subscription.get(timeout=0.05)

    def test_closed_mailbox_ignores_deliveries(self):
        publisher = UpdatePublisher()
        subscription = publisher.subscribe(MonitorKind.SYSTEM)
        publisher.unsubscribe(subscription)

        subscription.deliver("late")

        assert subscription.latest() is None
