"""Tests for the real-time hub."""

from unittest.mock import Mock

from paddock.shell.realtime_hub import CONNECTION_ESTABLISHED, RealtimeHub


class TestRealtimeHub:
    """Tests for RealtimeHub."""

    def test_subscriber_is_greeted(self):
        hub = RealtimeHub()
        received = []

        hub.subscribe(received.append)

        assert received == [CONNECTION_ESTABLISHED]
        assert hub.subscriber_count == 1

    def test_broadcast_reaches_all_subscribers(self):
        hub = RealtimeHub()
        first, second = [], []
        hub.subscribe(first.append)
        hub.subscribe(second.append)

        delivered = hub.broadcast({"type": "alert_created"})

        assert delivered == 2
        assert first[-1] == {"type": "alert_created"}
        assert second[-1] == {"type": "alert_created"}

    def test_late_joiner_gets_no_replay(self):
        """Only messages broadcast after subscribing are delivered."""
        hub = RealtimeHub()
        hub.broadcast({"type": "alert_created"})
        received = []

        hub.subscribe(received.append)

        assert received == [CONNECTION_ESTABLISHED]

    def test_unsubscribe(self):
        hub = RealtimeHub()
        received = []
        subscription_id = hub.subscribe(received.append)

        assert hub.unsubscribe(subscription_id) is True
        assert hub.unsubscribe(subscription_id) is False
        assert hub.broadcast({"type": "alert_dismissed"}) == 0
        assert received == [CONNECTION_ESTABLISHED]

    def test_failing_subscriber_is_dropped(self):
        """A subscriber that raises is disconnected; others still receive."""
        hub = RealtimeHub()
        broken = Mock(side_effect=[None, ConnectionError("closed")])
        received = []
        hub.subscribe(broken)
        hub.subscribe(received.append)

        delivered = hub.broadcast({"type": "alert_escalated"})

        assert delivered == 1
        assert received[-1] == {"type": "alert_escalated"}
        assert hub.subscriber_count == 1

    def test_broadcast_without_subscribers(self):
        assert RealtimeHub().broadcast({"type": "push_notification"}) == 0
