"""Tests for the ConnectivityWatchdog."""

from datetime import timedelta

import pytest

from conftest import INSIDE, START, add_device
from paddock.core.lifecycle import EVENT_CREATED, EVENT_DISMISSED
from paddock.core.models import ALERT_TYPE_DEVICE_OFFLINE, SEVERITY_URGENT, TrackedEntity


def offline_alerts(repository, active=True):
    return repository.find_alerts(type=ALERT_TYPE_DEVICE_OFFLINE, active=active)


class TestOfflineDetection:
    """Devices silent past the offline threshold."""

    def test_silent_device_with_battery_raises_urgent_alert(self, service, repository, clock, push_sink):
        add_device(repository, last_signal=START, battery=80)
        now = clock.advance(minutes=11)

        result = service.watchdog.check_devices()

        assert len(result.created) == 1
        alert = offline_alerts(repository)[0]
        assert alert.entity_id == "horse-1"
        assert alert.severity == SEVERITY_URGENT
        assert alert.escalated is True
        assert alert.escalated_at == now
        assert alert.push_sent is True
        assert "Thunder" in alert.title
        push_sink.send.assert_called_once()
        assert push_sink.send.call_args.args[1].require_interaction is True

    def test_low_battery_suppresses_alert(self, service, repository, clock):
        add_device(repository, last_signal=START, battery=20)
        clock.advance(minutes=30)

        assert service.watchdog.check_devices().created == []
        assert offline_alerts(repository) == []

    def test_unknown_battery_suppresses_alert(self, service, repository, clock):
        add_device(repository, last_signal=START, battery=None)
        clock.advance(minutes=30)

        assert service.watchdog.check_devices().created == []

    def test_device_marked_offline(self, service, repository, clock):
        add_device(repository, last_signal=START, battery=10, is_online=True)
        clock.advance(minutes=11)

        service.watchdog.check_devices()

        assert repository.get_device_by_external_id("collar-1").is_online is False

    def test_repeated_sweeps_raise_one_alert(self, service, repository, clock, push_sink, events):
        add_device(repository, last_signal=START)
        for _ in range(4):
            clock.advance(minutes=6)
            service.watchdog.check_devices()

        assert len(offline_alerts(repository)) == 1
        assert [e.type for e in events] == [EVENT_CREATED]
        assert push_sink.send.call_count == 1

    def test_report_during_sweep_is_not_rolled_back(self, service, repository, clock, monkeypatch):
        """A report landing after the sweep lists devices keeps the device online."""
        add_device(repository, last_signal=START, battery=80)
        clock.advance(minutes=11)
        list_devices = repository.list_devices

        def list_then_report():
            listed = list_devices()
            service.ingestor.record("horse-1", *INSIDE, battery_level=75.0)
            return listed

        monkeypatch.setattr(repository, "list_devices", list_then_report)

        result = service.watchdog.check_devices()

        device = repository.get_device_by_external_id("collar-1")
        assert device.last_signal == clock.now
        assert device.battery_level == 75.0
        assert device.is_online is True
        assert result.created == []
        assert offline_alerts(repository) == []

    def test_unassigned_and_never_seen_devices_skipped(self, service, repository, clock):
        add_device(repository, last_signal=START, entity_id=None, device_id="spare")
        add_device(repository, last_signal=None, device_id="new")
        clock.advance(hours=1)

        result = service.watchdog.check_devices()

        assert result.created == []
        assert result.errors == []


class TestRecovery:
    """Devices heard from again."""

    @pytest.fixture
    def offline(self, service, repository, clock):
        add_device(repository, last_signal=START)
        clock.advance(minutes=11)
        service.watchdog.check_devices()
        return offline_alerts(repository)[0]

    def test_recent_signal_dismisses_alert(self, service, repository, clock, offline, events):
        add_device(repository, last_signal=clock.now - timedelta(minutes=2))

        result = service.watchdog.check_devices()

        assert result.dismissed == [offline.id]
        assert offline_alerts(repository) == []
        assert events[-1].type == EVENT_DISMISSED

    def test_dead_zone_keeps_alert(self, service, repository, clock, offline):
        add_device(repository, last_signal=clock.now - timedelta(minutes=7))

        result = service.watchdog.check_devices()

        assert result.dismissed == []
        assert len(offline_alerts(repository)) == 1

    def test_dead_zone_never_creates(self, service, repository, clock):
        add_device(repository, last_signal=START)
        clock.advance(minutes=7)

        assert service.watchdog.check_devices().created == []

    def test_recovery_sends_resolved_push(self, service, repository, clock, offline, push_sink):
        push_sink.send.reset_mock()
        add_device(repository, last_signal=clock.now)

        service.watchdog.check_devices()

        push_sink.send.assert_called_once()
        notification = push_sink.send.call_args.args[1]
        assert notification.title.startswith("✅ Resolved:")
        assert notification.tag == offline.id


class TestSweepResilience:
    """A failure on one device must not stop the sweep."""

    def test_broken_device_recorded_and_sweep_continues(self, service, repository, clock):
        repository.save_entity(TrackedEntity(id="horse-2", name="Storm", device_id="collar-2"))
        add_device(repository, last_signal=START, entity_id="horse-1", device_id="collar-1")
        add_device(repository, last_signal=START, entity_id="horse-2", device_id="collar-2")
        clock.advance(minutes=20)

        real_lookup = service.manager.active_alert

        def flaky(entity_id, alert_type):
            if entity_id == "horse-1":
                raise RuntimeError("read failed")
            return real_lookup(entity_id, alert_type)

        service.manager.active_alert = flaky
        result = service.watchdog.check_devices()

        assert [a.entity_id for a in result.created] == ["horse-2"]
        assert len(result.errors) == 1
        assert "collar-1" in result.errors[0]

    def test_device_linked_to_missing_entity(self, service, repository, clock):
        add_device(repository, last_signal=START, entity_id="ghost", device_id="collar-9")
        clock.advance(minutes=20)

        result = service.watchdog.check_devices()

        assert result.created == []
        assert result.errors == []
