"""Tests for the in-memory repository."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from paddock.core.models import (
    ALERT_TYPE_DEVICE_OFFLINE,
    ALERT_TYPE_GEOFENCE,
    SEVERITY_WARNING,
    Alert,
    Device,
    PositionReport,
)
from paddock.shell.repository import InMemoryRepository


T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_alert(alert_id="a-1", entity_id="horse-1", alert_type=ALERT_TYPE_GEOFENCE, is_active=True):
    return Alert(
        id=alert_id,
        entity_id=entity_id,
        type=alert_type,
        severity=SEVERITY_WARNING,
        title="t",
        description="d",
        created_at=T0,
        is_active=is_active,
    )


@pytest.fixture
def repo():
    return InMemoryRepository()


class TestInsertAlertIfAbsent:
    """Tests for InMemoryRepository.insert_alert_if_absent()."""

    def test_inserts_when_key_free(self, repo):
        assert repo.insert_alert_if_absent(make_alert()) is True
        assert repo.get_alert("a-1") is not None

    def test_rejects_second_active_alert_for_key(self, repo):
        repo.insert_alert_if_absent(make_alert("a-1"))

        assert repo.insert_alert_if_absent(make_alert("a-2")) is False
        assert repo.get_alert("a-2") is None

    def test_other_type_or_entity_is_independent(self, repo):
        repo.insert_alert_if_absent(make_alert("a-1"))

        assert repo.insert_alert_if_absent(make_alert("a-2", alert_type=ALERT_TYPE_DEVICE_OFFLINE)) is True
        assert repo.insert_alert_if_absent(make_alert("a-3", entity_id="horse-2")) is True

    def test_key_free_again_after_deactivation(self, repo):
        repo.insert_alert_if_absent(make_alert("a-1"))
        repo.update_alert_if("a-1", {"is_active": True}, {"is_active": False})

        assert repo.insert_alert_if_absent(make_alert("a-2")) is True

    def test_parallel_inserts_single_winner(self, repo):
        barrier = threading.Barrier(12)
        results = []

        def insert(i):
            barrier.wait()
            results.append(repo.insert_alert_if_absent(make_alert(f"a-{i}")))

        threads = [threading.Thread(target=insert, args=(i,)) for i in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(repo.find_alerts(active=True)) == 1


class TestUpdateAlertIf:
    """Tests for InMemoryRepository.update_alert_if()."""

    def test_applies_when_expected_matches(self, repo):
        repo.insert_alert_if_absent(make_alert())

        updated = repo.update_alert_if("a-1", {"push_sent": False}, {"push_sent": True})

        assert updated.push_sent is True
        assert repo.get_alert("a-1").push_sent is True

    def test_returns_none_when_precondition_fails(self, repo):
        repo.insert_alert_if_absent(make_alert())
        repo.update_alert_if("a-1", {"push_sent": False}, {"push_sent": True})

        assert repo.update_alert_if("a-1", {"push_sent": False}, {"push_sent": True}) is None

    def test_returns_none_for_missing_alert(self, repo):
        assert repo.update_alert_if("missing", {}, {"is_active": False}) is None


class TestUpdateDeviceIf:
    """Tests for InMemoryRepository.update_device_if()."""

    def test_applies_when_expected_matches(self, repo):
        repo.save_device(Device(id="dev-1", device_id="collar-1", is_online=True, last_signal=T0))

        updated = repo.update_device_if("dev-1", {"last_signal": T0, "is_online": True}, {"is_online": False})

        assert updated.is_online is False
        assert repo.get_device_by_external_id("collar-1").is_online is False

    def test_newer_signal_blocks_update(self, repo):
        repo.save_device(Device(id="dev-1", device_id="collar-1", is_online=True, last_signal=T0 + timedelta(minutes=11)))

        assert repo.update_device_if("dev-1", {"last_signal": T0}, {"is_online": False}) is None
        assert repo.get_device_by_external_id("collar-1").is_online is True

    def test_missing_device(self, repo):
        assert repo.update_device_if("nope", {}, {"is_online": False}) is None


class TestQueries:
    """Tests for find_alerts, positions and devices."""

    def test_find_alerts_filters(self, repo):
        repo.insert_alert_if_absent(make_alert("a-1"))
        repo.insert_alert_if_absent(make_alert("a-2", alert_type=ALERT_TYPE_DEVICE_OFFLINE))
        repo.update_alert_if("a-2", {}, {"is_active": False})

        assert [a.id for a in repo.find_alerts(active=True)] == ["a-1"]
        assert [a.id for a in repo.find_alerts(type=ALERT_TYPE_DEVICE_OFFLINE)] == ["a-2"]
        assert repo.find_alerts(entity_id="horse-2") == []

    def test_positions_newest_first_with_limit(self, repo):
        for minutes in (0, 5, 2):
            repo.add_position(PositionReport(
                id=f"p{minutes}",
                entity_id="horse-1",
                latitude=1.0,
                longitude=2.0,
                timestamp=T0 + timedelta(minutes=minutes),
            ))

        assert [p.id for p in repo.get_positions("horse-1")] == ["p5", "p2", "p0"]
        assert [p.id for p in repo.get_positions("horse-1", limit=1)] == ["p5"]
        assert repo.get_positions("horse-2") == []

    def test_device_lookup_by_external_id(self, repo):
        repo.save_device(Device(id="dev-1", device_id="collar-1"))

        assert repo.get_device_by_external_id("collar-1").id == "dev-1"
        assert repo.get_device_by_external_id("collar-2") is None
