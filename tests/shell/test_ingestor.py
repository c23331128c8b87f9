"""Tests for the PositionIngestor."""

from unittest.mock import Mock

import pytest

from conftest import INSIDE, OUTSIDE, START, add_device
from paddock.core.config import CHANNEL_TELEGRAM
from paddock.core.lifecycle import EVENT_CREATED, EVENT_DISMISSED
from paddock.core.models import ALERT_TYPE_GEOFENCE, DevicePayload, Geofence, TrackedEntity
from paddock.exceptions import UnknownEntityError
from paddock.service import build_service
from paddock.shell.repository import InMemoryRepository


def geofence_alerts(repository, active=True):
    return repository.find_alerts(type=ALERT_TYPE_GEOFENCE, active=active)


class TestRecord:
    """Tests for PositionIngestor.record()."""

    def test_inside_position_is_stored_without_alert(self, service, repository):
        report = service.ingestor.record("horse-1", *INSIDE)

        assert repository.get_positions("horse-1") == [report]
        assert geofence_alerts(repository) == []

    def test_outside_position_raises_alert(self, service, repository, events):
        service.ingestor.record("horse-1", *OUTSIDE)

        assert len(geofence_alerts(repository)) == 1
        assert [e.type for e in events] == [EVENT_CREATED]

    def test_exit_then_return(self, service, repository, events, clock):
        service.ingestor.record("horse-1", *OUTSIDE)
        clock.advance(seconds=30)
        service.ingestor.record("horse-1", *OUTSIDE)
        clock.advance(seconds=30)
        service.ingestor.record("horse-1", *INSIDE)

        assert geofence_alerts(repository) == []
        assert [e.type for e in events] == [EVENT_CREATED, EVENT_DISMISSED]
        assert len(repository.get_positions("horse-1")) == 3

    def test_no_geofences_counts_as_outside(self, config, push_sink, clock):
        repository = InMemoryRepository()
        repository.save_entity(TrackedEntity(id="horse-2", name="Storm"))
        service = build_service(
            config,
            repository=repository,
            sinks={CHANNEL_TELEGRAM: push_sink},
            clock=clock,
        )

        service.ingestor.record("horse-2", *INSIDE)

        assert len(repository.find_alerts(active=True)) == 1

    def test_keyed_vertex_geofence_does_not_block_others(self, service, repository):
        """A geofence stored as {lat, lng} objects is skipped; the rest still apply."""
        repository.save_geofence(Geofence(
            id="gf-keyed",
            name="Imported paddock",
            vertices=[{"lat": 1.0, "lng": 1.0}, {"lat": 1.0, "lng": 2.0}, {"lat": 2.0, "lng": 2.0}],
        ))

        service.ingestor.record("horse-1", *INSIDE)
        assert geofence_alerts(repository) == []

        service.ingestor.record("horse-1", *OUTSIDE)
        assert len(geofence_alerts(repository)) == 1

    def test_unknown_entity_raises(self, service, repository):
        with pytest.raises(UnknownEntityError) as exc_info:
            service.ingestor.record("ghost", *INSIDE)

        assert exc_info.value.entity_id == "ghost"
        assert repository.get_positions("ghost") == []

    def test_touches_device(self, service, repository, clock):
        add_device(repository, last_signal=START, battery=50, is_online=False)
        now = clock.advance(minutes=3)

        service.ingestor.record("horse-1", *INSIDE, battery_level=45)

        device = repository.get_device_by_external_id("collar-1")
        assert device.is_online is True
        assert device.last_signal == now
        assert device.battery_level == 45

    def test_auto_provisions_unregistered_device(self, service, repository):
        service.ingestor.record("horse-1", *INSIDE)

        device = repository.get_device_by_external_id("collar-1")
        assert device is not None
        assert device.entity_id == "horse-1"
        assert device.firmware_version == "1.0.0"

    def test_evaluation_failure_keeps_report(self, service, repository):
        service.manager.on_position_evaluated = Mock(side_effect=RuntimeError("boom"))

        report = service.ingestor.record("horse-1", *OUTSIDE)

        assert repository.get_positions("horse-1") == [report]


class TestHandleDevicePayload:
    """Tests for PositionIngestor.handle_device_payload()."""

    def test_unknown_device_registered_without_position(self, service, repository):
        result = service.ingestor.handle_device_payload(
            DevicePayload(device_id="collar-new", latitude=55.7, longitude=37.6, battery_level=90)
        )

        assert result.created is True
        assert result.report is None
        assert result.device.device_id == "collar-new"
        assert result.device.is_online is True
        assert repository.get_device_by_external_id("collar-new").battery_level == 90

    def test_linked_device_records_position(self, service, repository):
        add_device(repository, last_signal=START)
        lat, lng = OUTSIDE

        result = service.ingestor.handle_device_payload(
            DevicePayload(device_id="collar-1", latitude=lat, longitude=lng, battery_level=70)
        )

        assert result.created is False
        assert result.report.entity_id == "horse-1"
        assert result.report.battery_level == 70
        assert len(geofence_alerts(repository)) == 1

    def test_device_linked_to_missing_entity(self, service, repository):
        add_device(repository, last_signal=START, entity_id="ghost", device_id="collar-9")

        result = service.ingestor.handle_device_payload(
            DevicePayload(device_id="collar-9", latitude=1, longitude=2, battery_level=50)
        )

        assert result.report is None
