"""Tests for the Cloud Function entry points."""

from unittest.mock import Mock, patch

import pytest

from conftest import OUTSIDE, add_device
from paddock import main


@pytest.fixture
def use_service(service):
    with patch.object(main, "get_service", return_value=service):
        yield service


def make_request(body):
    request = Mock()
    request.get_json.return_value = body
    return request


class TestDeviceData:
    """Tests for the device_data HTTP function."""

    def test_records_position_for_linked_device(self, use_service, repository, clock):
        add_device(repository, last_signal=clock.now)

        body, status = main.device_data(make_request({"id": "collar-1", "x": OUTSIDE[1], "y": OUTSIDE[0], "battery": 70}))

        assert status == 200
        assert body["status"] == "success"
        assert body["position_id"] is not None
        assert len(use_service.manager.active_alerts()) == 1

    def test_invalid_payload(self, use_service):
        body, status = main.device_data(make_request({"id": "collar-1", "x": "north"}))

        assert status == 400
        assert body == {"status": "error", "message": "Invalid data"}

    def test_non_json_body(self, use_service):
        _, status = main.device_data(make_request(None))

        assert status == 400

    def test_unexpected_error(self):
        service = Mock()
        service.ingestor.handle_device_payload.side_effect = RuntimeError("boom")

        with patch.object(main, "get_service", return_value=service):
            body, status = main.device_data(make_request({"id": "c", "x": 1, "y": 2, "battery": 3}))

        assert status == 500
        assert body["message"] == "boom"


class TestRunSweeps:
    """Tests for the sweep triggers."""

    def test_success(self, use_service, clock):
        use_service.ingestor.record("horse-1", *OUTSIDE)
        clock.advance(minutes=5)

        body, status = main.run_sweeps(Mock())

        assert status == 200
        assert len(body["escalated"]) == 1

    def test_partial_failure_is_multi_status(self, use_service, monkeypatch):
        use_service.ingestor.record("horse-1", *OUTSIDE)
        use_service.manager.clock.advance(minutes=5)
        monkeypatch.setattr(
            use_service.repository,
            "update_alert_if",
            Mock(side_effect=RuntimeError("write failed")),
        )

        body, status = main.run_sweeps(Mock())

        assert status == 207
        assert body["status"] == "partial_failure"
        assert body["errors"]

    def test_service_failure(self):
        with patch.object(main, "get_service", side_effect=RuntimeError("no config")):
            body, status = main.run_sweeps(Mock())

        assert status == 500

    def test_pubsub_reraises(self):
        with patch.object(main, "get_service", side_effect=RuntimeError("no config")):
            with pytest.raises(RuntimeError):
                main.run_sweeps_pubsub(Mock())
