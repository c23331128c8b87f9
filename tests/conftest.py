"""Shared fixtures for coordinator tests.

Time is driven by a FakeClock so nothing depends on wall-clock timers.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from paddock.core.config import CHANNEL_TELEGRAM, Config, PushRecipient
from paddock.core.models import Device, Geofence, TrackedEntity
from paddock.service import build_service
from paddock.shell.repository import InMemoryRepository


START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# Paddock square: lat 55.750..55.756, lng 37.610..37.620
PADDOCK_VERTICES = [
    [55.750, 37.610],
    [55.750, 37.620],
    [55.756, 37.620],
    [55.756, 37.610],
]
INSIDE = (55.753, 37.615)
OUTSIDE = (55.760, 37.615)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    repo = InMemoryRepository()
    repo.save_entity(TrackedEntity(id="horse-1", name="Thunder", device_id="collar-1"))
    repo.save_geofence(Geofence(id="gf-1", name="North paddock", vertices=PADDOCK_VERTICES))
    return repo


@pytest.fixture
def recipient():
    return PushRecipient(
        id="manager",
        name="Stable manager",
        channel_type=CHANNEL_TELEGRAM,
        address="4242",
        credentials=(("bot_token", "123:abc"),),
    )


@pytest.fixture
def push_sink():
    sink = Mock()
    sink.send.return_value = True
    return sink


@pytest.fixture
def config(recipient):
    return Config(push_recipients=[recipient])


@pytest.fixture
def service(config, repository, push_sink, clock):
    return build_service(
        config,
        repository=repository,
        sinks={CHANNEL_TELEGRAM: push_sink},
        clock=clock,
    )


@pytest.fixture
def events(service):
    """Lifecycle events seen by observers, in order."""
    seen = []
    service.manager.subscribe(seen.append)
    return seen


def add_device(repository, last_signal, battery=80.0, entity_id="horse-1", device_id="collar-1", is_online=True):
    return repository.save_device(Device(
        id=f"dev-{device_id}",
        device_id=device_id,
        entity_id=entity_id,
        battery_level=battery,
        is_online=is_online,
        last_signal=last_signal,
    ))
