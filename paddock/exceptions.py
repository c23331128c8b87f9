"""Exceptions raised by the monitoring engine."""


class PaddockError(Exception):
    """Base class for all engine errors."""


class RepositoryError(PaddockError):
    """A storage read or write failed. Nothing was partially applied."""


class UnknownEntityError(PaddockError, LookupError):
    """A position was reported for an entity the repository doesn't know."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Unknown entity: {entity_id}")
        self.entity_id = entity_id


class ConfigError(PaddockError, ValueError):
    """Configuration is invalid and the service cannot start."""
