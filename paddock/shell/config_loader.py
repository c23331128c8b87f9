"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, PushRecipient) are defined in paddock/core/config.py
to avoid information leakage between layers.

Example config/config.yaml:

    escalation_threshold_seconds: 120
    offline_threshold_minutes: 10
    recovery_threshold_minutes: 5
    low_battery_floor_percent: 20
    escalation_sweep_interval_seconds: 15
    connectivity_sweep_interval_seconds: 30
    storage_backend: memory
    push_recipients:
      - id: stable-manager
        name: Stable manager
        type: telegram
        address: "123456789"
        credentials:
          bot_token: ${secret:telegram-bot-token}
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from paddock.core.config import (
    CHANNEL_TELEGRAM,
    STORAGE_MEMORY,
    Config,
    PushRecipient,
)
from paddock.shell.secrets import SecretResolver


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"


def _parse_recipient(
    data: dict[str, Any],
    index: int,
    resolver: SecretResolver,
) -> PushRecipient:
    """Parse a push recipient from config data."""
    credentials = {
        key: str(resolver.resolve(value))
        for key, value in (data.get("credentials") or {}).items()
    }

    return PushRecipient(
        id=str(data.get("id", f"recipient-{index}")),
        name=str(data.get("name", data.get("id", f"recipient-{index}"))),
        channel_type=data.get("type", CHANNEL_TELEGRAM),
        address=str(resolver.resolve(data.get("address", ""))),
        # Tuple of pairs keeps the frozen dataclass hashable
        credentials=tuple(sorted(credentials.items())),
    )


def load_config_from_dict(
    data: dict[str, Any],
    resolver: SecretResolver | None = None,
) -> Config:
    """Load configuration from a dictionary.

    Only placeholder expansion has side effects.

    Args:
        data: Configuration dictionary
        resolver: Placeholder resolver (created if not provided)

    Returns:
        Parsed Config object
    """
    resolver = resolver or SecretResolver()
    defaults = Config()

    recipients = [
        _parse_recipient(r, i, resolver)
        for i, r in enumerate(data.get("push_recipients", []) or [])
    ]

    return Config(
        escalation_threshold_seconds=int(
            data.get("escalation_threshold_seconds", defaults.escalation_threshold_seconds)
        ),
        offline_threshold_minutes=float(
            data.get("offline_threshold_minutes", defaults.offline_threshold_minutes)
        ),
        recovery_threshold_minutes=float(
            data.get("recovery_threshold_minutes", defaults.recovery_threshold_minutes)
        ),
        low_battery_floor_percent=float(
            data.get("low_battery_floor_percent", defaults.low_battery_floor_percent)
        ),
        escalation_sweep_interval_seconds=int(
            data.get("escalation_sweep_interval_seconds", defaults.escalation_sweep_interval_seconds)
        ),
        connectivity_sweep_interval_seconds=int(
            data.get("connectivity_sweep_interval_seconds", defaults.connectivity_sweep_interval_seconds)
        ),
        push_timeout_seconds=float(
            data.get("push_timeout_seconds", defaults.push_timeout_seconds)
        ),
        push_recipients=recipients,
        storage_backend=data.get("storage_backend", STORAGE_MEMORY),
        firestore_database=data.get("firestore_database"),
        firestore_collection_prefix=data.get(
            "firestore_collection_prefix", defaults.firestore_collection_prefix
        ),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: %d push recipients, escalation after %ds, offline after %gmin",
        len(config.push_recipients),
        config.escalation_threshold_seconds,
        config.offline_threshold_minutes,
    )

    return config


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Useful for simple deployments without a YAML file.

    Environment variables:
        TELEGRAM_BOT_TOKEN: Bot token for Telegram recipients
        TELEGRAM_CHAT_IDS: Comma-separated chat IDs to notify
        ESCALATION_THRESHOLD_SECONDS: Geofence escalation age
        OFFLINE_THRESHOLD_MINUTES: Silence before a device is offline
        RECOVERY_THRESHOLD_MINUTES: Silence under which a device is back
        LOW_BATTERY_FLOOR_PERCENT: Battery gate for offline alerts
        STORAGE_BACKEND: memory or firestore
        FIRESTORE_DATABASE: Firestore database name

    Returns:
        Config object from environment
    """
    defaults = Config()
    recipients = []

    bot_token = os.environ.get("TELEGRAM_BOT_TOKEN")
    chat_ids = [c.strip() for c in os.environ.get("TELEGRAM_CHAT_IDS", "").split(",") if c.strip()]
    if chat_ids and not bot_token:
        logger.warning("TELEGRAM_CHAT_IDS set but TELEGRAM_BOT_TOKEN is missing")
    elif bot_token:
        recipients = [
            PushRecipient(
                id=f"telegram-{chat_id}",
                name=f"Telegram {chat_id}",
                channel_type=CHANNEL_TELEGRAM,
                address=chat_id,
                credentials=(("bot_token", bot_token),),
            )
            for chat_id in chat_ids
        ]

    return Config(
        escalation_threshold_seconds=int(os.environ.get(
            "ESCALATION_THRESHOLD_SECONDS", defaults.escalation_threshold_seconds
        )),
        offline_threshold_minutes=float(os.environ.get(
            "OFFLINE_THRESHOLD_MINUTES", defaults.offline_threshold_minutes
        )),
        recovery_threshold_minutes=float(os.environ.get(
            "RECOVERY_THRESHOLD_MINUTES", defaults.recovery_threshold_minutes
        )),
        low_battery_floor_percent=float(os.environ.get(
            "LOW_BATTERY_FLOOR_PERCENT", defaults.low_battery_floor_percent
        )),
        push_recipients=recipients,
        storage_backend=os.environ.get("STORAGE_BACKEND", STORAGE_MEMORY),
        firestore_database=os.environ.get("FIRESTORE_DATABASE"),
    )
