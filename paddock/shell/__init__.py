"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Repository implementations (in-memory, Firestore)
- Real-time subscriber hub
- Push channels (Telegram, Slack, WhatsApp)
- Configuration loading (YAML, environment, Secret Manager)

Keep this layer thin and simple. All business logic should be in core.
"""

from paddock.shell.repository import Repository, InMemoryRepository
from paddock.shell.realtime_hub import RealtimeHub
from paddock.shell.telegram_client import TelegramClient
from paddock.shell.slack_client import SlackClient
from paddock.shell.whatsapp_client import WhatsAppClient
from paddock.shell.config_loader import load_config, load_config_from_env

__all__ = [
    "Repository",
    "InMemoryRepository",
    "RealtimeHub",
    "TelegramClient",
    "SlackClient",
    "WhatsAppClient",
    "load_config",
    "load_config_from_env",
]
