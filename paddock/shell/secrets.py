"""Secret resolution - Imperative Shell.

Config values may carry placeholders:

    ${TELEGRAM_BOT_TOKEN}          environment variable
    ${secret:telegram-bot-token}   Google Secret Manager, latest version

Secret Manager is only consulted when a project ID is known; otherwise
secret placeholders are left unresolved (and flagged by config
validation).
"""

import logging
import os
from typing import Any

from google.cloud import secretmanager


logger = logging.getLogger(__name__)


SECRET_PREFIX = "secret:"


class SecretResolver:
    """Resolves ${...} placeholders from the environment and Secret Manager."""

    def __init__(self, project_id: str | None = None) -> None:
        self.project_id = project_id or os.environ.get("GCP_PROJECT")
        self._client: secretmanager.SecretManagerServiceClient | None = None
        self._cache: dict[str, str] = {}

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy initialization of Secret Manager client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_secret(self, secret_name: str, version: str = "latest") -> str | None:
        """Fetch a secret value, or None if unavailable.

        This method performs I/O. Values are cached for the resolver's
        lifetime.
        """
        if secret_name in self._cache:
            return self._cache[secret_name]

        if not self.project_id:
            logger.warning("No GCP project set, cannot fetch secret %s", secret_name)
            return None

        name = f"projects/{self.project_id}/secrets/{secret_name}/versions/{version}"
        try:
            response = self.client.access_secret_version(request={"name": name})
        except Exception as e:
            logger.error("Failed to fetch secret %s: %s", secret_name, e)
            return None

        value = response.payload.data.decode("UTF-8")
        self._cache[secret_name] = value
        logger.info("Fetched secret %s", secret_name)
        return value

    def resolve(self, value: Any) -> Any:
        """Resolve a value that may be a ${...} placeholder.

        Non-strings and plain strings are returned unchanged; placeholders
        that cannot be resolved are returned as-is.
        """
        if not isinstance(value, str):
            return value
        if not (value.startswith("${") and value.endswith("}")):
            return value

        reference = value[2:-1]
        if reference.startswith(SECRET_PREFIX):
            resolved = self.get_secret(reference[len(SECRET_PREFIX):])
        else:
            resolved = os.environ.get(reference)
            if resolved is None:
                logger.warning("Environment variable %s not set", reference)

        return resolved if resolved else value
