"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field


CHANNEL_TELEGRAM = "telegram"
CHANNEL_SLACK = "slack"
CHANNEL_WHATSAPP = "whatsapp"

CHANNEL_TYPES = (CHANNEL_TELEGRAM, CHANNEL_SLACK, CHANNEL_WHATSAPP)

STORAGE_MEMORY = "memory"
STORAGE_FIRESTORE = "firestore"


@dataclass(frozen=True)
class PushRecipient:
    """Someone who receives push notifications.

    Attributes:
        id: Opaque recipient identifier
        name: Human-readable name for logs
        channel_type: One of CHANNEL_TYPES
        address: Telegram chat ID, Slack webhook URL, or WhatsApp number
        credentials: Channel credentials as sorted (key, value) pairs
            (Telegram bot_token; Twilio account_sid/auth_token/from_number)
    """
    id: str
    name: str
    channel_type: str
    address: str
    credentials: tuple[tuple[str, str], ...] = ()

    def credential(self, key: str) -> str | None:
        """Look up a single credential value."""
        return dict(self.credentials).get(key)


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        escalation_threshold_seconds: Age after which a geofence alert
            becomes urgent
        offline_threshold_minutes: Silence after which a device is offline
        recovery_threshold_minutes: Silence under which a device is back
        low_battery_floor_percent: Devices at or below this battery level
            are not reported offline
        escalation_sweep_interval_seconds: How often escalation runs
        connectivity_sweep_interval_seconds: How often the watchdog runs
        push_timeout_seconds: Timeout for each push channel request
        push_recipients: Who gets push notifications
        storage_backend: STORAGE_MEMORY or STORAGE_FIRESTORE
        firestore_database: Firestore database name (None for default)
        firestore_collection_prefix: Prefix for Firestore collection names
    """
    escalation_threshold_seconds: int = 120
    offline_threshold_minutes: float = 10
    recovery_threshold_minutes: float = 5
    low_battery_floor_percent: float = 20
    escalation_sweep_interval_seconds: int = 15
    connectivity_sweep_interval_seconds: int = 30
    push_timeout_seconds: float = 10
    push_recipients: list[PushRecipient] = field(default_factory=list)
    storage_backend: str = STORAGE_MEMORY
    firestore_database: str | None = None
    firestore_collection_prefix: str = "paddock"


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


# Required credential keys per channel type
REQUIRED_CREDENTIALS: dict[str, tuple[str, ...]] = {
    CHANNEL_TELEGRAM: ("bot_token",),
    CHANNEL_SLACK: (),
    CHANNEL_WHATSAPP: ("account_sid", "auth_token", "from_number"),
}


def validate_thresholds(config: Config) -> list[ValidationError]:
    """Validate timing thresholds and their relationships.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    positive_fields = (
        "escalation_threshold_seconds",
        "offline_threshold_minutes",
        "recovery_threshold_minutes",
        "escalation_sweep_interval_seconds",
        "connectivity_sweep_interval_seconds",
        "push_timeout_seconds",
    )
    for name in positive_fields:
        value = getattr(config, name)
        if value <= 0:
            errors.append(ValidationError(
                field=name,
                message=f"Must be positive, got {value}",
            ))

    if config.recovery_threshold_minutes >= config.offline_threshold_minutes:
        errors.append(ValidationError(
            field="recovery_threshold_minutes",
            message=(
                f"recovery_threshold_minutes ({config.recovery_threshold_minutes}) "
                f"must be below offline_threshold_minutes "
                f"({config.offline_threshold_minutes})"
            ),
        ))

    if not 0 <= config.low_battery_floor_percent <= 100:
        errors.append(ValidationError(
            field="low_battery_floor_percent",
            message=f"Battery floor {config.low_battery_floor_percent} out of range [0, 100]",
        ))

    # Sweeps should run several times per threshold window
    if config.escalation_sweep_interval_seconds * 2 > config.escalation_threshold_seconds:
        errors.append(ValidationError(
            field="escalation_sweep_interval_seconds",
            message=(
                f"Sweep interval {config.escalation_sweep_interval_seconds}s is not "
                f"well below escalation threshold {config.escalation_threshold_seconds}s"
            ),
            severity="warning",
        ))

    recovery_seconds = config.recovery_threshold_minutes * 60
    if config.connectivity_sweep_interval_seconds * 2 > recovery_seconds:
        errors.append(ValidationError(
            field="connectivity_sweep_interval_seconds",
            message=(
                f"Sweep interval {config.connectivity_sweep_interval_seconds}s is not "
                f"well below recovery threshold {recovery_seconds:g}s"
            ),
            severity="warning",
        ))

    return errors


def validate_recipient(recipient: PushRecipient, field_name: str) -> list[ValidationError]:
    """Validate a single push recipient.

    Pure function. Problems are warnings: a broken recipient only affects
    its own deliveries.

    Args:
        recipient: Recipient to validate
        field_name: Name of the field for error messages

    Returns:
        List of validation warnings (empty if valid)
    """
    errors = []

    if recipient.channel_type not in CHANNEL_TYPES:
        errors.append(ValidationError(
            field=f"{field_name}.type",
            message=f"Unknown channel type '{recipient.channel_type}'",
            severity="warning",
        ))
        return errors

    if not recipient.address or recipient.address.startswith("${"):
        errors.append(ValidationError(
            field=f"{field_name}.address",
            message="Address not resolved (missing or still a placeholder)",
            severity="warning",
        ))

    for key in REQUIRED_CREDENTIALS[recipient.channel_type]:
        value = recipient.credential(key)
        if not value or value.startswith("${"):
            errors.append(ValidationError(
                field=f"{field_name}.credentials.{key}",
                message=f"Credential '{key}' missing or unresolved",
                severity="warning",
            ))

    return errors


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(validate_thresholds(config))

    if config.storage_backend not in (STORAGE_MEMORY, STORAGE_FIRESTORE):
        errors.append(ValidationError(
            field="storage_backend",
            message=f"Unknown storage backend '{config.storage_backend}'",
        ))

    seen_ids: set[str] = set()
    for i, recipient in enumerate(config.push_recipients):
        errors.extend(validate_recipient(recipient, f"push_recipients[{i}]"))
        if recipient.id in seen_ids:
            errors.append(ValidationError(
                field=f"push_recipients[{i}].id",
                message=f"Duplicate recipient id '{recipient.id}'",
            ))
        seen_ids.add(recipient.id)

    if not config.push_recipients:
        errors.append(ValidationError(
            field="push_recipients",
            message="No push recipients configured",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
