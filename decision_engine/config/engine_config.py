"""Decision engine configuration.

Frozen dataclasses with environment variable overrides.

Environment Variables (engine):
- ENVIRONMENT: production | development | test (default: development)
- DECISION_TEMPLATE_DIR: Directory of template YAML files
  (default: the templates packaged with the engine)
- DECISION_TRANSITION_INTERVAL_SECONDS: Scheduler tick interval (default: 3600)
- DECISION_TRANSITION_CONCURRENCY: Instances advanced at once (default: 5)
- DECISION_DEFAULT_MAX_VOTES: Fallback maxVotesPerMember (default: 3)
- DECISION_DEDUP_CAPACITY: Mutation ids remembered per subscriber (default: 1000)
- DECISION_USE_POSTGRES: Use PostgreSQL repositories (default: false)
- DECISION_RUN_SCHEDULER: Run the transition worker inside the API (default: false)

Environment Variables (realtime):
- REALTIME_API_URL: Base URL of the realtime bus HTTP API (unset = in-memory)
- REALTIME_API_KEY: API key sent as `X-API-Key`
- REALTIME_TIMEOUT_SECONDS: Publish timeout (default: 5.0)

Environment Variables (notifications):
- NOTIFICATION_WEBHOOK_URL: Email dispatch webhook (unset = in-memory)
- NOTIFICATION_MAX_RETRIES: Delivery attempts per payload (default: 3)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PACKAGED_TEMPLATE_DIR = Path(__file__).parent / "templates"


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DecisionEngineConfig:
    """Engine-wide settings.

    Attributes:
        environment: Deployment environment; selects the log renderer.
        template_dir: Directory scanned for template YAML files.
        transition_interval_seconds: Seconds between scheduler ticks.
        transition_concurrency: Instances advanced concurrently per tick.
        default_max_votes_per_member: Fallback ballot size limit.
        dedup_capacity: Mutation ids remembered by an invalidation subscriber.
        use_postgres: Use PostgreSQL repositories instead of in-memory stubs.
        run_scheduler: Run the phase transition worker in the API process.
    """

    environment: str = "development"
    template_dir: Path = field(default=PACKAGED_TEMPLATE_DIR)
    transition_interval_seconds: int = 3600
    transition_concurrency: int = 5
    default_max_votes_per_member: int = 3
    dedup_capacity: int = 1000
    use_postgres: bool = False
    run_scheduler: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.transition_interval_seconds < 1:
            raise ValueError(
                "transition_interval_seconds must be positive, "
                f"got {self.transition_interval_seconds}"
            )
        if self.transition_concurrency < 1:
            raise ValueError(
                "transition_concurrency must be at least 1, "
                f"got {self.transition_concurrency}"
            )
        if self.default_max_votes_per_member < 1:
            raise ValueError(
                "default_max_votes_per_member must be at least 1, "
                f"got {self.default_max_votes_per_member}"
            )
        if self.dedup_capacity < 1:
            raise ValueError(
                f"dedup_capacity must be at least 1, got {self.dedup_capacity}"
            )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_environment(cls) -> DecisionEngineConfig:
        """Create config from environment variables with defaults."""
        template_dir = os.environ.get("DECISION_TEMPLATE_DIR")
        return cls(
            environment=os.environ.get("ENVIRONMENT", "development"),
            template_dir=Path(template_dir) if template_dir else PACKAGED_TEMPLATE_DIR,
            transition_interval_seconds=_get_int_env(
                "DECISION_TRANSITION_INTERVAL_SECONDS", 3600
            ),
            transition_concurrency=_get_int_env("DECISION_TRANSITION_CONCURRENCY", 5),
            default_max_votes_per_member=_get_int_env("DECISION_DEFAULT_MAX_VOTES", 3),
            dedup_capacity=_get_int_env("DECISION_DEDUP_CAPACITY", 1000),
            use_postgres=_get_bool_env("DECISION_USE_POSTGRES", False),
            run_scheduler=_get_bool_env("DECISION_RUN_SCHEDULER", False),
        )


@dataclass(frozen=True)
class RealtimeConfig:
    """Realtime bus connection settings.

    Attributes:
        api_url: Base URL of the bus HTTP API; None selects the in-memory stub.
        api_key: Key sent in the `X-API-Key` header.
        timeout_seconds: Per-publish timeout.
    """

    api_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    @property
    def enabled(self) -> bool:
        return bool(self.api_url)

    @classmethod
    def from_environment(cls) -> RealtimeConfig:
        return cls(
            api_url=os.environ.get("REALTIME_API_URL") or None,
            api_key=os.environ.get("REALTIME_API_KEY") or None,
            timeout_seconds=_get_float_env("REALTIME_TIMEOUT_SECONDS", 5.0),
        )


@dataclass(frozen=True)
class NotificationConfig:
    """Notification dispatch settings."""

    webhook_url: str | None = None
    max_retries: int = 3
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    @classmethod
    def from_environment(cls) -> NotificationConfig:
        return cls(
            webhook_url=os.environ.get("NOTIFICATION_WEBHOOK_URL") or None,
            max_retries=_get_int_env("NOTIFICATION_MAX_RETRIES", 3),
        )
