"""
Configuration defaults for healthz.

Provides typed defaults with environment variable overrides and validation.
Command-line options always win over values loaded here.
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

from .durations import parse_duration
from .errors import ConfigurationError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

_DURATION_FIELDS = {"timeout", "min_delay", "max_delay"}

# Environment suffix -> field name
_ENV_FIELDS = {
    "TIMEOUT": "timeout",
    "MIN": "min_delay",
    "MAX": "max_delay",
    "BACKOFF": "backoff",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
}


@dataclass
class HealthzConfig:
    """Probe and loop defaults."""

    # Probe
    timeout: float = 5.0

    # Loop backoff
    min_delay: float = 1.0
    max_delay: float = 120.0
    backoff: float = 1.0

    # Logging
    log_level: str = "WARNING"
    log_format: str = "text"

    @classmethod
    def from_env(
        cls, prefix: str = "HEALTHZ_", environ: Optional[Mapping[str, str]] = None
    ) -> "HealthzConfig":
        """Create config from environment variables.

        Raises:
            ConfigurationError: if a variable cannot be converted.
        """
        environ = os.environ if environ is None else environ
        config_data: dict[str, Any] = {}

        for suffix, field_name in _ENV_FIELDS.items():
            raw = environ.get(prefix + suffix)
            if raw is None or raw.strip() == "":
                continue
            try:
                if field_name in _DURATION_FIELDS:
                    config_data[field_name] = parse_duration(raw)
                elif field_name == "backoff":
                    config_data[field_name] = float(raw)
                elif field_name == "log_level":
                    config_data[field_name] = raw.strip().upper()
                else:
                    config_data[field_name] = raw.strip().lower()
            except ValueError as e:
                raise ConfigurationError(f"{prefix}{suffix}: {e}") from e

        return cls(**config_data)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.timeout <= 0:
            errors.append(f"Timeout must be positive, got {self.timeout}")

        if self.min_delay < 0:
            errors.append(f"Minimum delay must not be negative, got {self.min_delay}")

        if self.max_delay < 0:
            errors.append(f"Maximum delay must not be negative, got {self.max_delay}")

        if self.backoff < 1.0:
            errors.append(f"Backoff must be >= 1.0, got {self.backoff}")

        if self.log_level not in LOG_LEVELS:
            errors.append(
                f"Log level {self.log_level!r} must be one of {', '.join(LOG_LEVELS)}"
            )

        if self.log_format not in LOG_FORMATS:
            errors.append(
                f"Log format {self.log_format!r} must be one of {', '.join(LOG_FORMATS)}"
            )

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)


def load_config(environ: Optional[Mapping[str, str]] = None) -> HealthzConfig:
    """Load and validate configuration from the environment."""
    config = HealthzConfig.from_env(environ=environ)
    errors = config.validate()
    if errors:
        raise ConfigurationError("; ".join(errors))
    return config
