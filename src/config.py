"""
Configuration module for the service reconciler.

Loads provider configuration from environment variables, with explicitly
supplied values taking precedence.
"""

import os
import re
from dataclasses import dataclass, field, replace
from typing import Optional

from errors import ConfigError

DEFAULT_POLLING_INTERVAL = "20s"
DEFAULT_POLLING_TIMEOUT = "30m"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """
    Parse a duration string such as "20s", "30m" or "1h30m" into seconds.

    Follows Go's time.ParseDuration syntax: a sequence of decimal numbers,
    each with a unit suffix. A bare "0" is accepted.

    Raises:
        ConfigError: If the string is not a valid duration.
    """
    text = value.strip() if value else ""
    if not text:
        raise ConfigError("Duration cannot be empty")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ConfigError(f"Invalid duration: {value!r}")
    return sign * total


@dataclass
class ProviderConfig:
    """Mission Control API and polling configuration."""

    host: str = ""
    bearer_token: str = field(default="", repr=False)  # Never log the token
    polling_interval: str = DEFAULT_POLLING_INTERVAL
    polling_timeout: str = DEFAULT_POLLING_TIMEOUT

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            host=os.getenv("MISSIONCONTROL_HOST", ""),
            bearer_token=os.getenv("MISSIONCONTROL_TOKEN", ""),
            polling_interval=os.getenv("POLLING_INTERVAL_DURATION")
            or DEFAULT_POLLING_INTERVAL,
            polling_timeout=os.getenv("POLLING_TIMEOUT_DURATION")
            or DEFAULT_POLLING_TIMEOUT,
        )

    def with_overrides(
        self,
        host: Optional[str] = None,
        bearer_token: Optional[str] = None,
        polling_interval: Optional[str] = None,
        polling_timeout: Optional[str] = None,
    ) -> "ProviderConfig":
        """
        Return a copy with every non-empty explicit value applied.

        Explicit values take precedence over the environment; empty values
        keep what was loaded.
        """
        overrides = {
            "host": host,
            "bearer_token": bearer_token,
            "polling_interval": polling_interval,
            "polling_timeout": polling_timeout,
        }
        return replace(self, **{k: v for k, v in overrides.items() if v})

    @property
    def polling_interval_seconds(self) -> float:
        return parse_duration(self.polling_interval)

    @property
    def polling_timeout_seconds(self) -> float:
        return parse_duration(self.polling_timeout)

    def validate(self) -> None:
        """
        Check that the configuration is usable.

        Raises:
            ConfigError: Describing every problem found.
        """
        problems = []
        if not self.host:
            problems.append(
                "Missing Mission Control API host. Set the host value or use "
                "the MISSIONCONTROL_HOST environment variable."
            )
        if not self.bearer_token:
            problems.append(
                "Missing Mission Control API token. Set the token value or use "
                "the MISSIONCONTROL_TOKEN environment variable."
            )
        for name, value in (
            ("polling interval", self.polling_interval),
            ("polling timeout", self.polling_timeout),
        ):
            try:
                seconds = parse_duration(value)
            except ConfigError:
                problems.append(f"Invalid {name} duration: {value!r}")
                continue
            if seconds < 0 or (name == "polling interval" and seconds == 0):
                problems.append(f"Invalid {name} duration: {value!r}")

        if problems:
            raise ConfigError(" ".join(problems))


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    provider: ProviderConfig
    logging: LogConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(provider=ProviderConfig.from_env(), logging=LogConfig.from_env())


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
