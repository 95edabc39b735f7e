"""Configuration constants and settings for the DR analyzer."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .exceptions import ConfigurationError


class FileConfig:
    """Candidate file handling configuration."""

    SUPPORTED_EXTENSIONS = (".txt", ".log")
    MAX_LOG_BYTES = 4 * 1024 * 1024  # DR logs are a few KB; anything near this is not a log
    EXCERPT_LENGTH = 400


class EncodingConfig:
    """Text decoding configuration."""

    PRIMARY_ENCODING = "utf-8"
    FALLBACK_ENCODING = "cp1251"  # Russian foobar2000 builds write ANSI logs


class ConcurrencyConfig:
    """Worker pool configuration."""

    MIN_WORKERS = 1
    MAX_WORKERS = 64
    CANCEL_POLL_SECONDS = 0.1

    @staticmethod
    def default_workers() -> int:
        """Worker count matching available hardware parallelism."""
        return min(os.cpu_count() or 1, ConcurrencyConfig.MAX_WORKERS)


class DRScale:
    """Dynamic range scale boundaries."""

    MAX_DR = 14
    RED_CEILING = 7


class EnvVars:
    """Environment variables recognised as setting overrides."""

    WORKERS = "DR_ANALYZER_WORKERS"
    MAX_BYTES = "DR_ANALYZER_MAX_BYTES"
    FALLBACK_ENCODING = "DR_ANALYZER_FALLBACK_ENCODING"


class DecimalPolicy(Enum):
    """How fractional DR values such as ``DR8.8`` become integers."""

    TRUNCATE = "truncate"
    ROUND_HALF_UP = "round-half-up"


class AppInfo:
    """Application metadata."""

    NAME = "dr-analyzer"
    VERSION = "1.0.0"
    DESCRIPTION = "Dynamic Range log analyzer and library cleanup tool"


@dataclass
class ScanSettings:
    """Configuration for a scan invocation."""

    extensions: Tuple[str, ...] = FileConfig.SUPPORTED_EXTENSIONS
    max_workers: int = field(default_factory=ConcurrencyConfig.default_workers)
    max_file_bytes: int = FileConfig.MAX_LOG_BYTES
    fallback_encoding: str = EncodingConfig.FALLBACK_ENCODING
    decimal_policy: DecimalPolicy = DecimalPolicy.TRUNCATE
    follow_symlinks: bool = True

    def __post_init__(self):
        """Validate configuration values."""
        if not self.extensions:
            raise ConfigurationError(
                "At least one file extension is required", parameter="extensions"
            )
        self.extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.extensions
        )
        if not (
            ConcurrencyConfig.MIN_WORKERS
            <= self.max_workers
            <= ConcurrencyConfig.MAX_WORKERS
        ):
            raise ConfigurationError(
                f"Worker count must be between {ConcurrencyConfig.MIN_WORKERS} "
                f"and {ConcurrencyConfig.MAX_WORKERS}",
                parameter="max_workers",
                details=str(self.max_workers),
            )
        if self.max_file_bytes <= 0:
            raise ConfigurationError(
                "Maximum file size must be positive",
                parameter="max_file_bytes",
                details=str(self.max_file_bytes),
            )
        try:
            "".encode(self.fallback_encoding)
        except LookupError:
            raise ConfigurationError(
                "Unknown fallback encoding",
                parameter="fallback_encoding",
                details=self.fallback_encoding,
            )

    @classmethod
    def from_env(cls, **overrides) -> "ScanSettings":
        """Build settings from environment variables, then explicit overrides.

        Overrides whose value is ``None`` are ignored so CLI options that were
        not given fall through to the environment or the defaults.
        """
        values = {}

        workers = os.getenv(EnvVars.WORKERS)
        if workers:
            values["max_workers"] = _parse_int_env(EnvVars.WORKERS, workers)

        max_bytes = os.getenv(EnvVars.MAX_BYTES)
        if max_bytes:
            values["max_file_bytes"] = _parse_int_env(EnvVars.MAX_BYTES, max_bytes)

        fallback = os.getenv(EnvVars.FALLBACK_ENCODING)
        if fallback:
            values["fallback_encoding"] = fallback

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse_int_env(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            "Environment variable must be an integer", parameter=name, details=raw
        )


def describe_settings(settings: ScanSettings) -> Optional[str]:
    """One-line summary of non-default settings, or None when all are default."""
    defaults = ScanSettings()
    parts = []
    if settings.extensions != defaults.extensions:
        parts.append(f"Extensions: {', '.join(settings.extensions)}")
    if settings.max_workers != defaults.max_workers:
        parts.append(f"Workers: {settings.max_workers}")
    if settings.max_file_bytes != defaults.max_file_bytes:
        parts.append(f"Max size: {settings.max_file_bytes} bytes")
    if settings.fallback_encoding != defaults.fallback_encoding:
        parts.append(f"Fallback encoding: {settings.fallback_encoding}")
    if settings.decimal_policy != defaults.decimal_policy:
        parts.append(f"Decimals: {settings.decimal_policy.value}")
    return " | ".join(parts) if parts else None
