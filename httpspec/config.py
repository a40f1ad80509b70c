"""Spec defaults loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# Request timeout used when neither setup defaults nor the spec override it
DEFAULT_TIMEOUT_MS = 5000


def _int_env(key: str, default: str) -> int:
    val = os.getenv(key, default)
    try:
        return int(val)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {key}: {val!r}")


@dataclass(frozen=True)
class Config:
    # Milliseconds, like every timeout a spec exposes
    request_timeout_ms: int = _int_env("HTTPSPEC_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS))

    # Prefix for relative request URLs
    base_url: str = os.getenv("HTTPSPEC_BASE_URL", "")

    def validate(self) -> list[str]:
        """Validate config. Raises ValueError on hard errors, returns warnings."""
        warnings: list[str] = []
        if self.request_timeout_ms < 1:
            raise ValueError(f"HTTPSPEC_TIMEOUT_MS must be >= 1, got {self.request_timeout_ms}")
        if self.base_url and not self.base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"HTTPSPEC_BASE_URL must start with http:// or https://, got {self.base_url!r}"
            )
        if self.request_timeout_ms > 60_000:
            warnings.append(
                f"HTTPSPEC_TIMEOUT_MS={self.request_timeout_ms} is above one minute; "
                "slow endpoints will stall the test run"
            )
        return warnings
