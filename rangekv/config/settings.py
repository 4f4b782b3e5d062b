"""
RangeKV Configuration Settings

Defaults for cluster bootstrap and the inter-node channel. Every value
can be overridden through the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _optional_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "")
    return int(raw) if raw else None


@dataclass
class Settings:
    """Simulation configuration settings."""

    # Bootstrap settings
    NODE_COUNT: int = int(os.environ.get("RANGEKV_NODE_COUNT", "5"))
    REPLICATION_FACTOR: int = int(os.environ.get("RANGEKV_REPLICATION_FACTOR", "3"))
    MAX_KEY: int = int(os.environ.get("RANGEKV_MAX_KEY", "100"))
    SEED: Optional[int] = _optional_int("RANGEKV_SEED")  # None means nondeterministic

    # Placement policy
    COLOCATE_LEASEHOLDER: bool = os.environ.get("RANGEKV_COLOCATE_LEASEHOLDER", "false").lower() == "true"

    # Channel settings
    REQUEST_TIMEOUT: float = float(os.environ.get("RANGEKV_REQUEST_TIMEOUT", "1.0"))  # Seconds
    MAX_HOPS: int = int(os.environ.get("RANGEKV_MAX_HOPS", "3"))

    # Logging settings
    DEBUG: bool = os.environ.get("RANGEKV_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("RANGEKV_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
