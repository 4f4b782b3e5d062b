"""Configuration module for RangeKV."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
