"""Configuration — settings sources and logging setup."""

from servicelayer.config.logging import configure_logging
from servicelayer.config.settings import ServiceLayerSettings

__all__ = ["ServiceLayerSettings", "configure_logging"]
