"""Open Service Broker HTTP surface."""

from .api import create_app
from .catalog import build_catalog

__all__ = ["build_catalog", "create_app"]
