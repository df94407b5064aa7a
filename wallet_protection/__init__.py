"""Wallet Protection Monitor - real-time wallet risk scoring and automated protection."""

__version__ = "0.1.0"

from .config import get_settings
from .api import app, create_app

__all__ = ["get_settings", "app", "create_app", "__version__"]
