"""
guide-common: Shared library for the backend stack guide.

Provides configuration, structured logging, shared data models, the
async Redis client, the Celery application and the documentation
checker used by every package in the guide.
"""

from guide_common.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
