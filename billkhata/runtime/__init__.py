"""Runtime infrastructure for billkhata.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Settings resolution via get_settings(), Settings
- The REST client (KhataApiClient) and real-time event hub (EventHub)

Usage:
    from billkhata.runtime import get_logger, get_settings, KhataApiClient

    logger = get_logger(__name__)
    settings = get_settings()
    client = KhataApiClient.from_settings(settings)
"""

from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.events import EventHub, RealtimeEvent, parse_webhook, room_topic, user_topic
from billkhata.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    parse_log_level,
    set_log_level,
)
from billkhata.runtime.settings import Settings, SettingsError, get_settings, load_settings, reset_settings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "parse_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Settings
    "Settings",
    "SettingsError",
    "get_settings",
    "load_settings",
    "reset_settings",
    # API
    "ApiError",
    "KhataApiClient",
    # Events
    "EventHub",
    "RealtimeEvent",
    "parse_webhook",
    "room_topic",
    "user_topic",
]
