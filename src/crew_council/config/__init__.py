"""Configuration: schema, loading from env/file, and shared constants."""

from .schema import DEFAULT_CONFIG, CrewConfig, EngineConfig, TelemetryConfig
from .loader import load_config
from .constants import (
    COMPLETION_HTTP_TIMEOUT_S,
    COMPLETION_WAIT_TIMEOUT_S,
    KNOWLEDGE_MAX_CHARS,
    LOG_EXCERPT_CHARS,
    SSE_KEEPALIVE_S,
    SUBSCRIBER_QUEUE_SIZE,
)

get_config = load_config  # alias

__all__ = [
    "DEFAULT_CONFIG", "CrewConfig", "EngineConfig", "TelemetryConfig",
    "load_config", "get_config",
    "COMPLETION_HTTP_TIMEOUT_S", "COMPLETION_WAIT_TIMEOUT_S",
    "KNOWLEDGE_MAX_CHARS", "LOG_EXCERPT_CHARS",
    "SSE_KEEPALIVE_S", "SUBSCRIBER_QUEUE_SIZE",
]
