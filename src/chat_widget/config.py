"""
Widget configuration.

Accepts the embedding host's camelCase keys (``serverUrl``,
``heartbeatIntervalMs``...) as well as the snake_case field names.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from chat_widget.errors import ConfigError
from chat_widget.models.reveal import RevealSpeed

DEFAULT_HEARTBEAT_INTERVAL_MS = 30_000
DEFAULT_RECONNECT_DELAY_MS = 3_000
DEFAULT_STREAMING_THRESHOLD = 15
DEFAULT_INITIAL_MESSAGE = "Welcome! How can I help you today?"


class WidgetConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    server_url: Optional[str] = None
    heartbeat_interval_ms: int = Field(default=DEFAULT_HEARTBEAT_INTERVAL_MS, gt=0)
    reconnect_delay_ms: int = Field(default=DEFAULT_RECONNECT_DELAY_MS, ge=0)
    streaming_threshold: int = Field(default=DEFAULT_STREAMING_THRESHOLD, ge=0)
    speed: str = RevealSpeed.NORMAL.value
    speed_multiplier: float = Field(default=1.0, gt=0)
    enable_markdown: bool = True
    enable_reveal: bool = True
    initial_message: Optional[str] = DEFAULT_INITIAL_MESSAGE
    widget_title: str = "AI Assistant"

    @field_validator("server_url")
    @classmethod
    def _check_scheme(cls, value: Optional[str]) -> Optional[str]:
        if value and not value.startswith(("ws://", "wss://")):
            raise ValueError("serverUrl must use ws:// or wss://")
        return value or None


def _alias(key: str) -> str:
    return to_camel(key) if "_" in key else key


def load_config(raw: Optional[dict[str, Any]] = None, **overrides: Any) -> WidgetConfig:
    """Validate a host-supplied mapping; ``overrides`` win over ``raw``."""
    data = {_alias(k): v for k, v in (raw or {}).items()}
    data.update({_alias(k): v for k, v in overrides.items() if v is not None})
    try:
        return WidgetConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid widget configuration: {e.error_count()} error(s)", {"errors": e.errors()})
