"""
Chat widget error types.
"""

from typing import Any, Optional


class WidgetError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ProtocolError(WidgetError):
    """Raised for envelopes that cannot be decoded."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("protocol_error", message, details)


class ConfigError(WidgetError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("config_error", message, details)


class ConnectionError(WidgetError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)
