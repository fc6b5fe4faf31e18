"""
Envelope construction and parsing.
"""

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from chat_widget.errors import ProtocolError
from chat_widget.models.envelope import Envelope


def build_envelope(kind: str, session_id: Optional[str] = None, **fields: Any) -> Envelope:
    """Build an outbound envelope; ``fields`` become top-level wire keys."""
    return Envelope(kind=kind, session_id=session_id, payload=fields)


def encode_envelope(envelope: Envelope) -> str:
    return json.dumps(envelope.to_wire())


def decode_envelope(raw: Union[str, bytes]) -> Envelope:
    """Parse one inbound wire message. Raises ProtocolError if invalid."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Envelope is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ProtocolError(f"Envelope must be a JSON object, got {type(data).__name__}")
    try:
        return Envelope.from_wire(data)
    except ValidationError as e:
        raise ProtocolError(f"Envelope failed validation: {e.error_count()} error(s)", {"errors": e.errors()})
