"""Explicit application-state store shared by the collector and the viewer."""

import json
from typing import Any, Optional

import structlog

logger = structlog.get_logger()

SOP_RESULT_KEY = "sop_result_json"


class SessionState:
    """In-process key/value store holding serialized JSON values.

    Values live until ``clear()`` is called or the instance is discarded,
    which marks the end of the session.
    """

    def __init__(self):
        self._values: dict[str, str] = {}
        self.active = False

    def init(self) -> "SessionState":
        """Start a fresh session."""
        self._values.clear()
        self.active = True
        logger.debug("session_initialized")
        return self

    def clear(self) -> None:
        """End the session, discarding every stored value."""
        self._values.clear()
        self.active = False
        logger.debug("session_cleared")

    def set(self, key: str, value: Any) -> None:
        """Store a value serialized as JSON."""
        if not self.active:
            self.init()
        self._values[key] = json.dumps(value)

    def get(self, key: str) -> Optional[str]:
        """Return the raw serialized value, or None."""
        return self._values.get(key)

    def get_json(self, key: str) -> Any:
        """Return the decoded value, or None when absent or unparsable."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("session_value_unparsable", key=key)
            return None

    def __contains__(self, key: str) -> bool:
        return key in self._values
