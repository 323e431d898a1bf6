"""Data models for user memory facts."""

import json
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, JsonValue

MemoryType = Literal["preference", "fact", "context"]


class MemoryFact(BaseModel):
    """A small persisted key/value hint about a user.

    ``value`` is any JSON value; it is validated on the way out of the
    database so callers never handle raw column text.
    """

    id: str
    user_id: str
    key: str
    value: JsonValue = None
    memory_type: MemoryType = "fact"
    expires_at: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def is_expired(self, now: datetime | None = None) -> bool:
        """True when an expiry is set and has passed."""
        if not self.expires_at:
            return False
        expiry = datetime.fromisoformat(self.expires_at)
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return expiry <= (now or datetime.now(UTC))

    def value_text(self) -> str:
        """Render the value for prompt text: strings verbatim, everything else as JSON."""
        if isinstance(self.value, str):
            return self.value
        return json.dumps(self.value)
