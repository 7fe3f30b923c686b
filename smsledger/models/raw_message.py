import hashlib
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawMessage(BaseModel):
    source_address: str = ""
    body: str = ""
    received_at: datetime = Field(default_factory=_utcnow)

    def fingerprint(self) -> str:
        # sender + receipt time + head of body identifies one physical SMS
        return f"{self.source_address}_{int(self.received_at.timestamp() * 1000)}_{self.body[:40]}"

    def idempotency_key(self) -> str:
        """ASCII-safe form of the fingerprint, usable as an HTTP header value."""
        return hashlib.sha256(self.fingerprint().encode("utf-8")).hexdigest()
