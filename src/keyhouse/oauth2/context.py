# Per-request context passed explicitly through the core.
# Created: 2026-10-02

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from keyhouse.oauth2.models import User


@dataclass(frozen=True)
class RequestContext:
    """Everything a core operation may need to know about the current request.

    ``now`` is captured once so every expiry check in a request agrees.
    """

    now: datetime
    user: User | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def create(cls, user: User | None = None, now: datetime | None = None) -> RequestContext:
        return cls(now=now or datetime.now(UTC), user=user)
