from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from salescrm.identity.roles import Role


@dataclass(slots=True)
class AuthContext:
    """Caller identity every scope and policy decision is made against."""

    user_id: uuid.UUID
    role: Role
    correlation_id: str | None = None
    _cache: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def actor(self) -> str:
        return str(self.user_id)
