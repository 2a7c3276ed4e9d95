from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


GRANTED_ACCESS = "grantedAccess"


@dataclass(frozen=True)
class NotificationEvent:
    # Emitted once per transition from "no access" to "some access".
    target_user_id: str
    document_id: str
    kind: str = GRANTED_ACCESS
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "targetUserId": self.target_user_id,
            "documentId": self.document_id,
            "createdAt": self.created_at.isoformat(),
        }


def granted_access_event(*, target_user_id: str, document_id: str) -> NotificationEvent:
    return NotificationEvent(target_user_id=target_user_id, document_id=document_id)
