"""
Audit Events

Immutable, timestamped records of what happened to a form instance.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from formsave.saving.ports import AuditEventType


@dataclass(frozen=True)
class AuditEvent:
    """An immutable audit event."""
    event_id: str
    event_type: AuditEventType
    timestamp: datetime
    instance_id: str
    exiting: bool = False
    reason: Optional[str] = None
    node: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    end_timestamp: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        """A view interval that has not been exited yet."""
        return self.event_type == AuditEventType.QUESTION and self.end_timestamp is None

    def closed_at(self, end: datetime) -> "AuditEvent":
        return replace(self, end_timestamp=end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "instance_id": self.instance_id,
            "exiting": self.exiting,
            "reason": self.reason,
            "node": self.node,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "end_timestamp": self.end_timestamp.isoformat() if self.end_timestamp else None,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        end = data.get("end_timestamp")
        return cls(
            event_id=data["event_id"],
            event_type=AuditEventType(data["event_type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            instance_id=data["instance_id"],
            exiting=data.get("exiting", False),
            reason=data.get("reason"),
            node=data.get("node"),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            end_timestamp=datetime.fromisoformat(end) if end else None,
            details=data.get("details") or {},
        )
