"""Documents flowing through the approval workflow.

Medical excuse requests, leave requests and generic letters share one
representation. The kind only decides the shape of the payload, which the
workflow treats as opaque.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from uuid import UUID

from .stages import Decision, Role, Stage, get_stage


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DocumentKind(str, Enum):
    """Concrete document types."""

    MEDICAL_EXCUSE = "medical_excuse"
    LEAVE = "leave"
    LETTER = "letter"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    DocumentKind.MEDICAL_EXCUSE: "excuse request",
    DocumentKind.LEAVE: "leave request",
    DocumentKind.LETTER: "letter",
}


@dataclass(frozen=True)
class ApprovalLogEntry:
    """One decision recorded against a document."""

    actor_role: Role
    actor_id: UUID
    decision: Decision
    comment: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_role": self.actor_role.value,
            "actor_id": str(self.actor_id),
            "decision": self.decision.value,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class WorkflowDocument:
    """
    A submitted document and its position in the approval chain.

    Instances are immutable. Transitions produce a new value; the approval
    log only ever grows.
    """

    id: UUID
    kind: DocumentKind
    submitter_id: UUID
    submitter_name: str
    submitter_role: Role
    current_stage_ordinal: int
    submitted_at: datetime
    last_updated_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)
    attachment: Optional[str] = None
    approval_log: Tuple[ApprovalLogEntry, ...] = ()
    rejection_reason: Optional[str] = None

    @property
    def stage(self) -> Stage:
        return get_stage(self.current_stage_ordinal)

    @property
    def status(self) -> str:
        """Display name of the current stage."""
        return self.stage.name

    @property
    def is_finalized(self) -> bool:
        return self.stage.terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "submitter_id": str(self.submitter_id),
            "submitter_name": self.submitter_name,
            "submitter_role": self.submitter_role.value,
            "status": self.status,
            "current_stage_ordinal": self.current_stage_ordinal,
            "payload": dict(self.payload),
            "attachment": self.attachment,
            "approval_log": [entry.to_dict() for entry in self.approval_log],
            "rejection_reason": self.rejection_reason,
            "submitted_at": self.submitted_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
        }


@dataclass(frozen=True)
class DocumentPatch:
    """Changes a single decision applies to a stored document.

    The log entry is appended; nothing already in the log is touched.
    """

    current_stage_ordinal: int
    last_updated_at: datetime
    appended_entry: ApprovalLogEntry
    rejection_reason: Optional[str] = None


def coerce_kind(value: Union[DocumentKind, str]) -> DocumentKind:
    if isinstance(value, DocumentKind):
        return value
    return DocumentKind(value)
