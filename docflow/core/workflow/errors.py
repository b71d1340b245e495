"""Errors raised by the approval workflow.

All of them are local validation or state errors and are surfaced directly to
the caller. Only ConcurrentModificationError is worth retrying, after the
document has been re-read.
"""

from typing import Any, Optional


class WorkflowError(Exception):
    """Base class for approval workflow errors."""


class InvalidRoleError(WorkflowError):
    """Raised when a role is not part of the role enumeration."""

    def __init__(self, role: Any):
        super().__init__(f"Invalid role: {role!r}")
        self.role = role


class AlreadyFinalizedError(WorkflowError):
    """Raised when acting on a document that is already Approved or Rejected."""

    def __init__(self, document_id: Any, status: str):
        super().__init__(f"Document {document_id} is already finalized ({status})")
        self.document_id = document_id
        self.status = status


class UnauthorizedStageError(WorkflowError):
    """Raised when the acting role is not the expected approver for the stage."""

    def __init__(self, acting_role: Any, stage_name: str, expected_role: Optional[str]):
        super().__init__(
            f"Role {acting_role} is not the expected approver for stage "
            f"'{stage_name}' (expected {expected_role})"
        )
        self.acting_role = acting_role
        self.stage_name = stage_name
        self.expected_role = expected_role


class MissingReasonError(WorkflowError):
    """Raised when a rejection is submitted without a reason."""

    def __init__(self):
        super().__init__("A non-empty comment is required to reject a document")


class ConcurrentModificationError(WorkflowError):
    """Raised when a conditional update finds a different stage than expected."""

    def __init__(self, document_id: Any, expected_ordinal: int):
        super().__init__(
            f"Document {document_id} was modified concurrently "
            f"(expected stage ordinal {expected_ordinal})"
        )
        self.document_id = document_id
        self.expected_ordinal = expected_ordinal


class NotFoundError(WorkflowError):
    """Raised when a document or account lookup misses."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
