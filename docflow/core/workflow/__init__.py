"""Approval workflow module for DocFlow.

Implements the sequential Lecturer -> HOD -> Dean -> VC approval chain shared
by excuse requests, leave requests and letters.
"""

from .stages import Role, Decision, Stage, STAGES
from .document import DocumentKind, WorkflowDocument, ApprovalLogEntry
from .errors import (
    WorkflowError,
    InvalidRoleError,
    AlreadyFinalizedError,
    UnauthorizedStageError,
    MissingReasonError,
    ConcurrentModificationError,
    NotFoundError,
)
from .engine import ApprovalWorkflowEngine
from .service import WorkflowService

__all__ = [
    "Role",
    "Decision",
    "Stage",
    "STAGES",
    "DocumentKind",
    "WorkflowDocument",
    "ApprovalLogEntry",
    "WorkflowError",
    "InvalidRoleError",
    "AlreadyFinalizedError",
    "UnauthorizedStageError",
    "MissingReasonError",
    "ConcurrentModificationError",
    "NotFoundError",
    "ApprovalWorkflowEngine",
    "WorkflowService",
]
