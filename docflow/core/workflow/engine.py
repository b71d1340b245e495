"""Approval workflow engine.

Computes where a submission starts, validates and applies approver decisions,
and turns the outcome into notifications. The engine holds no document state:
every call takes a document value and returns a new one, so a single instance
can be shared freely.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from .document import (
    ApprovalLogEntry,
    DocumentKind,
    DocumentPatch,
    WorkflowDocument,
    coerce_kind,
    utcnow,
)
from .errors import (
    AlreadyFinalizedError,
    InvalidRoleError,
    MissingReasonError,
    UnauthorizedStageError,
)
from .ports import AccountDirectory, NotificationIntent, NotificationSeverity, NotificationSink
from .stages import (
    DEFAULT_INITIAL_ORDINAL,
    INITIAL_ORDINAL_BY_ROLE,
    REJECTED_ORDINAL,
    Decision,
    Role,
    Stage,
    coerce_role,
    get_stage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """
    A notification the engine wants sent.

    Addressed either to a single account (user_id) or to every account
    holding a role.
    """

    message: str
    severity: NotificationSeverity = NotificationSeverity.INFO
    user_id: Optional[UUID] = None
    role: Optional[Role] = None
    document_id: Optional[UUID] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.role is None):
            raise ValueError("A notice needs exactly one of user_id or role")


@dataclass(frozen=True)
class SubmissionResult:
    document: WorkflowDocument
    notices: Tuple[Notice, ...]


@dataclass(frozen=True)
class TransitionResult:
    document: WorkflowDocument
    patch: DocumentPatch
    notices: Tuple[Notice, ...]


class ApprovalWorkflowEngine:
    """
    Sequential approval state machine shared by every document kind.

    Handles:
    - Initial stage resolution from the submitter's role
    - Decision validation (finalized, approver role, rejection reason)
    - Transition application with an append-only approval log
    - Notification fan-out through the injected collaborators
    """

    def __init__(
        self,
        directory: Optional[AccountDirectory] = None,
        sink: Optional[NotificationSink] = None,
    ):
        """
        Args:
            directory: Resolves which accounts hold an approver role
            sink: Receives one intent per recipient
        """
        self.directory = directory
        self.sink = sink

    def resolve_initial_stage(self, submitter_role: Union[Role, str]) -> Stage:
        """
        Get the stage a new submission starts at.

        Raises:
            InvalidRoleError: If the role is not in the role enumeration
        """
        role = coerce_role(submitter_role)
        return get_stage(INITIAL_ORDINAL_BY_ROLE.get(role, DEFAULT_INITIAL_ORDINAL))

    def submit(
        self,
        *,
        submitter_id: UUID,
        submitter_name: str,
        submitter_role: Union[Role, str],
        kind: Union[DocumentKind, str],
        payload: Optional[Mapping[str, Any]] = None,
        attachment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        """
        Build a new document at its initial stage.

        Returns:
            The document (not yet persisted) and the notices to send once it is

        Raises:
            InvalidRoleError: If the submitter role is unknown
        """
        role = coerce_role(submitter_role)
        kind = coerce_kind(kind)
        stage = self.resolve_initial_stage(role)
        now = now or utcnow()

        document = WorkflowDocument(
            id=uuid.uuid4(),
            kind=kind,
            submitter_id=submitter_id,
            submitter_name=submitter_name,
            submitter_role=role,
            current_stage_ordinal=stage.ordinal,
            submitted_at=now,
            last_updated_at=now,
            payload=dict(payload or {}),
            attachment=attachment,
        )

        notices = [
            Notice(
                f"Your {kind.label} has been submitted. Status: {stage.name}.",
                user_id=submitter_id,
                document_id=document.id,
            )
        ]
        if stage.terminal:
            notices.append(self._fully_approved(document))
        else:
            notices.append(self._awaiting_approval(document, stage))

        return SubmissionResult(document=document, notices=tuple(notices))

    def apply_decision(
        self,
        document: WorkflowDocument,
        acting_role: Union[Role, str],
        acting_id: UUID,
        decision: Union[Decision, str],
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Validate and apply an approver's decision.

        Preconditions are checked in order and the first failure wins.
        The input document is left untouched.

        Raises:
            AlreadyFinalizedError: If the document is Approved or Rejected
            UnauthorizedStageError: If acting_role is not the stage's approver
            MissingReasonError: If a rejection has no comment
        """
        decision = Decision(decision)
        stage = document.stage

        if stage.terminal:
            raise AlreadyFinalizedError(document.id, stage.name)

        expected = stage.required_approver_role
        role = self._role_or_none(acting_role)
        if expected is None or role != expected:
            raise UnauthorizedStageError(
                acting_role.value if isinstance(acting_role, Role) else acting_role,
                stage.name,
                expected.value if expected else None,
            )

        comment = (comment or "").strip()
        if decision == Decision.REJECT and not comment:
            raise MissingReasonError()

        now = now or utcnow()
        entry = ApprovalLogEntry(
            actor_role=role,
            actor_id=acting_id,
            decision=decision,
            comment=comment,
            timestamp=now,
        )

        if decision == Decision.APPROVE:
            patch = DocumentPatch(
                current_stage_ordinal=stage.ordinal + 1,
                last_updated_at=now,
                appended_entry=entry,
            )
        else:
            patch = DocumentPatch(
                current_stage_ordinal=REJECTED_ORDINAL,
                last_updated_at=now,
                appended_entry=entry,
                rejection_reason=comment,
            )

        updated = apply_patch(document, patch)
        logger.info(
            "Document %s: %s by %s %s, %s -> %s",
            document.id, decision.value, role.value, acting_id, stage.name, updated.status,
        )
        return TransitionResult(
            document=updated,
            patch=patch,
            notices=tuple(self._decision_notices(updated, role, decision, comment)),
        )

    def dispatch(self, notices: Tuple[Notice, ...]) -> int:
        """
        Deliver notices through the sink.

        Delivery is fire-and-forget: failures are logged and never raised,
        so an already applied transition is never undone by them.

        Returns:
            Number of intents the sink accepted
        """
        if self.sink is None:
            logger.warning("No notification sink configured, dropping %d notices", len(notices))
            return 0

        delivered = 0
        for notice in notices:
            for user_id in self._recipients(notice):
                intent = NotificationIntent(
                    user_id=user_id,
                    message=notice.message,
                    severity=notice.severity,
                    document_id=notice.document_id,
                )
                try:
                    self.sink.notify(intent)
                    delivered += 1
                except Exception:
                    logger.exception("Failed to notify %s", user_id)
        return delivered

    def _recipients(self, notice: Notice) -> List[UUID]:
        if notice.user_id is not None:
            return [notice.user_id]

        if self.directory is None:
            logger.warning("No account directory configured, cannot notify role %s", notice.role.value)
            return []

        try:
            accounts = self.directory.find_by_role(notice.role)
        except Exception:
            logger.exception("Failed to look up accounts for role %s", notice.role.value)
            return []

        if not accounts:
            logger.warning(
                "No accounts hold role %s; document %s has nobody to approve it",
                notice.role.value, notice.document_id,
            )
        return [account.id for account in accounts]

    def _decision_notices(
        self,
        document: WorkflowDocument,
        role: Role,
        decision: Decision,
        comment: str,
    ) -> List[Notice]:
        label = document.kind.label

        if decision == Decision.REJECT:
            return [
                Notice(
                    f"Your {label} has been rejected by {role.value}. Reason: {comment}",
                    NotificationSeverity.ERROR,
                    user_id=document.submitter_id,
                    document_id=document.id,
                )
            ]

        if document.is_finalized:
            return [self._fully_approved(document)]

        return [
            Notice(
                f"Your {label} has been approved by {role.value}. "
                f"Current status: {document.status}.",
                user_id=document.submitter_id,
                document_id=document.id,
            ),
            self._awaiting_approval(document, document.stage),
        ]

    @staticmethod
    def _fully_approved(document: WorkflowDocument) -> Notice:
        return Notice(
            f"Your {document.kind.label} has been fully approved.",
            NotificationSeverity.SUCCESS,
            user_id=document.submitter_id,
            document_id=document.id,
        )

    @staticmethod
    def _awaiting_approval(document: WorkflowDocument, stage: Stage) -> Notice:
        return Notice(
            f"New {document.kind.label} from {document.submitter_name} is awaiting your approval.",
            role=stage.required_approver_role,
            document_id=document.id,
        )

    @staticmethod
    def _role_or_none(value: Union[Role, str]) -> Optional[Role]:
        try:
            return coerce_role(value)
        except InvalidRoleError:
            return None


def apply_patch(document: WorkflowDocument, patch: DocumentPatch) -> WorkflowDocument:
    """Return a copy of the document with a patch applied."""
    return replace(
        document,
        current_stage_ordinal=patch.current_stage_ordinal,
        last_updated_at=patch.last_updated_at,
        approval_log=document.approval_log + (patch.appended_entry,),
        rejection_reason=(
            patch.rejection_reason
            if patch.rejection_reason is not None
            else document.rejection_reason
        ),
    )
