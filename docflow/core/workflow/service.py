"""Workflow service for submitting and deciding on documents.

Provides the high-level API the HTTP layer uses: it ties the engine to a
repository, an account directory and a notification sink.
"""

import logging
from typing import Any, List, Mapping, Optional, Union
from uuid import UUID

from .document import DocumentKind, WorkflowDocument, coerce_kind
from .engine import ApprovalWorkflowEngine
from .errors import ConcurrentModificationError, InvalidRoleError, NotFoundError
from .ports import Account, AccountDirectory, DocumentRepository, NotificationSink
from .stages import Decision, Role, stage_for_approver

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class WorkflowService:
    """
    High-level service for the document approval workflow.

    Handles:
    - Submitting documents at the stage their submitter's role dictates
    - Applying decisions with a compare-and-swap update and bounded retries
    - Querying documents by approver role, submitter and id
    """

    def __init__(
        self,
        repository: DocumentRepository,
        directory: AccountDirectory,
        sink: NotificationSink,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        """
        Args:
            repository: Document persistence
            directory: Account lookups for approver fan-out
            sink: Notification delivery
            max_retries: Attempts made when a concurrent update is detected
        """
        self.repository = repository
        self.engine = ApprovalWorkflowEngine(directory, sink)
        self.max_retries = max(1, max_retries)

    def submit(
        self,
        submitter: Account,
        kind: Union[DocumentKind, str],
        payload: Optional[Mapping[str, Any]] = None,
        *,
        attachment: Optional[str] = None,
    ) -> WorkflowDocument:
        """
        Submit a new document.

        The submitter role is validated before anything is persisted.

        Raises:
            InvalidRoleError: If the submitter's role is unknown
        """
        result = self.engine.submit(
            submitter_id=submitter.id,
            submitter_name=submitter.name,
            submitter_role=submitter.role,
            kind=kind,
            payload=payload,
            attachment=attachment,
        )
        self.repository.create(result.document)
        logger.info(
            "Document %s (%s) submitted by %s, status %s",
            result.document.id, result.document.kind.value, submitter.id, result.document.status,
        )

        self.engine.dispatch(result.notices)
        return result.document

    def decide(
        self,
        document_id: UUID,
        *,
        actor_id: UUID,
        actor_role: Union[Role, str],
        decision: Union[Decision, str],
        comment: Optional[str] = None,
    ) -> WorkflowDocument:
        """
        Apply an approver's decision to a stored document.

        On a concurrent modification the document is re-read and the decision
        re-validated against its new stage, up to max_retries attempts.

        Raises:
            NotFoundError: If the document does not exist
            AlreadyFinalizedError: If the document is Approved or Rejected
            UnauthorizedStageError: If the actor is not the stage's approver
            MissingReasonError: If a rejection has no comment
            ConcurrentModificationError: If every attempt lost the race
        """
        attempt = 0
        while True:
            attempt += 1
            document = self.get_by_id(document_id)
            result = self.engine.apply_decision(
                document, actor_role, actor_id, decision, comment,
            )
            try:
                updated = self.repository.update(
                    document.id, document.current_stage_ordinal, result.patch,
                )
            except ConcurrentModificationError:
                if attempt == self.max_retries:
                    logger.warning(
                        "Giving up on document %s after %d concurrent modifications",
                        document_id, attempt,
                    )
                    raise
                logger.info("Document %s changed underneath us, retrying (%d)", document_id, attempt)
                continue

            self.engine.dispatch(result.notices)
            return updated

    def approve(
        self,
        document_id: UUID,
        *,
        actor_id: UUID,
        actor_role: Union[Role, str],
        comment: Optional[str] = None,
    ) -> WorkflowDocument:
        return self.decide(
            document_id,
            actor_id=actor_id,
            actor_role=actor_role,
            decision=Decision.APPROVE,
            comment=comment,
        )

    def reject(
        self,
        document_id: UUID,
        *,
        actor_id: UUID,
        actor_role: Union[Role, str],
        comment: str,
    ) -> WorkflowDocument:
        return self.decide(
            document_id,
            actor_id=actor_id,
            actor_role=actor_role,
            decision=Decision.REJECT,
            comment=comment,
        )

    def list_pending_for_role(
        self,
        role: Union[Role, str],
        kind: Optional[Union[DocumentKind, str]] = None,
    ) -> List[WorkflowDocument]:
        """Get documents waiting at the stage this role approves, optionally of one kind.

        Roles outside the approval chain, unknown ones included, get an empty list.
        """
        try:
            stage = stage_for_approver(role)
        except InvalidRoleError:
            logger.debug("Role %r has no approval stage", role)
            return []
        if stage is None:
            return []
        return self.repository.find_by_status(stage.name, kind=_kind_or_none(kind))

    def list_by_submitter(
        self,
        submitter_id: UUID,
        kind: Optional[Union[DocumentKind, str]] = None,
    ) -> List[WorkflowDocument]:
        return self.repository.find_by_submitter(submitter_id, kind=_kind_or_none(kind))

    def list_all(self, kind: Optional[Union[DocumentKind, str]] = None) -> List[WorkflowDocument]:
        return self.repository.find_all(kind=_kind_or_none(kind))

    def get_by_id(self, document_id: UUID) -> WorkflowDocument:
        document = self.repository.find_by_id(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    def delete(self, document_id: UUID) -> None:
        if not self.repository.delete(document_id):
            raise NotFoundError("Document", document_id)
        logger.info("Document %s deleted", document_id)


def _kind_or_none(kind: Optional[Union[DocumentKind, str]]) -> Optional[DocumentKind]:
    return coerce_kind(kind) if kind is not None else None
