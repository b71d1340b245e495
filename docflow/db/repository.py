"""SQLAlchemy implementations of the workflow's persistence contracts."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, update
from sqlalchemy.orm import Session

from docflow.core.workflow.document import (
    ApprovalLogEntry,
    DocumentKind,
    DocumentPatch,
    WorkflowDocument,
)
from docflow.core.workflow.errors import ConcurrentModificationError, NotFoundError
from docflow.core.workflow.ports import Account
from docflow.core.workflow.stages import Decision, Role, get_stage
from docflow.db.models import Account as AccountModel
from docflow.db.models import ApprovalLogRecord, Document

logger = logging.getLogger(__name__)


class SQLDocumentRepository:
    """
    Stores workflow documents in the documents and approval_log tables.

    Updates are conditional on the stage ordinal the caller last read, so two
    writers racing on the same document cannot both succeed.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, document: WorkflowDocument) -> UUID:
        row = Document(
            id=document.id,
            kind=document.kind.value,
            submitter_id=document.submitter_id,
            submitter_name=document.submitter_name,
            submitter_role=document.submitter_role.value,
            current_stage_ordinal=document.current_stage_ordinal,
            status=document.status,
            rejection_reason=document.rejection_reason,
            payload=dict(document.payload),
            attachment=document.attachment,
            submitted_at=document.submitted_at,
            last_updated_at=document.last_updated_at,
        )
        for sequence, entry in enumerate(document.approval_log):
            row.approval_log.append(_entry_to_record(entry, sequence))

        self.db.add(row)
        self.db.flush()
        return row.id

    def find_by_id(self, document_id: UUID) -> Optional[WorkflowDocument]:
        row = (
            self.db.query(Document)
            .filter(Document.id == document_id)
            .populate_existing()
            .first()
        )
        if row is None:
            return None
        self.db.expire(row, ["approval_log"])
        return self._to_domain(row)

    def find_by_status(
        self, status: str, kind: Optional[DocumentKind] = None,
    ) -> List[WorkflowDocument]:
        """Get documents at a stage, oldest first."""
        query = self._query(kind).filter(Document.status == status)
        return [self._to_domain(r) for r in query.order_by(Document.submitted_at.asc()).all()]

    def find_by_submitter(
        self, submitter_id: UUID, kind: Optional[DocumentKind] = None,
    ) -> List[WorkflowDocument]:
        query = self._query(kind).filter(Document.submitter_id == submitter_id)
        return [self._to_domain(r) for r in query.order_by(Document.submitted_at.desc()).all()]

    def find_all(self, kind: Optional[DocumentKind] = None) -> List[WorkflowDocument]:
        query = self._query(kind)
        return [self._to_domain(r) for r in query.order_by(Document.submitted_at.desc()).all()]

    def update(
        self,
        document_id: UUID,
        expected_ordinal: int,
        patch: DocumentPatch,
    ) -> WorkflowDocument:
        """
        Apply a decision's patch with a compare-and-swap on the stage ordinal.

        Raises:
            ConcurrentModificationError: If the stored ordinal is not expected_ordinal
            NotFoundError: If the document does not exist
        """
        values = {
            "current_stage_ordinal": patch.current_stage_ordinal,
            "status": get_stage(patch.current_stage_ordinal).name,
            "last_updated_at": patch.last_updated_at,
        }
        if patch.rejection_reason is not None:
            values["rejection_reason"] = patch.rejection_reason

        result = self.db.execute(
            update(Document)
            .where(
                and_(
                    Document.id == document_id,
                    Document.current_stage_ordinal == expected_ordinal,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            exists = self.db.query(Document.id).filter(Document.id == document_id).first()
            if exists is None:
                raise NotFoundError("Document", document_id)
            raise ConcurrentModificationError(document_id, expected_ordinal)

        sequence = (
            self.db.query(func.count(ApprovalLogRecord.id))
            .filter(ApprovalLogRecord.document_id == document_id)
            .scalar()
        )
        record = _entry_to_record(patch.appended_entry, sequence)
        record.document_id = document_id
        self.db.add(record)
        self.db.flush()

        # The UPDATE bypassed the identity map; drop any stale copy.
        row = self.db.get(Document, document_id)
        self.db.expire(row)
        return self._to_domain(row)

    def delete(self, document_id: UUID) -> bool:
        row = self.db.get(Document, document_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    def _query(self, kind: Optional[DocumentKind]):
        query = self.db.query(Document)
        if kind is not None:
            query = query.filter(Document.kind == kind.value)
        return query

    @staticmethod
    def _to_domain(row: Document) -> WorkflowDocument:
        return WorkflowDocument(
            id=row.id,
            kind=DocumentKind(row.kind),
            submitter_id=row.submitter_id,
            submitter_name=row.submitter_name,
            submitter_role=Role(row.submitter_role),
            current_stage_ordinal=row.current_stage_ordinal,
            submitted_at=row.submitted_at,
            last_updated_at=row.last_updated_at,
            payload=dict(row.payload or {}),
            attachment=row.attachment,
            approval_log=tuple(
                ApprovalLogEntry(
                    actor_role=Role(r.actor_role),
                    actor_id=r.actor_id,
                    decision=Decision(r.decision),
                    comment=r.comment or "",
                    timestamp=r.created_at,
                )
                for r in row.approval_log
            ),
            rejection_reason=row.rejection_reason,
        )


class SQLAccountDirectory:
    """Looks up accounts in the accounts table."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_role(self, role: Role) -> List[Account]:
        role_value = role.value if isinstance(role, Role) else role
        rows = (
            self.db.query(AccountModel)
            .filter(
                and_(
                    AccountModel.role == role_value,
                    AccountModel.is_active == True,  # noqa: E712
                )
            )
            .order_by(AccountModel.created_at.asc())
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def find_by_id(self, account_id: UUID) -> Optional[Account]:
        row = self.db.get(AccountModel, account_id)
        if row is None or not row.is_active:
            return None
        return self._to_domain(row)

    @staticmethod
    def _to_domain(row: AccountModel) -> Account:
        try:
            role = Role(row.role)
        except ValueError:
            logger.warning("Account %s has unknown role %r", row.id, row.role)
            role = row.role
        return Account(id=row.id, name=row.name, role=role, email=row.email)


def _entry_to_record(entry: ApprovalLogEntry, sequence: int) -> ApprovalLogRecord:
    return ApprovalLogRecord(
        sequence=sequence,
        actor_role=entry.actor_role.value,
        actor_id=entry.actor_id,
        decision=entry.decision.value,
        comment=entry.comment,
        created_at=entry.timestamp,
    )
