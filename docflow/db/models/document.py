"""Document and approval log models.

A document row stores its stage ordinal and, denormalized for queries, the
matching status name. Every decision adds one approval log row; rows are
never updated afterwards.
"""

import uuid
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from docflow.core.workflow.document import utcnow
from docflow.db.base import Base


class Document(Base):
    """
    A submitted excuse request, leave request or letter.

    The payload column holds the kind-specific fields.
    """
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind = Column(String(50), nullable=False, index=True)  # medical_excuse, leave, letter

    # Submitter, captured at submission time
    submitter_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    submitter_name = Column(String(255), nullable=False)
    submitter_role = Column(String(20), nullable=False)

    # Workflow state
    current_stage_ordinal = Column(Integer, nullable=False)
    status = Column(String(50), nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)

    # Kind-specific fields and opaque attachment reference
    payload = Column(JSON, nullable=False, default=dict)
    attachment = Column(Text, nullable=True)

    # Timestamps
    submitted_at = Column(DateTime, default=utcnow, index=True)
    last_updated_at = Column(DateTime, default=utcnow)

    # Relationships
    submitter = relationship("Account", back_populates="documents")
    approval_log = relationship(
        "ApprovalLogRecord",
        back_populates="document",
        order_by="ApprovalLogRecord.sequence",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Document {self.kind} {self.id} [{self.status}]>"


class ApprovalLogRecord(Base):
    """
    Records one approve or reject decision.

    Provides the audit trail of a document's approval.
    """
    __tablename__ = "approval_log"
    __table_args__ = (
        UniqueConstraint("document_id", "sequence", name="uq_approval_log_document_sequence"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # position in the log, starting at 0

    # Actor
    actor_role = Column(String(20), nullable=False)
    actor_id = Column(Uuid(as_uuid=True), nullable=False)

    # Decision
    decision = Column(String(20), nullable=False)  # approve, reject
    comment = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    document = relationship("Document", back_populates="approval_log")

    def __repr__(self) -> str:
        return f"<ApprovalLogRecord {self.decision} by {self.actor_role}>"
