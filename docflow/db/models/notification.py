"""In-app notification model."""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Text, Uuid
from sqlalchemy.orm import relationship

from docflow.core.workflow.document import utcnow
from docflow.db.base import Base


class Notification(Base):
    """
    A message shown in an account's notification inbox.
    """
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)

    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, default="info")  # info, success, error
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    user = relationship("Account", back_populates="notifications")

    def __repr__(self) -> str:
        return f"<Notification {self.severity} to {self.user_id}>"
