"""Contracts for the collaborators the workflow depends on.

The workflow never talks to a database or a delivery channel directly. It is
handed objects that satisfy these protocols.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Union
from uuid import UUID

from .document import DocumentKind, DocumentPatch, WorkflowDocument
from .stages import Role


class NotificationSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class NotificationIntent:
    """A message the workflow wants delivered to one account."""

    user_id: UUID
    message: str
    severity: NotificationSeverity = NotificationSeverity.INFO
    document_id: Optional[UUID] = None


@dataclass(frozen=True)
class Account:
    """Identity of a submitter or approver."""

    id: UUID
    name: str
    role: Union[Role, str]
    email: Optional[str] = None


class DocumentRepository(Protocol):
    def create(self, document: WorkflowDocument) -> UUID:
        ...

    def find_by_id(self, document_id: UUID) -> Optional[WorkflowDocument]:
        ...

    def find_by_status(
        self, status: str, kind: Optional[DocumentKind] = None,
    ) -> List[WorkflowDocument]:
        ...

    def find_by_submitter(
        self, submitter_id: UUID, kind: Optional[DocumentKind] = None,
    ) -> List[WorkflowDocument]:
        ...

    def find_all(self, kind: Optional[DocumentKind] = None) -> List[WorkflowDocument]:
        ...

    def update(
        self,
        document_id: UUID,
        expected_ordinal: int,
        patch: DocumentPatch,
    ) -> WorkflowDocument:
        """Apply a patch only if the stored ordinal still equals expected_ordinal.

        Raises:
            ConcurrentModificationError: If the stored ordinal differs
            NotFoundError: If the document does not exist
        """
        ...

    def delete(self, document_id: UUID) -> bool:
        ...


class NotificationSink(Protocol):
    def notify(self, intent: NotificationIntent) -> None:
        ...


class AccountDirectory(Protocol):
    def find_by_role(self, role: Role) -> List[Account]:
        ...

    def find_by_id(self, account_id: UUID) -> Optional[Account]:
        ...
