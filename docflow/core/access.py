"""Document visibility rules.

Decides who may see or remove a document. Kept separate from the
approval engine, which only decides who may act on one.
"""

from typing import Union
from uuid import UUID

from docflow.core.workflow.document import WorkflowDocument
from docflow.core.workflow.errors import InvalidRoleError
from docflow.core.workflow.stages import Role, coerce_role


class DocumentAccessPolicy:
    """Checks whether an account may view or delete a document."""

    def __init__(self, admin_sees_all: bool = True):
        """
        Args:
            admin_sees_all: Grant Admin accounts visibility of every document
        """
        self.admin_sees_all = admin_sees_all

    def can_view(self, role: Union[Role, str], viewer_id: UUID, document: WorkflowDocument) -> bool:
        """Check if a viewer may see a document.

        The submitter always can. An approver can while the document waits at
        their stage, and afterwards if they took part in its approval log.
        """
        if document.submitter_id == viewer_id:
            return True

        try:
            role = coerce_role(role)
        except InvalidRoleError:
            return False

        if role == Role.ADMIN:
            return self.admin_sees_all

        if document.stage.required_approver_role == role:
            return True

        return any(entry.actor_id == viewer_id for entry in document.approval_log)

    def can_delete(self, role: Union[Role, str], viewer_id: UUID, document: WorkflowDocument) -> bool:
        """Check if a viewer may remove a document.

        Submitters can withdraw their own documents until they are finalized.
        """
        try:
            role = coerce_role(role)
        except InvalidRoleError:
            return False

        if role == Role.ADMIN:
            return True

        return document.submitter_id == viewer_id and not document.is_finalized
