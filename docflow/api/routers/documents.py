"""Document submission and approval endpoints."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from docflow.api.deps import get_access_policy, get_current_account, get_db, get_workflow_service
from docflow.api.errors import http_error
from docflow.api.schemas.common import ErrorResponse, SuccessResponse
from docflow.api.schemas.documents import (
    ApprovalLogEntryResponse,
    DecisionRequest,
    DocumentResponse,
    DocumentSubmission,
)
from docflow.core.access import DocumentAccessPolicy
from docflow.core.workflow import DocumentKind, Role, WorkflowDocument, WorkflowError, WorkflowService
from docflow.core.workflow.ports import Account as AccountRef
from docflow.db.models import Account

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["documents"],
    responses={401: {"model": ErrorResponse}},
)


def _caller(account: Account) -> AccountRef:
    return AccountRef(id=account.id, name=account.name, role=account.role, email=account.email)


def _get_visible(
    document_id: UUID,
    account: Account,
    service: WorkflowService,
    policy: DocumentAccessPolicy,
) -> WorkflowDocument:
    try:
        document = service.get_by_id(document_id)
    except WorkflowError as e:
        raise http_error(e)

    if not policy.can_view(account.role, account.id, document):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this document")
    return document


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def submit_document(
    submission: DocumentSubmission,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
):
    """Submit a medical excuse, leave request or letter for approval."""
    try:
        document = service.submit(
            _caller(current_account),
            submission.kind,
            submission.to_payload(),
            attachment=submission.attachment,
        )
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    return DocumentResponse.model_validate(document)


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    kind: Optional[DocumentKind] = Query(None, description="Only documents of this kind"),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
    policy: DocumentAccessPolicy = Depends(get_access_policy),
):
    """List the caller's own documents, or every document for an administrator."""
    if current_account.role == Role.ADMIN.value and policy.admin_sees_all:
        documents = service.list_all(kind)
    else:
        documents = service.list_by_submitter(current_account.id, kind)
    return [DocumentResponse.model_validate(d) for d in documents]


@router.get("/pending", response_model=List[DocumentResponse])
async def list_pending_documents(
    kind: Optional[DocumentKind] = Query(None, description="Only documents of this kind"),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
):
    """List documents waiting at the stage the caller's role approves, oldest first.

    Callers whose role approves no stage get an empty list.
    """
    documents = service.list_pending_for_role(current_account.role, kind)
    return [DocumentResponse.model_validate(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
    policy: DocumentAccessPolicy = Depends(get_access_policy),
):
    document = _get_visible(document_id, current_account, service, policy)
    return DocumentResponse.model_validate(document)


@router.get("/{document_id}/history", response_model=List[ApprovalLogEntryResponse])
async def get_document_history(
    document_id: UUID,
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
    policy: DocumentAccessPolicy = Depends(get_access_policy),
):
    """Get the decisions recorded against a document, oldest first."""
    document = _get_visible(document_id, current_account, service, policy)
    return [ApprovalLogEntryResponse.model_validate(e) for e in document.approval_log]


@router.post(
    "/{document_id}/approve",
    response_model=DocumentResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_document(
    document_id: UUID,
    action: DecisionRequest,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
):
    """Approve a document waiting at the caller's stage."""
    try:
        document = service.approve(
            document_id,
            actor_id=current_account.id,
            actor_role=current_account.role,
            comment=action.comment,
        )
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    return DocumentResponse.model_validate(document)


@router.post(
    "/{document_id}/reject",
    response_model=DocumentResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_document(
    document_id: UUID,
    action: DecisionRequest,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
):
    """Reject a document waiting at the caller's stage. A comment is required."""
    try:
        document = service.reject(
            document_id,
            actor_id=current_account.id,
            actor_role=current_account.role,
            comment=action.comment or "",
        )
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    return DocumentResponse.model_validate(document)


@router.delete("/{document_id}", response_model=SuccessResponse)
async def delete_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: WorkflowService = Depends(get_workflow_service),
    policy: DocumentAccessPolicy = Depends(get_access_policy),
):
    """Withdraw a document that has not been finalized, or remove any document as an administrator."""
    try:
        document = service.get_by_id(document_id)
    except WorkflowError as e:
        raise http_error(e)

    if not policy.can_delete(current_account.role, current_account.id, document):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this document")

    try:
        service.delete(document_id)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    logger.info("Document %s deleted by %s", document_id, current_account.id)
    return SuccessResponse(message="Document deleted")
