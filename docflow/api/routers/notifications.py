"""Notification inbox endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from docflow.api.deps import get_current_account, get_db, get_notification_service
from docflow.api.errors import http_error
from docflow.api.schemas.common import SuccessResponse
from docflow.api.schemas.notifications import NotificationListResponse, NotificationResponse
from docflow.core.workflow import WorkflowError
from docflow.db.models import Account
from docflow.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_account: Account = Depends(get_current_account),
    service: NotificationService = Depends(get_notification_service),
):
    """List the caller's notifications, newest first."""
    items = service.list_for_user(current_account.id)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread=service.unread_count(current_account.id),
    )


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        notification = service.mark_read(notification_id, current_account.id)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    db.refresh(notification)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", response_model=SuccessResponse)
async def delete_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        service.delete(notification_id, current_account.id)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        raise http_error(e)

    return SuccessResponse(message="Notification deleted")


@router.delete("", response_model=SuccessResponse)
async def delete_all_notifications(
    db: Session = Depends(get_db),
    current_account: Account = Depends(get_current_account),
    service: NotificationService = Depends(get_notification_service),
):
    """Clear the caller's inbox."""
    count = service.delete_all(current_account.id)
    db.commit()
    return SuccessResponse(message="Notifications cleared", data={"deleted": count})
