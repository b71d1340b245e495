from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from docflow.core.access import DocumentAccessPolicy
from docflow.core.config import get_settings
from docflow.core.workflow import WorkflowService
from docflow.db.models import Account
from docflow.db.repository import SQLAccountDirectory, SQLDocumentRepository
from docflow.db.session import SessionLocal
from docflow.services.notifications import NotificationService


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_account(
    db: Session = Depends(get_db),
    x_account_id: Optional[str] = Header(None),
) -> Account:
    """Resolve the caller from the X-Account-Id header set by the upstream authenticator."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not identify account",
    )

    if not x_account_id:
        raise credentials_exception

    try:
        account_id = UUID(x_account_id)
    except ValueError:
        raise credentials_exception

    account = db.query(Account).filter(Account.id == account_id).first()
    if account is None or not account.is_active:
        raise credentials_exception
    return account


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_workflow_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> WorkflowService:
    settings = get_settings()
    return WorkflowService(
        SQLDocumentRepository(db),
        SQLAccountDirectory(db),
        notifications,
        max_retries=settings.max_decision_retries,
    )


def get_access_policy() -> DocumentAccessPolicy:
    return DocumentAccessPolicy(admin_sees_all=get_settings().admin_sees_all)
