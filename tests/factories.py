"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session, and flushes
so that database-generated fields (id, created_at, etc.) are populated.
All fields have sensible defaults but can be overridden via keyword arguments.

Usage::

    from tests.factories import create_account, create_document

    def test_something(db_session):
        student = create_account(db_session, role="Student")
        doc = create_document(db_session, submitter=student)
        assert doc.status == "Pending Lecturer Approval"
"""

from typing import Optional

from sqlalchemy.orm import Session

from docflow.core.workflow.document import utcnow
from docflow.core.workflow.stages import get_stage
from docflow.db.models import Account, Document


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


def create_account(
    session: Session,
    *,
    role: str = "Student",
    name: Optional[str] = None,
    email: Optional[str] = None,
    department: Optional[str] = None,
    is_active: bool = True,
) -> Account:
    n = _next_id()
    account = Account(
        name=name or f"Test Account {n}",
        email=email or f"account{n}@uni.example",
        role=role,
        department=department,
        is_active=is_active,
    )
    session.add(account)
    session.flush()
    return account


def create_document(
    session: Session,
    *,
    submitter: Account,
    kind: str = "letter",
    ordinal: int = 1,
    payload: Optional[dict] = None,
) -> Document:
    """Insert a document row directly at the given stage, bypassing the workflow."""
    now = utcnow()
    document = Document(
        kind=kind,
        submitter_id=submitter.id,
        submitter_name=submitter.name,
        submitter_role=submitter.role,
        current_stage_ordinal=ordinal,
        status=get_stage(ordinal).name,
        payload=payload or {"letter_type": "Recommendation", "reason": "Scholarship", "date": "2024-05-01"},
        submitted_at=now,
        last_updated_at=now,
    )
    session.add(document)
    session.flush()
    return document


def auth_headers(account: Account) -> dict:
    """Request headers identifying the given account."""
    return {"X-Account-Id": str(account.id)}
