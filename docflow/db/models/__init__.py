"""Database models for DocFlow."""

from docflow.db.models.account import Account
from docflow.db.models.document import Document, ApprovalLogRecord
from docflow.db.models.notification import Notification

__all__ = [
    "Account",
    "Document",
    "ApprovalLogRecord",
    "Notification",
]
