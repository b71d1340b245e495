"""Tests for the SQLAlchemy repository and account directory."""

from datetime import datetime
from uuid import uuid4

import pytest

from docflow.core.workflow.document import ApprovalLogEntry, DocumentPatch
from docflow.core.workflow.errors import ConcurrentModificationError, NotFoundError
from docflow.core.workflow.stages import Decision, Role
from docflow.db.models import ApprovalLogRecord, Document
from docflow.db.repository import SQLAccountDirectory, SQLDocumentRepository
from tests.factories import create_document

pytestmark = pytest.mark.integration

NOW = datetime(2024, 5, 1, 12, 0)


def approve_patch(ordinal, actor_id, role=Role.LECTURER):
    return DocumentPatch(
        current_stage_ordinal=ordinal,
        last_updated_at=NOW,
        appended_entry=ApprovalLogEntry(role, actor_id, Decision.APPROVE, "ok", NOW),
    )


class TestDocumentRepository:

    def test_find_by_id_maps_row(self, db_session, account_factory):
        student = account_factory(role="Student", name="Kamal")
        row = create_document(db_session, submitter=student, kind="leave", payload={"reason": "Travel"})
        repository = SQLDocumentRepository(db_session)

        doc = repository.find_by_id(row.id)

        assert doc.id == row.id
        assert doc.submitter_role == Role.STUDENT
        assert doc.submitter_name == "Kamal"
        assert doc.payload == {"reason": "Travel"}
        assert doc.status == "Pending Lecturer Approval"
        assert repository.find_by_id(uuid4()) is None

    def test_update_writes_status_and_log(self, db_session, account_factory):
        student = account_factory(role="Student")
        lecturer = account_factory(role="Lecturer")
        row = create_document(db_session, submitter=student)
        repository = SQLDocumentRepository(db_session)

        doc = repository.update(row.id, 1, approve_patch(2, lecturer.id))

        assert doc.status == "Pending HOD Approval"
        assert doc.last_updated_at == NOW
        assert doc.approval_log[0].actor_id == lecturer.id

        stored = db_session.query(Document).filter(Document.id == row.id).one()
        assert stored.status == "Pending HOD Approval"
        assert stored.current_stage_ordinal == 2

    def test_log_sequence_increments(self, db_session, account_factory):
        student = account_factory(role="Student")
        row = create_document(db_session, submitter=student)
        repository = SQLDocumentRepository(db_session)

        repository.update(row.id, 1, approve_patch(2, uuid4()))
        repository.update(row.id, 2, approve_patch(3, uuid4(), Role.HOD))

        sequences = [
            r.sequence
            for r in db_session.query(ApprovalLogRecord)
            .filter(ApprovalLogRecord.document_id == row.id)
            .order_by(ApprovalLogRecord.sequence)
        ]
        assert sequences == [0, 1]
        assert [e.actor_role for e in repository.find_by_id(row.id).approval_log] == [
            Role.LECTURER, Role.HOD,
        ]

    def test_update_rejection_reason(self, db_session, account_factory):
        student = account_factory(role="Student")
        row = create_document(db_session, submitter=student)
        repository = SQLDocumentRepository(db_session)

        patch = DocumentPatch(
            current_stage_ordinal=6,
            last_updated_at=NOW,
            appended_entry=ApprovalLogEntry(Role.LECTURER, uuid4(), Decision.REJECT, "late", NOW),
            rejection_reason="late",
        )
        doc = repository.update(row.id, 1, patch)

        assert doc.status == "Rejected"
        assert doc.rejection_reason == "late"

    def test_update_with_stale_ordinal(self, db_session, account_factory):
        student = account_factory(role="Student")
        row = create_document(db_session, submitter=student, ordinal=2)
        repository = SQLDocumentRepository(db_session)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            repository.update(row.id, 1, approve_patch(2, uuid4()))
        assert exc_info.value.expected_ordinal == 1

    def test_update_missing_document(self, db_session):
        repository = SQLDocumentRepository(db_session)
        with pytest.raises(NotFoundError):
            repository.update(uuid4(), 1, approve_patch(2, uuid4()))

    def test_find_by_status(self, db_session, account_factory):
        student = account_factory(role="Student")
        at_hod = create_document(db_session, submitter=student, ordinal=2)
        create_document(db_session, submitter=student, ordinal=1)
        repository = SQLDocumentRepository(db_session)

        assert [d.id for d in repository.find_by_status("Pending HOD Approval")] == [at_hod.id]
        assert repository.find_by_status("Approved") == []

    def test_delete_removes_log(self, db_session, account_factory):
        student = account_factory(role="Student")
        row = create_document(db_session, submitter=student)
        repository = SQLDocumentRepository(db_session)
        repository.update(row.id, 1, approve_patch(2, uuid4()))

        assert repository.delete(row.id) is True
        assert repository.find_by_id(row.id) is None
        assert db_session.query(ApprovalLogRecord).count() == 0
        assert repository.delete(row.id) is False


class TestAccountDirectory:

    def test_find_by_role_skips_inactive(self, db_session, account_factory):
        active = account_factory(role="Dean")
        account_factory(role="Dean", is_active=False)
        account_factory(role="HOD")
        directory = SQLAccountDirectory(db_session)

        deans = directory.find_by_role(Role.DEAN)

        assert [a.id for a in deans] == [active.id]
        assert deans[0].role == Role.DEAN

    def test_find_by_id(self, db_session, account_factory):
        account = account_factory(role="VC", email="vc@uni.example")
        directory = SQLAccountDirectory(db_session)

        found = directory.find_by_id(account.id)
        assert found.email == "vc@uni.example"
        assert found.role == Role.VC
        assert directory.find_by_id(uuid4()) is None
