"""End-to-end tests for the workflow service against a real database."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from docflow.core.workflow import (
    AlreadyFinalizedError,
    ConcurrentModificationError,
    DocumentKind,
    InvalidRoleError,
    MissingReasonError,
    NotFoundError,
    Role,
    UnauthorizedStageError,
    WorkflowService,
)
from docflow.core.workflow.engine import ApprovalWorkflowEngine
from docflow.core.workflow.ports import Account as AccountRef
from docflow.db.models import Notification
from docflow.db.repository import SQLAccountDirectory, SQLDocumentRepository
from docflow.services.notifications import NotificationService

pytestmark = pytest.mark.integration

EXCUSE = {
    "reg_no": "SC/2021/001",
    "reason": "Illness",
    "reason_details": "Dengue fever",
    "absences": [{"course_code": "CSC301", "date": "2024-04-02"}],
}


def ref(account):
    return AccountRef(id=account.id, name=account.name, role=account.role, email=account.email)


def inbox(db_session, account):
    return [
        n.message
        for n in db_session.query(Notification)
        .filter(Notification.user_id == account.id)
        .order_by(Notification.created_at.asc())
        .all()
    ]


@pytest.fixture
def service(db_session):
    return WorkflowService(
        SQLDocumentRepository(db_session),
        SQLAccountDirectory(db_session),
        NotificationService(db_session),
    )


class TestSubmission:

    def test_student_submission_notifies_lecturers(self, service, db_session, chain, account_factory):
        second_lecturer = account_factory(role="Lecturer")
        student = chain["Student"]

        doc = service.submit(ref(student), "medical_excuse", EXCUSE)

        assert doc.status == "Pending Lecturer Approval"
        assert inbox(db_session, student) == [
            "Your excuse request has been submitted. Status: Pending Lecturer Approval."
        ]
        expected = [f"New excuse request from {student.name} is awaiting your approval."]
        assert inbox(db_session, chain["Lecturer"]) == expected
        assert inbox(db_session, second_lecturer) == expected
        assert inbox(db_session, chain["HOD"]) == []

    def test_vc_submission_is_approved_immediately(self, service, db_session, chain):
        vc = chain["VC"]
        doc = service.submit(ref(vc), "letter", {"letter_type": "Circular"})

        assert doc.status == "Approved"
        assert doc.approval_log == ()
        assert inbox(db_session, vc)[-1] == "Your letter has been fully approved."
        assert all(inbox(db_session, chain[r]) == [] for r in ("Lecturer", "HOD", "Dean"))

    def test_invalid_role_persists_nothing(self, service, db_session, account_factory):
        janitor = account_factory(role="Janitor")
        with pytest.raises(InvalidRoleError):
            service.submit(ref(janitor), "leave", {})
        assert service.list_all() == []

    def test_no_approvers_logs_warning(self, service, account_factory, caplog):
        student = account_factory(role="Student")
        doc = service.submit(ref(student), "leave", {"reason": "Family"})

        assert doc.status == "Pending Lecturer Approval"
        assert "No accounts hold role Lecturer" in caplog.text


class TestDecisions:

    def test_full_chain_to_approved(self, service, db_session, chain):
        student = chain["Student"]
        doc = service.submit(ref(student), "medical_excuse", EXCUSE)

        for role in ("Lecturer", "HOD", "Dean", "VC"):
            approver = chain[role]
            doc = service.approve(doc.id, actor_id=approver.id, actor_role=approver.role)

        assert doc.status == "Approved"
        assert [e.actor_role for e in doc.approval_log] == [
            Role.LECTURER, Role.HOD, Role.DEAN, Role.VC,
        ]
        assert inbox(db_session, student)[-1] == "Your excuse request has been fully approved."

        stored = service.get_by_id(doc.id)
        assert stored.status == "Approved"
        assert len(stored.approval_log) == 4

    def test_lecturer_submission_starts_at_hod(self, service, chain):
        doc = service.submit(ref(chain["Lecturer"]), "leave", {"reason": "Conference"})
        assert doc.status == "Pending HOD Approval"

        with pytest.raises(UnauthorizedStageError):
            service.approve(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer")

    def test_rejection(self, service, db_session, chain):
        student = chain["Student"]
        doc = service.submit(ref(student), "medical_excuse", EXCUSE)
        lecturer = chain["Lecturer"]
        doc = service.approve(doc.id, actor_id=lecturer.id, actor_role="Lecturer")

        hod = chain["HOD"]
        doc = service.reject(doc.id, actor_id=hod.id, actor_role="HOD", comment="Insufficient evidence")

        assert doc.status == "Rejected"
        assert doc.rejection_reason == "Insufficient evidence"
        assert inbox(db_session, student)[-1] == (
            "Your excuse request has been rejected by HOD. Reason: Insufficient evidence"
        )
        assert service.get_by_id(doc.id).rejection_reason == "Insufficient evidence"

        before = service.get_by_id(doc.id)
        with pytest.raises(AlreadyFinalizedError):
            service.approve(doc.id, actor_id=chain["Dean"].id, actor_role="Dean")
        assert service.get_by_id(doc.id) == before

    def test_rejection_without_reason_changes_nothing(self, service, chain):
        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "Travel"})

        with pytest.raises(MissingReasonError):
            service.reject(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer", comment="  ")

        stored = service.get_by_id(doc.id)
        assert stored.status == "Pending Lecturer Approval"
        assert stored.approval_log == ()

    def test_unknown_document(self, service, chain):
        with pytest.raises(NotFoundError):
            service.approve(uuid4(), actor_id=chain["Lecturer"].id, actor_role="Lecturer")

    def test_sink_failure_keeps_transition(self, db_session, chain):
        sink = MagicMock()
        sink.notify.side_effect = RuntimeError("inbox unavailable")
        service = WorkflowService(
            SQLDocumentRepository(db_session), SQLAccountDirectory(db_session), sink,
        )

        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "Travel"})
        doc = service.approve(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer")

        assert doc.status == "Pending HOD Approval"
        assert service.get_by_id(doc.id).status == "Pending HOD Approval"


class RacingRepository(SQLDocumentRepository):
    """Lets another approver win the race right before our first update lands."""

    def __init__(self, db, rival):
        super().__init__(db)
        self.rival = rival
        self.raced = False

    def update(self, document_id, expected_ordinal, patch):
        if not self.raced:
            self.raced = True
            current = self.find_by_id(document_id)
            result = ApprovalWorkflowEngine().apply_decision(
                current, self.rival.role, self.rival.id, "approve",
            )
            super().update(document_id, current.current_stage_ordinal, result.patch)
        return super().update(document_id, expected_ordinal, patch)


class TestConcurrency:

    def test_stale_update_is_refused(self, db_session, chain):
        repository = SQLDocumentRepository(db_session)
        service = WorkflowService(repository, SQLAccountDirectory(db_session), MagicMock())
        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "Travel"})

        engine = ApprovalWorkflowEngine()
        first = engine.apply_decision(doc, "Lecturer", chain["Lecturer"].id, "approve")
        second = engine.apply_decision(doc, "Lecturer", uuid4(), "approve")

        repository.update(doc.id, doc.current_stage_ordinal, first.patch)
        with pytest.raises(ConcurrentModificationError):
            repository.update(doc.id, doc.current_stage_ordinal, second.patch)

        stored = repository.find_by_id(doc.id)
        assert stored.status == "Pending HOD Approval"
        assert len(stored.approval_log) == 1

    def test_losing_approver_is_revalidated(self, db_session, chain, account_factory):
        rival = account_factory(role="Lecturer", name="Rival Lecturer")
        repository = RacingRepository(db_session, rival)
        service = WorkflowService(repository, SQLAccountDirectory(db_session), MagicMock())
        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "Travel"})

        # The retry re-reads the document, now at the HOD stage
        with pytest.raises(UnauthorizedStageError):
            service.approve(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer")

        stored = service.get_by_id(doc.id)
        assert stored.status == "Pending HOD Approval"
        assert [e.actor_id for e in stored.approval_log] == [rival.id]

    def test_retry_succeeds_after_transient_conflict(self, db_session, chain):
        real = SQLDocumentRepository(db_session)
        service = WorkflowService(real, SQLAccountDirectory(db_session), MagicMock())
        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "Travel"})

        calls = []

        def flaky_update(document_id, expected_ordinal, patch):
            calls.append(expected_ordinal)
            if len(calls) == 1:
                raise ConcurrentModificationError(document_id, expected_ordinal)
            return SQLDocumentRepository.update(real, document_id, expected_ordinal, patch)

        real.update = flaky_update
        updated = service.approve(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer")

        assert updated.status == "Pending HOD Approval"
        assert calls == [1, 1]

    def test_retries_are_bounded(self, db_session, chain):
        repository = MagicMock()
        engine = ApprovalWorkflowEngine()
        doc = engine.submit(
            submitter_id=chain["Student"].id,
            submitter_name="Student One",
            submitter_role="Student",
            kind="leave",
        ).document
        repository.find_by_id.return_value = doc
        repository.update.side_effect = ConcurrentModificationError(doc.id, 1)
        sink = MagicMock()

        service = WorkflowService(repository, MagicMock(), sink, max_retries=3)
        with pytest.raises(ConcurrentModificationError):
            service.approve(doc.id, actor_id=chain["Lecturer"].id, actor_role="Lecturer")

        assert repository.update.call_count == 3
        sink.notify.assert_not_called()


class TestQueries:

    def test_pending_queue_per_role(self, service, chain):
        first = service.submit(ref(chain["Student"]), "leave", {"reason": "A"})
        second = service.submit(ref(chain["Student"]), "letter", {"letter_type": "B"})
        hod_doc = service.submit(ref(chain["Lecturer"]), "leave", {"reason": "C"})

        lecturer_queue = service.list_pending_for_role("Lecturer")
        assert [d.id for d in lecturer_queue] == [first.id, second.id]
        assert [d.id for d in service.list_pending_for_role(Role.HOD)] == [hod_doc.id]
        assert service.list_pending_for_role("Student") == []
        assert service.list_pending_for_role("Admin") == []

    def test_pending_queue_unknown_role_is_empty(self, service, chain):
        service.submit(ref(chain["Student"]), "leave", {"reason": "A"})
        assert service.list_pending_for_role("Registrar") == []

    def test_pending_queue_by_kind(self, service, chain):
        leave = service.submit(ref(chain["Student"]), "leave", {"reason": "A"})
        letter = service.submit(ref(chain["Student"]), "letter", {"letter_type": "B"})

        assert [d.id for d in service.list_pending_for_role("Lecturer", kind="leave")] == [leave.id]
        assert [d.id for d in service.list_pending_for_role("Lecturer", kind=DocumentKind.LETTER)] == [letter.id]
        assert service.list_pending_for_role("Lecturer", kind="medical_excuse") == []

    def test_listings_by_kind(self, service, chain):
        student = chain["Student"]
        leave = service.submit(ref(student), "leave", {"reason": "A"})
        service.submit(ref(student), "letter", {"letter_type": "B"})
        service.submit(ref(chain["Lecturer"]), "letter", {"letter_type": "C"})

        assert [d.id for d in service.list_by_submitter(student.id, kind="leave")] == [leave.id]
        assert len(service.list_by_submitter(student.id, kind="letter")) == 1
        assert [d.kind for d in service.list_all(kind="letter")] == [DocumentKind.LETTER] * 2

    def test_listing_rejects_unknown_kind(self, service):
        with pytest.raises(ValueError):
            service.list_all(kind="memo")

    def test_list_by_submitter_newest_first(self, service, chain):
        student = chain["Student"]
        older = service.submit(ref(student), "leave", {"reason": "A"})
        newer = service.submit(ref(student), "leave", {"reason": "B"})
        service.submit(ref(chain["Lecturer"]), "leave", {"reason": "C"})

        assert [d.id for d in service.list_by_submitter(student.id)] == [newer.id, older.id]
        assert len(service.list_all()) == 3

    def test_delete(self, service, chain):
        doc = service.submit(ref(chain["Student"]), "leave", {"reason": "A"})
        service.delete(doc.id)

        with pytest.raises(NotFoundError):
            service.get_by_id(doc.id)
        with pytest.raises(NotFoundError):
            service.delete(doc.id)
