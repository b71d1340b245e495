"""Document request/response schemas.

Each document kind has its own submission body, selected by the ``kind``
field. The workflow stores everything except ``kind`` and ``attachment`` as
the document's payload.
"""

from datetime import date as Date, datetime
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docflow.core.workflow import Decision, DocumentKind, Role


class CourseAbsence(BaseModel):
    course_code: str = Field(..., min_length=1, max_length=20)
    date: Date


class _SubmissionBase(BaseModel):
    attachment: Optional[str] = Field(None, max_length=500, description="Opaque reference to an uploaded file")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"kind", "attachment"}, exclude_none=True)


class MedicalExcuseSubmission(_SubmissionBase):
    kind: Literal["medical_excuse"]
    reg_no: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., min_length=1, max_length=255)
    reason_details: str = Field(..., min_length=1)
    absences: List[CourseAbsence] = Field(..., min_length=1)

    mobile: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    level_of_study: Optional[str] = Field(None, max_length=50)
    subject_combo: Optional[str] = Field(None, max_length=100)
    lecture_absents: Optional[str] = None


class LeaveSubmission(_SubmissionBase):
    kind: Literal["leave"]
    reason: str = Field(..., min_length=1, max_length=255)
    reason_details: str = Field(..., min_length=1)
    start_date: Date
    end_date: Date

    contact_during_leave: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveSubmission":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class LetterSubmission(_SubmissionBase):
    kind: Literal["letter"]
    letter_type: str = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1)
    date: Date


# The literal kind field makes exactly one member match
DocumentSubmission = Union[MedicalExcuseSubmission, LeaveSubmission, LetterSubmission]


class ApprovalLogEntryResponse(BaseModel):
    actor_role: Role
    actor_id: UUID
    decision: Decision
    comment: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(BaseModel):
    id: UUID
    kind: DocumentKind
    submitter_id: UUID
    submitter_name: str
    submitter_role: Role
    status: str
    current_stage_ordinal: int
    payload: Dict[str, Any]
    attachment: Optional[str]
    rejection_reason: Optional[str]
    approval_log: List[ApprovalLogEntryResponse]
    submitted_at: datetime
    last_updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DecisionRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)
