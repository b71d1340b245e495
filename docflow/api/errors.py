"""Translation of workflow errors into HTTP responses."""

from fastapi import HTTPException, status

from docflow.core.workflow.errors import (
    AlreadyFinalizedError,
    ConcurrentModificationError,
    InvalidRoleError,
    MissingReasonError,
    NotFoundError,
    UnauthorizedStageError,
    WorkflowError,
)

STATUS_BY_ERROR = {
    InvalidRoleError: status.HTTP_400_BAD_REQUEST,
    MissingReasonError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedStageError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyFinalizedError: status.HTTP_409_CONFLICT,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
}


def http_error(exc: WorkflowError) -> HTTPException:
    """Build the HTTPException matching a workflow error."""
    code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(exc))
