"""Domain error -> HTTP translation shared by the routers.

Routers catch the service exceptions they expect and re-raise
`to_http(exc)`.  Unexpected exceptions are not caught and become 500s.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.services.errors import (
    ContentConflictError,
    DuplicateEnrollmentError,
    InvalidChoiceError,
    LessonLockedError,
    NotEnrolledError,
    NotFoundError,
    NotInPathwayError,
    PathwayTransitionError,
    SubmissionNotAllowedError,
    SubmissionNotReviewableError,
)

DOMAIN_ERRORS = (
    ContentConflictError,
    NotFoundError,
    NotEnrolledError,
    LessonLockedError,
    SubmissionNotAllowedError,
    SubmissionNotReviewableError,
    DuplicateEnrollmentError,
    PathwayTransitionError,
)


def to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, NotEnrolledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled")
    if isinstance(exc, LessonLockedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "lesson_locked", "reason": exc.reason},
        )
    if isinstance(exc, SubmissionNotAllowedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "submission_not_allowed", "reason": exc.reason},
        )
    if isinstance(exc, SubmissionNotReviewableError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "submission_not_reviewable", "message": str(exc)},
        )
    if isinstance(exc, ContentConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "content_conflict", "message": str(exc)},
        )
    if isinstance(exc, DuplicateEnrollmentError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "already_enrolled", "message": str(exc)},
        )
    if isinstance(exc, InvalidChoiceError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": exc.code, "message": str(exc)},
        )
    if isinstance(exc, NotInPathwayError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": exc.code, "message": str(exc)},
        )
    if isinstance(exc, PathwayTransitionError):
        # course_incomplete, choice_pending, pathway_already_complete,
        # course_active_in_other_pathway,
        # concurrent_advance_conflict
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": exc.code, "message": str(exc)},
        )
    raise exc
