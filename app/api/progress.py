"""Student progress endpoints.

  GET  /v1/courses/{course_id}/access            evaluated lock state (cached)
  POST /v1/lessons/{lesson_id}/watch             mark a lesson watched
  GET  /v1/assignments/{assignment_id}/submissions
  POST /v1/assignments/{assignment_id}/submissions
  POST /v1/submissions/{submission_id}/review    mentor/admin decision

Lock reasons are part of the 200 response body; only rejected writes
(watching a locked lesson, submitting a blocked assignment) are errors.
"""

from __future__ import annotations

import datetime
import logging
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from app.api.dependencies import (
    get_store,
    require_any_role,
    require_student,
    require_user,
)
from app.api.errors import DOMAIN_ERRORS, to_http
from app.models.principal import Principal
from app.repos.store import Store
from app.services import progress_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["progress"])


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class LessonAccessOut(_FromDomain):
    lesson_id: UUID
    module_id: UUID
    title: str
    sequence_order: int | None
    unlocked: bool
    watched: bool
    lock_reason: str | None
    drip_unlock_date: datetime.datetime | None


class ModuleAccessOut(_FromDomain):
    module_id: UUID
    title: str
    order: int | None
    lesson_ids: list[UUID]
    is_locked: bool
    total_lessons: int
    watched_lessons: int


class AssignmentAccessOut(_FromDomain):
    assignment_id: UUID
    name: str
    lesson_id: UUID | None
    state: str
    latest_version: int
    can_submit: bool
    read_only: bool
    blocked_reason: str | None


class PolicyOut(_FromDomain):
    sequential: bool
    drip: bool


class CourseAccessOut(_FromDomain):
    course_id: UUID
    student_id: UUID
    policy: PolicyOut
    progress_percent: int
    is_complete: bool
    next_drip_date: datetime.datetime | None
    modules: list[ModuleAccessOut]
    lessons: list[LessonAccessOut]
    assignments: list[AssignmentAccessOut]


class LessonViewOut(_FromDomain):
    user_id: UUID
    lesson_id: UUID
    watched: bool
    watched_at: datetime.datetime | None


class SubmissionIn(BaseModel):
    content: str = Field(min_length=1, max_length=20_000)


class SubmissionOut(_FromDomain):
    id: UUID
    assignment_id: UUID
    student_id: UUID
    version: int
    status: str
    content: str
    created_at: datetime.datetime | None
    reviewed_at: datetime.datetime | None
    reviewed_by: UUID | None
    notes: str | None


class ReviewIn(BaseModel):
    decision: Literal["approved", "declined"]
    notes: str | None = Field(default=None, max_length=5_000)


def _target_student(principal: Principal, student_id: UUID | None) -> UUID:
    """Students see themselves; mentors and admins may name a student."""
    if student_id is not None and principal.is_staff():
        return student_id
    if not principal.has_role("student"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    try:
        own = principal.uuid
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subject is not a student id",
        ) from None
    if student_id is not None and student_id != own:
        logger.warning(
            "Access denied: user=%s requested student=%s", principal.user_id, student_id
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return own


@router.get("/v1/courses/{course_id}/access", response_model=CourseAccessOut)
async def get_course_access(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
    student_id: Annotated[UUID | None, Query()] = None,
) -> CourseAccessOut:
    target = _target_student(principal, student_id)
    try:
        access = await progress_service.get_course_access(store, target, course_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return CourseAccessOut.model_validate(access)


@router.post("/v1/lessons/{lesson_id}/watch", response_model=LessonViewOut)
async def watch_lesson(
    lesson_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> LessonViewOut:
    try:
        view = await progress_service.mark_watched(store, student_id, lesson_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return LessonViewOut.model_validate(view)


@router.get(
    "/v1/assignments/{assignment_id}/submissions",
    response_model=list[SubmissionOut],
)
async def list_submissions(
    assignment_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> list[SubmissionOut]:
    try:
        history = await progress_service.list_submissions(
            store, student_id, assignment_id
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return [SubmissionOut.model_validate(s) for s in history]


@router.post(
    "/v1/assignments/{assignment_id}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_assignment(
    assignment_id: UUID,
    body: SubmissionIn,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> SubmissionOut:
    try:
        submission = await progress_service.submit_assignment(
            store, student_id, assignment_id, body.content
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return SubmissionOut.model_validate(submission)


@router.post("/v1/submissions/{submission_id}/review", response_model=SubmissionOut)
async def review_submission(
    submission_id: UUID,
    body: ReviewIn,
    principal: Annotated[Principal, Depends(require_any_role({"mentor", "admin"}))],
    store: Annotated[Store, Depends(get_store)],
) -> SubmissionOut:
    try:
        reviewer = principal.uuid
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subject is not a reviewer id",
        ) from None
    try:
        reviewed = await progress_service.review_submission(
            store, submission_id, body.decision, reviewer, body.notes
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return SubmissionOut.model_validate(reviewed)
