"""Admin endpoints for enrollments and student billing status.

  POST /v1/enrollments                       enroll a student in a course
  PATCH /v1/enrollments/{enrollment_id}/access   per-student policy overrides
  PUT  /v1/students/{student_id}/lms-status  billing gate (active|inactive|suspended)
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict

from app.api.dependencies import get_store, require_role
from app.api.errors import DOMAIN_ERRORS, to_http
from app.models.enrollment import LmsStatus
from app.models.principal import Principal
from app.repos.store import Store
from app.services import progress_service

router = APIRouter(tags=["enrollments"])


class EnrollmentIn(BaseModel):
    student_id: UUID
    course_id: UUID
    batch_id: UUID | None = None


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    pathway_id: UUID | None
    batch_id: UUID | None
    status: str
    enrolled_at: datetime.datetime
    drip_override: bool
    drip_enabled: bool
    sequential_override: bool
    sequential_enabled: bool


class AccessOverridesIn(BaseModel):
    drip_override: bool | None = None
    drip_enabled: bool | None = None
    sequential_override: bool | None = None
    sequential_enabled: bool | None = None


class LmsStatusIn(BaseModel):
    lms_status: LmsStatus


class StudentAccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: UUID
    lms_status: str


@router.post(
    "/v1/enrollments",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_enrollment(
    body: EnrollmentIn,
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    try:
        enrollment = await progress_service.enroll_student(
            store, body.student_id, body.course_id, batch_id=body.batch_id
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return EnrollmentOut.model_validate(enrollment)


@router.patch("/v1/enrollments/{enrollment_id}/access", response_model=EnrollmentOut)
async def update_access(
    enrollment_id: UUID,
    body: AccessOverridesIn,
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    try:
        enrollment = await progress_service.update_access_overrides(
            store, enrollment_id, **body.model_dump()
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return EnrollmentOut.model_validate(enrollment)


@router.put("/v1/students/{student_id}/lms-status", response_model=StudentAccountOut)
async def set_lms_status(
    student_id: UUID,
    body: LmsStatusIn,
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[Store, Depends(get_store)],
) -> StudentAccountOut:
    account = await progress_service.set_lms_status(store, student_id, body.lms_status)
    return StudentAccountOut.model_validate(account)
