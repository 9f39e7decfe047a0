"""Pathway endpoints for students.

  POST /v1/pathways/{pathway_id}/enroll    enter the pathway (InProgress at step 1)
  GET  /v1/pathways/{pathway_id}/state     derived PathwayState
  GET  /v1/pathways/{pathway_id}/courses   display groups and per-course flags
  POST /v1/pathways/{pathway_id}/advance   move past a completed course
  POST /v1/pathways/{pathway_id}/choice    resolve a pending choice group

A 409 with detail.code == "concurrent_advance_conflict" means another
request already applied the transition; clients should re-read /state.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from app.api.dependencies import get_store, require_student
from app.api.errors import DOMAIN_ERRORS, to_http
from app.models.pathway import PathwayState
from app.repos.store import Store
from app.services import pathway_service

router = APIRouter(prefix="/v1/pathways", tags=["pathways"])


class PathwayStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pathway_id: UUID
    status: str
    current_step_number: int
    total_steps: int
    current_course_id: UUID | None
    has_pending_choice: bool
    choice_group: int | None
    selected_choice_course_id: UUID | None


class EnrollIn(BaseModel):
    course_id: UUID | None = None  # required when step 1 is a choice


class ChoiceIn(BaseModel):
    course_id: UUID


class DisplayGroupOut(BaseModel):
    step_number: int
    label: str
    course_ids: list[UUID]
    is_choice_point: bool
    choice_group: int | None
    selected_course_id: UUID | None


class CourseStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    title: str
    step_number: int
    is_available: bool
    is_completed: bool
    is_current: bool
    requires_choice: bool
    is_choice_point: bool
    is_selected_choice: bool
    choice_group: int | None
    choice_options: list[UUID]


class PathwayCoursesOut(BaseModel):
    state: PathwayStateOut
    groups: list[DisplayGroupOut]
    courses: list[CourseStatusOut]


def _state_out(state: PathwayState) -> PathwayStateOut:
    return PathwayStateOut.model_validate(state)


@router.post("/{pathway_id}/enroll", response_model=PathwayStateOut, status_code=201)
async def enroll(
    pathway_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
    body: EnrollIn | None = None,
) -> PathwayStateOut:
    try:
        state = await pathway_service.enroll_in_pathway(
            store, student_id, pathway_id, body.course_id if body else None
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return _state_out(state)


@router.get("/{pathway_id}/state", response_model=PathwayStateOut)
async def get_state(
    pathway_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> PathwayStateOut:
    try:
        state = await pathway_service.get_state(store, student_id, pathway_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return _state_out(state)


@router.get("/{pathway_id}/courses", response_model=PathwayCoursesOut)
async def get_courses(
    pathway_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> PathwayCoursesOut:
    try:
        view = await pathway_service.get_view(store, student_id, pathway_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return PathwayCoursesOut(
        state=_state_out(view.state),
        groups=[
            DisplayGroupOut(
                step_number=g.step_number,
                label=g.label(view.titles),
                course_ids=list(g.course_ids),
                is_choice_point=g.is_choice_point,
                choice_group=g.choice_group,
                selected_course_id=g.selected_course_id,
            )
            for g in view.groups
        ],
        courses=[
            CourseStatusOut(
                course_id=c.course_id,
                title=view.titles.get(c.course_id, str(c.course_id)),
                step_number=c.step_number,
                is_available=c.is_available,
                is_completed=c.is_completed,
                is_current=c.is_current,
                requires_choice=c.requires_choice,
                is_choice_point=c.is_choice_point,
                is_selected_choice=c.is_selected_choice,
                choice_group=c.choice_group,
                choice_options=list(c.choice_options),
            )
            for c in view.courses
        ],
    )


@router.post("/{pathway_id}/advance", response_model=PathwayStateOut)
async def advance(
    pathway_id: UUID,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> PathwayStateOut:
    try:
        state = await pathway_service.advance(store, student_id, pathway_id)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return _state_out(state)


@router.post("/{pathway_id}/choice", response_model=PathwayStateOut)
async def make_choice(
    pathway_id: UUID,
    body: ChoiceIn,
    student_id: Annotated[UUID, Depends(require_student)],
    store: Annotated[Store, Depends(get_store)],
) -> PathwayStateOut:
    try:
        state = await pathway_service.make_choice(
            store, student_id, pathway_id, body.course_id
        )
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return _state_out(state)
