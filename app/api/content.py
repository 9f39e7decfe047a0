"""Content authoring (admin) and course listing.

Courses, modules, lessons and assignments form the graph the unlock
evaluator walks; pathways chain courses with optional choice groups;
batches carry a cohort drip timeline.
"""

from __future__ import annotations

import datetime
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from app.api.dependencies import get_store, require_role, require_user
from app.api.errors import DOMAIN_ERRORS, to_http
from app.models.pathway import PathwayStep
from app.models.principal import Principal
from app.repos.store import Store
from app.services import content_service

router = APIRouter(prefix="/v1/content", tags=["content"])

_Admin = Annotated[Principal, Depends(require_role("admin"))]


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    sequential_unlock: bool = True
    drip_enabled: bool = False


class CourseOut(_FromDomain):
    id: UUID
    title: str
    sequential_unlock: bool
    drip_enabled: bool


class ModuleIn(BaseModel):
    course_id: UUID
    title: str = Field(min_length=1, max_length=500)
    order: int = Field(ge=0)


class ModuleOut(_FromDomain):
    id: UUID
    course_id: UUID
    title: str
    order: int | None


class LessonIn(BaseModel):
    module_id: UUID
    title: str = Field(min_length=1, max_length=500)
    sequence_order: int = Field(ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    drip_unlock_date: datetime.datetime | None = None
    drip_days: int | None = Field(default=None, ge=0)


class LessonOut(_FromDomain):
    id: UUID
    module_id: UUID
    title: str
    sequence_order: int | None
    duration_minutes: int
    drip_unlock_date: datetime.datetime | None
    drip_days: int | None


class AssignmentIn(BaseModel):
    name: str = Field(min_length=1, max_length=500)
    recording_id: UUID | None = None
    course_id: UUID | None = None
    submission_type: Literal["text", "link", "file"] = "text"


class AssignmentOut(_FromDomain):
    id: UUID
    name: str
    recording_id: UUID | None
    course_id: UUID | None
    submission_type: str


class StepIn(BaseModel):
    step_number: int = Field(ge=1)
    course_id: UUID
    choice_group: int | None = None


class PathwayIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    steps: list[StepIn] = Field(min_length=1)


class PathwayOut(BaseModel):
    id: UUID
    title: str
    steps: list[StepIn]


class BatchIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    start_date: datetime.date
    timeline: dict[UUID, int] = Field(default_factory=dict)


class BatchOut(_FromDomain):
    id: UUID
    name: str
    start_date: datetime.date
    timeline: dict[UUID, int]


@router.get("/courses", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[CourseOut]:
    return [CourseOut.model_validate(c) for c in await store.content.list_courses()]


@router.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> CourseOut:
    course = await content_service.create_course(store, **body.model_dump())
    return CourseOut.model_validate(course)


@router.post("/modules", response_model=ModuleOut, status_code=status.HTTP_201_CREATED)
async def create_module(
    body: ModuleIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> ModuleOut:
    try:
        module = await content_service.add_module(store, **body.model_dump())
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return ModuleOut.model_validate(module)


@router.post("/lessons", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    body: LessonIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> LessonOut:
    try:
        lesson = await content_service.add_lesson(store, **body.model_dump())
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return LessonOut.model_validate(lesson)


@router.post(
    "/assignments", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED
)
async def create_assignment(
    body: AssignmentIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> AssignmentOut:
    try:
        assignment = await content_service.add_assignment(store, **body.model_dump())
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return AssignmentOut.model_validate(assignment)


@router.post("/pathways", response_model=PathwayOut, status_code=status.HTTP_201_CREATED)
async def create_pathway(
    body: PathwayIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> PathwayOut:
    steps = [
        PathwayStep(
            step_number=s.step_number, course_id=s.course_id, choice_group=s.choice_group
        )
        for s in body.steps
    ]
    try:
        pathway = await content_service.create_pathway(store, title=body.title, steps=steps)
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return PathwayOut(
        id=pathway.id,
        title=pathway.title,
        steps=[
            StepIn(
                step_number=s.step_number,
                course_id=s.course_id,
                choice_group=s.choice_group,
            )
            for s in pathway.steps
        ],
    )


@router.post("/batches", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
async def create_batch(
    body: BatchIn, _admin: _Admin, store: Annotated[Store, Depends(get_store)]
) -> BatchOut:
    try:
        batch = await content_service.create_batch(store, **body.model_dump())
    except DOMAIN_ERRORS as e:
        raise to_http(e) from None
    return BatchOut.model_validate(batch)
