"""Admin authoring of the course graph, pathways and batches.

Any content write can change what some student may open, so each one
drops every cached course access.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from uuid import UUID

from app.models.course import Assignment, Course, CourseModule, Lesson, SubmissionType
from app.models.enrollment import Batch
from app.models.pathway import Pathway, PathwayStep
from app.repos.store import Store
from app.services import progress_service
from app.services.errors import ContentConflictError, NotFoundError

logger = logging.getLogger(__name__)


async def create_course(
    store: Store, *, title: str, sequential_unlock: bool = True, drip_enabled: bool = False
) -> Course:
    course = Course.new(
        title=title, sequential_unlock=sequential_unlock, drip_enabled=drip_enabled
    )
    await store.content.add_course(course)
    logger.info("Course created id=%s", course.id, extra={"course_id": str(course.id)})
    return course


async def add_module(
    store: Store, *, course_id: UUID, title: str, order: int
) -> CourseModule:
    module = CourseModule.new(course_id=course_id, title=title, order=order)
    try:
        await store.content.add_module(module)
    except KeyError:
        raise NotFoundError("course", course_id) from None
    await progress_service.invalidate_all()
    return module


async def add_lesson(
    store: Store,
    *,
    module_id: UUID,
    title: str,
    sequence_order: int,
    duration_minutes: int = 0,
    drip_unlock_date: datetime | None = None,
    drip_days: int | None = None,
) -> Lesson:
    lesson = Lesson.new(
        module_id=module_id,
        title=title,
        sequence_order=sequence_order,
        duration_minutes=duration_minutes,
        drip_unlock_date=drip_unlock_date,
        drip_days=drip_days,
    )
    try:
        await store.content.add_lesson(lesson)
    except KeyError:
        raise NotFoundError("module", module_id) from None
    except ValueError as e:
        raise ContentConflictError(str(e)) from None
    await progress_service.invalidate_all()
    return lesson


async def add_assignment(
    store: Store,
    *,
    name: str,
    recording_id: UUID | None = None,
    course_id: UUID | None = None,
    submission_type: SubmissionType = "text",
) -> Assignment:
    if recording_id is None and course_id is None:
        raise ContentConflictError("assignment needs a lesson or a course")
    if course_id is not None and await store.content.get_course(course_id) is None:
        raise NotFoundError("course", course_id)
    assignment = Assignment.new(
        name=name,
        recording_id=recording_id,
        submission_type=submission_type,
        course_id=course_id,
    )
    try:
        await store.content.add_assignment(assignment)
    except KeyError:
        raise NotFoundError("lesson", recording_id or "") from None
    await progress_service.invalidate_all()
    return assignment


async def create_pathway(
    store: Store, *, title: str, steps: list[PathwayStep]
) -> Pathway:
    if not steps:
        raise ContentConflictError("a pathway needs at least one step")
    course_ids = [s.course_id for s in steps]
    if len(set(course_ids)) != len(course_ids):
        raise ContentConflictError("a course may appear only once in a pathway")
    pathway = Pathway.new(title=title, steps=tuple(steps))
    try:
        await store.content.add_pathway(pathway)
    except KeyError:
        raise NotFoundError("course", "in pathway steps") from None
    logger.info(
        "Pathway created steps=%d", len(steps), extra={"pathway_id": str(pathway.id)}
    )
    return pathway


async def create_batch(
    store: Store, *, name: str, start_date: date, timeline: dict[UUID, int]
) -> Batch:
    for lesson_id in timeline:
        if await store.content.get_lesson(lesson_id) is None:
            raise NotFoundError("lesson", lesson_id)
    batch = Batch.new(name=name, start_date=start_date, timeline=timeline)
    await store.content.add_batch(batch)
    return batch
