"""Pathway orchestration.

Loads what the state machine needs, asks app/services/pathway_machine.py
for the transition, and persists it through the enrollment repo's
check-and-set.  A lost race surfaces as ConcurrentAdvanceConflictError;
the caller should refresh state rather than retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from app.core.metrics import PATHWAY_TRANSITIONS
from app.models.enrollment import Enrollment
from app.models.pathway import ChoiceSelection, Pathway, PathwayState
from app.repos.store import Store
from app.services import pathway_machine, progress_service
from app.services.errors import (
    ConcurrentAdvanceConflictError,
    CourseInOtherPathwayError,
    DuplicateEnrollmentError,
    InvalidChoiceError,
    NotFoundError,
    PathwayTransitionError,
)
from app.services.pathway_machine import CourseStatus, DisplayGroup, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PathwayView:
    state: PathwayState
    groups: list[DisplayGroup]
    courses: list[CourseStatus]
    titles: dict[UUID, str]


async def _load(
    store: Store, student_id: UUID, pathway_id: UUID
) -> tuple[Pathway, list[Enrollment], dict[int, UUID]]:
    pathway = await store.content.get_pathway(pathway_id)
    if pathway is None:
        raise NotFoundError("pathway", pathway_id)
    enrollments = await store.enrollments.list_by_student(student_id, pathway_id)
    selections = {
        c.choice_group: c.course_id
        for c in await store.enrollments.list_choices(student_id, pathway_id)
    }
    return pathway, enrollments, selections


async def get_state(store: Store, student_id: UUID, pathway_id: UUID) -> PathwayState:
    pathway, enrollments, selections = await _load(store, student_id, pathway_id)
    return pathway_machine.derive_state(pathway, enrollments, selections)


async def get_view(store: Store, student_id: UUID, pathway_id: UUID) -> PathwayView:
    pathway, enrollments, selections = await _load(store, student_id, pathway_id)
    stages = pathway_machine.build_stages(pathway)
    state = pathway_machine.derive_state(pathway, enrollments, selections)

    titles: dict[UUID, str] = {}
    for step in pathway.steps:
        course = await store.content.get_course(step.course_id)
        titles[step.course_id] = course.title if course is not None else str(step.course_id)

    return PathwayView(
        state=state,
        groups=pathway_machine.display_groups(stages, selections),
        courses=pathway_machine.course_map(stages, state, enrollments, selections),
        titles=titles,
    )


async def _apply(
    store: Store,
    student_id: UUID,
    pathway_id: UUID,
    transition: Transition,
    now: datetime,
) -> None:
    open_enrollment = None
    if transition.open_course_id is not None:
        open_enrollment = Enrollment.new(
            student_id=student_id,
            course_id=transition.open_course_id,
            enrolled_at=now,
            pathway_id=pathway_id,
        )
    selection = None
    if transition.choice is not None:
        group, course_id = transition.choice
        selection = ChoiceSelection(
            student_id=student_id,
            pathway_id=pathway_id,
            choice_group=group,
            course_id=course_id,
            selected_at=now,
        )
    await store.enrollments.apply_transition(
        student_id,
        pathway_id,
        close_course_id=transition.close_course_id,
        open_enrollment=open_enrollment,
        selection=selection,
    )
    await progress_service.invalidate_student(student_id)


def _log_rejected(
    name: str, student_id: UUID, pathway_id: UUID, exc: PathwayTransitionError
) -> None:
    PATHWAY_TRANSITIONS.labels(transition=name, outcome=exc.code).inc()
    extra = {"student_id": str(student_id), "pathway_id": str(pathway_id)}
    if isinstance(exc, InvalidChoiceError):
        # Clients only offer alternatives they were given; this is a caller bug.
        logger.error("Pathway %s rejected: %s", name, exc, extra=extra)
    else:
        logger.warning("Pathway %s rejected: %s", name, exc, extra=extra)


async def enroll_in_pathway(
    store: Store,
    student_id: UUID,
    pathway_id: UUID,
    course_id: UUID | None = None,
    now: datetime | None = None,
) -> PathwayState:
    now = now or datetime.now(UTC)
    pathway, enrollments, selections = await _load(store, student_id, pathway_id)
    state = pathway_machine.derive_state(pathway, enrollments, selections)
    if state.status != "not_enrolled":
        PATHWAY_TRANSITIONS.labels(transition="enroll", outcome="duplicate").inc()
        raise DuplicateEnrollmentError(f"already enrolled in pathway {pathway_id}")

    stages = pathway_machine.build_stages(pathway)
    try:
        transition = pathway_machine.plan_enroll(pathway_id, stages, course_id)
    except PathwayTransitionError as e:
        _log_rejected("enroll", student_id, pathway_id, e)
        raise

    try:
        await _apply(store, student_id, pathway_id, transition, now)
    except CourseInOtherPathwayError as e:
        _log_rejected("enroll", student_id, pathway_id, e)
        raise
    except DuplicateEnrollmentError:
        PATHWAY_TRANSITIONS.labels(transition="enroll", outcome="duplicate").inc()
        raise

    PATHWAY_TRANSITIONS.labels(transition="enroll", outcome="ok").inc()
    logger.info(
        "Enrolled in pathway at step=%d course=%s",
        transition.state.current_step_number,
        transition.open_course_id,
        extra={"student_id": str(student_id), "pathway_id": str(pathway_id)},
    )
    return transition.state


async def advance(
    store: Store,
    student_id: UUID,
    pathway_id: UUID,
    now: datetime | None = None,
) -> PathwayState:
    now = now or datetime.now(UTC)
    pathway, enrollments, selections = await _load(store, student_id, pathway_id)
    stages = pathway_machine.build_stages(pathway)
    state = pathway_machine.derive_state(pathway, enrollments, selections)

    complete = False
    if state.status == "in_progress" and state.current_course_id is not None:
        access = await progress_service.evaluate(
            store, student_id, state.current_course_id, now
        )
        complete = access.is_complete

    try:
        transition = pathway_machine.plan_advance(state, stages, selections, complete)
    except PathwayTransitionError as e:
        _log_rejected("advance", student_id, pathway_id, e)
        raise

    try:
        await _apply(store, student_id, pathway_id, transition, now)
    except CourseInOtherPathwayError as e:
        _log_rejected("advance", student_id, pathway_id, e)
        raise
    except DuplicateEnrollmentError as e:
        conflict = ConcurrentAdvanceConflictError(str(e))
        _log_rejected("advance", student_id, pathway_id, conflict)
        raise conflict from e

    PATHWAY_TRANSITIONS.labels(transition="advance", outcome=transition.kind).inc()
    logger.info(
        "Pathway %s: step=%d status=%s",
        transition.kind,
        transition.state.current_step_number,
        transition.state.status,
        extra={"student_id": str(student_id), "pathway_id": str(pathway_id)},
    )
    return transition.state


async def make_choice(
    store: Store,
    student_id: UUID,
    pathway_id: UUID,
    course_id: UUID,
    now: datetime | None = None,
) -> PathwayState:
    now = now or datetime.now(UTC)
    pathway, enrollments, selections = await _load(store, student_id, pathway_id)
    stages = pathway_machine.build_stages(pathway)
    state = pathway_machine.derive_state(pathway, enrollments, selections)

    try:
        transition = pathway_machine.plan_choice(state, stages, course_id)
    except PathwayTransitionError as e:
        _log_rejected("choice", student_id, pathway_id, e)
        raise

    try:
        await _apply(store, student_id, pathway_id, transition, now)
    except CourseInOtherPathwayError as e:
        _log_rejected("choice", student_id, pathway_id, e)
        raise
    except DuplicateEnrollmentError as e:
        resolved = InvalidChoiceError(f"choice group already resolved: {e}")
        _log_rejected("choice", student_id, pathway_id, resolved)
        raise resolved from e

    PATHWAY_TRANSITIONS.labels(transition="choice", outcome="ok").inc()
    logger.info(
        "Choice made group=%s course=%s",
        state.choice_group,
        course_id,
        extra={"student_id": str(student_id), "pathway_id": str(pathway_id)},
    )
    return transition.state
