"""Student progress: access evaluation and the writes that change it.

Reads go through the access cache (see app/services/cache.py).  Writes
re-evaluate from the repositories, never from the cache, and invalidate
every cached course access of the student they touch.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID

from pydantic import TypeAdapter

from app.core.config import SETTINGS
from app.core.metrics import CACHE_OPERATIONS, LESSON_EVALUATIONS, PROGRESS_MUTATIONS
from app.models.enrollment import Enrollment, LmsStatus, StudentAccount
from app.models.progress import LessonView, Submission
from app.repos.store import Store
from app.services.cache import access_key, cache_service, student_access_pattern
from app.services.errors import (
    LessonLockedError,
    NotEnrolledError,
    NotFoundError,
    SubmissionNotAllowedError,
    SubmissionNotReviewableError,
)
from app.services.submissions import latest_submission, next_version
from app.services.unlock_evaluator import (
    CourseAccess,
    CourseSnapshot,
    evaluate_course_access,
)

logger = logging.getLogger(__name__)

ReviewDecision = Literal["approved", "declined"]

_ACCESS_ADAPTER = TypeAdapter(CourseAccess)


def _now() -> datetime:
    return datetime.now(UTC)


async def invalidate_student(student_id: UUID) -> None:
    await cache_service.delete_pattern(student_access_pattern(student_id))


async def course_id_for_lesson(store: Store, lesson_id: UUID) -> UUID:
    lesson = await store.content.get_lesson(lesson_id)
    if lesson is None:
        raise NotFoundError("lesson", lesson_id)
    module = await store.content.get_module(lesson.module_id)
    if module is None:
        raise NotFoundError("module", lesson.module_id)
    return module.course_id


async def course_id_for_assignment(store: Store, assignment_id: UUID) -> UUID:
    assignment = await store.content.get_assignment(assignment_id)
    if assignment is None:
        raise NotFoundError("assignment", assignment_id)
    if assignment.recording_id is not None:
        return await course_id_for_lesson(store, assignment.recording_id)
    if assignment.course_id is None:
        raise NotFoundError("course", f"for assignment {assignment_id}")
    return assignment.course_id


async def load_snapshot(store: Store, student_id: UUID, course_id: UUID) -> CourseSnapshot:
    course = await store.content.get_course(course_id)
    if course is None:
        raise NotFoundError("course", course_id)

    enrollment = await store.enrollments.find_for_course(student_id, course_id)
    if enrollment is None or enrollment.status == "withdrawn":
        raise NotEnrolledError(f"student {student_id} is not enrolled in {course_id}")

    account = await store.students.get(student_id)
    batch = (
        await store.content.get_batch(enrollment.batch_id)
        if enrollment.batch_id is not None
        else None
    )
    return CourseSnapshot(
        course=course,
        student_id=student_id,
        lms_status=account.lms_status if account is not None else "active",
        modules=tuple(await store.content.list_modules(course_id)),
        lessons=tuple(await store.content.list_lessons(course_id)),
        assignments=tuple(await store.content.list_assignments(course_id)),
        lesson_views=tuple(await store.progress.list_lesson_views(student_id)),
        submissions=tuple(await store.progress.list_submissions(student_id)),
        enrollment=enrollment,
        batch=batch,
    )


async def evaluate(
    store: Store, student_id: UUID, course_id: UUID, now: datetime | None = None
) -> CourseAccess:
    """Uncached evaluation against the current repository state."""
    snapshot = await load_snapshot(store, student_id, course_id)
    access = evaluate_course_access(snapshot, now or _now())
    for la in access.lessons:
        LESSON_EVALUATIONS.labels(reason=la.lock_reason or "unlocked").inc()
    return access


def _ttl_for(access: CourseAccess, now: datetime) -> int:
    ttl = SETTINGS.access_cache_ttl_seconds
    next_drip = access.next_drip_date
    if next_drip is not None:
        ttl = min(ttl, math.ceil((next_drip - now).total_seconds()))
    return max(ttl, 1)


async def get_course_access(
    store: Store, student_id: UUID, course_id: UUID, now: datetime | None = None
) -> CourseAccess:
    now = now or _now()
    key = access_key(student_id, course_id)
    cached = await cache_service.get(key)
    if cached is not None:
        access = _ACCESS_ADAPTER.validate_json(cached)
        # Past its next drip date an entry is stale whatever its TTL says.
        if access.next_drip_date is None or access.next_drip_date > now:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return access

    CACHE_OPERATIONS.labels(operation="miss").inc()
    access = await evaluate(store, student_id, course_id, now)
    await cache_service.set(
        key, _ACCESS_ADAPTER.dump_json(access).decode(), _ttl_for(access, now)
    )
    return access


async def mark_watched(
    store: Store, student_id: UUID, lesson_id: UUID, now: datetime | None = None
) -> LessonView:
    now = now or _now()
    course_id = await course_id_for_lesson(store, lesson_id)
    access = await evaluate(store, student_id, course_id, now)
    lesson = access.lesson(lesson_id)
    if lesson is not None and lesson.watched:
        return await store.progress.mark_watched(student_id, lesson_id, now)
    if lesson is None or not lesson.unlocked:
        reason = lesson.lock_reason if lesson is not None else "content_unavailable"
        PROGRESS_MUTATIONS.labels(kind="watch", outcome="rejected").inc()
        logger.warning(
            "Watch rejected lesson=%s reason=%s",
            lesson_id,
            reason,
            extra={"student_id": str(student_id), "course_id": str(course_id)},
        )
        raise LessonLockedError(lesson_id, reason or "locked")

    view = await store.progress.mark_watched(student_id, lesson_id, now)
    await invalidate_student(student_id)
    PROGRESS_MUTATIONS.labels(kind="watch", outcome="ok").inc()
    logger.info(
        "Lesson watched lesson=%s",
        lesson_id,
        extra={"student_id": str(student_id), "course_id": str(course_id)},
    )
    return view


async def list_submissions(
    store: Store, student_id: UUID, assignment_id: UUID
) -> list[Submission]:
    if await store.content.get_assignment(assignment_id) is None:
        raise NotFoundError("assignment", assignment_id)
    return await store.progress.list_submissions(student_id, assignment_id)


async def submit_assignment(
    store: Store,
    student_id: UUID,
    assignment_id: UUID,
    content: str,
    now: datetime | None = None,
) -> Submission:
    now = now or _now()
    course_id = await course_id_for_assignment(store, assignment_id)
    access = await evaluate(store, student_id, course_id, now)
    aa = access.assignment(assignment_id)
    if aa is None or not aa.can_submit:
        reason = aa.blocked_reason if aa is not None else "content_unavailable"
        PROGRESS_MUTATIONS.labels(kind="submit", outcome="rejected").inc()
        logger.warning(
            "Submission rejected assignment=%s reason=%s",
            assignment_id,
            reason,
            extra={"student_id": str(student_id), "course_id": str(course_id)},
        )
        raise SubmissionNotAllowedError(assignment_id, reason or "not_allowed")

    history = await store.progress.list_submissions(student_id, assignment_id)
    latest = latest_submission(history, assignment_id, student_id)
    submission = Submission.new(
        assignment_id=assignment_id,
        student_id=student_id,
        version=next_version(latest),
        content=content,
        created_at=now,
    )
    try:
        await store.progress.add_submission(submission)
    except ValueError:
        PROGRESS_MUTATIONS.labels(kind="submit", outcome="conflict").inc()
        raise SubmissionNotAllowedError(assignment_id, "concurrent_submission") from None

    await invalidate_student(student_id)
    PROGRESS_MUTATIONS.labels(kind="submit", outcome="ok").inc()
    logger.info(
        "Assignment submitted assignment=%s version=%d",
        assignment_id,
        submission.version,
        extra={"student_id": str(student_id), "course_id": str(course_id)},
    )
    return submission


async def review_submission(
    store: Store,
    submission_id: UUID,
    decision: ReviewDecision,
    reviewer_id: UUID,
    notes: str | None = None,
    now: datetime | None = None,
) -> Submission:
    """Approve or decline the latest pending version of a submission."""
    submission = await store.progress.get_submission(submission_id)
    if submission is None:
        raise NotFoundError("submission", submission_id)

    history = await store.progress.list_submissions(
        submission.student_id, submission.assignment_id
    )
    latest = latest_submission(
        history, submission.assignment_id, submission.student_id
    )
    if latest is None or latest.id != submission.id:
        PROGRESS_MUTATIONS.labels(kind="review", outcome="rejected").inc()
        raise SubmissionNotReviewableError(
            f"submission {submission_id} is superseded by a newer version"
        )
    if submission.status != "pending":
        PROGRESS_MUTATIONS.labels(kind="review", outcome="rejected").inc()
        raise SubmissionNotReviewableError(
            f"submission {submission_id} is already {submission.status}"
        )

    reviewed = await store.progress.set_review(
        submission_id, decision, reviewer_id, now or _now(), notes
    )
    if reviewed is None:
        raise NotFoundError("submission", submission_id)

    await invalidate_student(submission.student_id)
    PROGRESS_MUTATIONS.labels(kind="review", outcome=decision).inc()
    logger.info(
        "Submission %s %s by reviewer=%s",
        submission_id,
        decision,
        reviewer_id,
        extra={"student_id": str(submission.student_id)},
    )
    return reviewed


async def enroll_student(
    store: Store,
    student_id: UUID,
    course_id: UUID,
    *,
    batch_id: UUID | None = None,
    now: datetime | None = None,
) -> Enrollment:
    if await store.content.get_course(course_id) is None:
        raise NotFoundError("course", course_id)
    if batch_id is not None and await store.content.get_batch(batch_id) is None:
        raise NotFoundError("batch", batch_id)

    enrollment = Enrollment.new(
        student_id=student_id,
        course_id=course_id,
        enrolled_at=now or _now(),
        batch_id=batch_id,
    )
    await store.enrollments.add(enrollment)
    await invalidate_student(student_id)
    logger.info(
        "Student enrolled",
        extra={"student_id": str(student_id), "course_id": str(course_id)},
    )
    return enrollment


async def update_access_overrides(
    store: Store,
    enrollment_id: UUID,
    *,
    drip_override: bool | None = None,
    drip_enabled: bool | None = None,
    sequential_override: bool | None = None,
    sequential_enabled: bool | None = None,
) -> Enrollment:
    updated = await store.enrollments.update_access(
        enrollment_id,
        drip_override=drip_override,
        drip_enabled=drip_enabled,
        sequential_override=sequential_override,
        sequential_enabled=sequential_enabled,
    )
    if updated is None:
        raise NotFoundError("enrollment", enrollment_id)
    await invalidate_student(updated.student_id)
    logger.info(
        "Access overrides updated enrollment=%s drip=%s/%s sequential=%s/%s",
        enrollment_id,
        updated.drip_override,
        updated.drip_enabled,
        updated.sequential_override,
        updated.sequential_enabled,
        extra={"student_id": str(updated.student_id)},
    )
    return updated


async def set_lms_status(
    store: Store, student_id: UUID, lms_status: LmsStatus
) -> StudentAccount:
    account = await store.students.set_lms_status(student_id, lms_status)
    await invalidate_student(student_id)
    logger.info(
        "LMS status set to %s", lms_status, extra={"student_id": str(student_id)}
    )
    return account


async def invalidate_all() -> None:
    """Content changed: every cached evaluation may be stale."""
    await cache_service.delete_pattern("access:*")
