"""Unlock rule evaluator.

A pure function from a student's progress snapshot to an access decision
for every lesson and assignment of one course.  No I/O, no clock: the
caller fetches the snapshot and passes `now`.

Per lesson, walking modules by `order` and lessons by `sequence_order`:

  1. LMS status not active           -> locked, fees_not_cleared
  2. sequential unlock enabled and the nearest unsatisfied predecessor
     (anywhere earlier in the course) is
        not watched                  -> previous_lesson_not_watched
        missing an assignment        -> previous_assignment_not_submitted
        with an unapproved latest    -> previous_assignment_not_approved
  3. drip enabled, drip date in the future and not yet watched
                                     -> drip_locked (carries the date)
  4. otherwise unlocked

A predecessor is satisfied when it is watched and every assignment it
triggers has an approved latest submission.

Malformed content (missing/duplicate sequence_order, module without an
order) is locked as content_unavailable and left out of the sequence.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from app.models.course import Assignment, Course, CourseModule, Lesson
from app.models.enrollment import Batch, Enrollment
from app.models.progress import LessonView, Submission
from app.services.access_policy import AccessPolicy, resolve_access_policy
from app.services.drip_schedule import resolve_drip_date
from app.services.submissions import (
    SubmissionState,
    can_resubmit,
    latest_by_assignment,
    submission_state,
)

LockReason = Literal[
    "fees_not_cleared",
    "previous_lesson_not_watched",
    "previous_assignment_not_submitted",
    "previous_assignment_not_approved",
    "drip_locked",
    "content_unavailable",
]

LMS_ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class CourseSnapshot:
    """Everything the evaluator needs about one student in one course."""

    course: Course
    student_id: UUID
    lms_status: str
    modules: tuple[CourseModule, ...] = ()
    lessons: tuple[Lesson, ...] = ()
    assignments: tuple[Assignment, ...] = ()
    lesson_views: tuple[LessonView, ...] = ()
    submissions: tuple[Submission, ...] = ()
    enrollment: Enrollment | None = None
    batch: Batch | None = None


@dataclass(frozen=True, slots=True)
class LessonAccess:
    lesson_id: UUID
    module_id: UUID
    title: str
    sequence_order: int | None
    unlocked: bool
    watched: bool
    lock_reason: LockReason | None = None
    drip_unlock_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class AssignmentAccess:
    assignment_id: UUID
    name: str
    lesson_id: UUID | None
    state: SubmissionState
    latest_version: int
    can_submit: bool
    blocked_reason: str | None = None

    @property
    def read_only(self) -> bool:
        return self.state == "approved"


@dataclass(frozen=True, slots=True)
class ModuleAccess:
    module_id: UUID
    title: str
    order: int | None
    lesson_ids: tuple[UUID, ...]
    is_locked: bool
    total_lessons: int
    watched_lessons: int


@dataclass(frozen=True, slots=True)
class CourseAccess:
    course_id: UUID
    student_id: UUID
    policy: AccessPolicy
    lessons: tuple[LessonAccess, ...] = ()
    modules: tuple[ModuleAccess, ...] = ()
    assignments: tuple[AssignmentAccess, ...] = ()

    def lesson(self, lesson_id: UUID) -> LessonAccess | None:
        return next((la for la in self.lessons if la.lesson_id == lesson_id), None)

    def assignment(self, assignment_id: UUID) -> AssignmentAccess | None:
        return next(
            (a for a in self.assignments if a.assignment_id == assignment_id), None
        )

    @property
    def watched_lessons(self) -> int:
        return sum(1 for la in self.lessons if la.watched)

    @property
    def progress_percent(self) -> int:
        if not self.lessons:
            return 0
        return int(self.watched_lessons * 100 / len(self.lessons) + 0.5)

    @property
    def is_complete(self) -> bool:
        """Every lesson unlocked and watched, every assignment approved."""
        return all(la.unlocked and la.watched for la in self.lessons) and all(
            a.state == "approved" for a in self.assignments
        )

    @property
    def next_drip_date(self) -> datetime | None:
        dates = [
            la.drip_unlock_date
            for la in self.lessons
            if la.lock_reason == "drip_locked" and la.drip_unlock_date is not None
        ]
        return min(dates) if dates else None


def _ordered_lessons(
    snapshot: CourseSnapshot,
) -> tuple[list[Lesson], list[Lesson]]:
    """Split the course's lessons into (unlock sequence, malformed)."""
    modules = [m for m in snapshot.modules if m.course_id == snapshot.course.id]
    by_module: dict[UUID, list[Lesson]] = defaultdict(list)
    for lesson in snapshot.lessons:
        by_module[lesson.module_id].append(lesson)

    sequence: list[Lesson] = []
    malformed: list[Lesson] = []

    for module in modules:
        if module.order is None:
            malformed.extend(by_module.get(module.id, ()))

    ordered_modules = sorted(
        (m for m in modules if m.order is not None), key=lambda m: m.order or 0
    )
    for module in ordered_modules:
        lessons = by_module.get(module.id, [])
        counts: dict[int, int] = defaultdict(int)
        for lesson in lessons:
            if lesson.sequence_order is not None:
                counts[lesson.sequence_order] += 1
        valid = []
        for lesson in lessons:
            if lesson.sequence_order is None or counts[lesson.sequence_order] > 1:
                malformed.append(lesson)
            else:
                valid.append(lesson)
        valid.sort(key=lambda lesson: lesson.sequence_order or 0)
        sequence.extend(valid)

    return sequence, malformed


def _unsatisfied_reason(
    watched: bool,
    assignments: list[Assignment],
    latest: dict[UUID, Submission],
) -> LockReason | None:
    """Why this lesson would block its successors, or None if it doesn't."""
    if not watched:
        return "previous_lesson_not_watched"
    states = [submission_state(latest.get(a.id)) for a in assignments]
    if any(s == "not_submitted" for s in states):
        return "previous_assignment_not_submitted"
    if any(s != "approved" for s in states):
        return "previous_assignment_not_approved"
    return None


def _assignment_access(
    assignment: Assignment,
    lesson_access: LessonAccess | None,
    latest: Submission | None,
    fees_ok: bool,
) -> AssignmentAccess:
    state = submission_state(latest)
    if not fees_ok:
        blocked: str | None = "fees_not_cleared"
    elif assignment.recording_id is not None and lesson_access is None:
        blocked = "content_unavailable"
    elif lesson_access is not None and not lesson_access.unlocked:
        blocked = "lesson_locked"
    elif lesson_access is not None and not lesson_access.watched:
        blocked = "lesson_not_watched"
    elif state == "pending":
        blocked = "review_pending"
    elif state == "approved":
        blocked = "already_approved"
    else:
        blocked = None

    return AssignmentAccess(
        assignment_id=assignment.id,
        name=assignment.name,
        lesson_id=assignment.recording_id,
        state=state,
        latest_version=0 if latest is None else latest.version,
        can_submit=blocked is None and can_resubmit(latest),
        blocked_reason=blocked,
    )


def evaluate_course_access(snapshot: CourseSnapshot, now: datetime) -> CourseAccess:
    policy = resolve_access_policy(snapshot.course, snapshot.enrollment)
    fees_ok = snapshot.lms_status == LMS_ACTIVE

    watched_ids = {
        v.lesson_id
        for v in snapshot.lesson_views
        if v.user_id == snapshot.student_id and v.watched
    }
    latest = latest_by_assignment(snapshot.submissions, snapshot.student_id)
    assignments_by_lesson: dict[UUID, list[Assignment]] = defaultdict(list)
    for a in snapshot.assignments:
        if a.recording_id is not None:
            assignments_by_lesson[a.recording_id].append(a)

    sequence, malformed = _ordered_lessons(snapshot)

    results: list[LessonAccess] = []
    blocker: LockReason | None = None
    for lesson in sequence:
        watched = lesson.id in watched_ids
        reason: LockReason | None = None
        drip_date = None

        if not fees_ok:
            reason = "fees_not_cleared"
        elif policy.sequential and blocker is not None:
            reason = blocker
        elif policy.drip and not watched:
            drip_date = resolve_drip_date(lesson, snapshot.enrollment, snapshot.batch)
            if drip_date is not None and drip_date > now:
                reason = "drip_locked"
            else:
                drip_date = None

        results.append(
            LessonAccess(
                lesson_id=lesson.id,
                module_id=lesson.module_id,
                title=lesson.title,
                sequence_order=lesson.sequence_order,
                unlocked=reason is None,
                watched=watched,
                lock_reason=reason,
                drip_unlock_date=drip_date,
            )
        )

        own = _unsatisfied_reason(
            watched, assignments_by_lesson.get(lesson.id, []), latest
        )
        if own is not None:
            blocker = own

    for lesson in malformed:
        results.append(
            LessonAccess(
                lesson_id=lesson.id,
                module_id=lesson.module_id,
                title=lesson.title,
                sequence_order=lesson.sequence_order,
                unlocked=False,
                watched=lesson.id in watched_ids,
                lock_reason="fees_not_cleared" if not fees_ok else "content_unavailable",
            )
        )

    by_lesson = {la.lesson_id: la for la in results}

    modules: list[ModuleAccess] = []
    course_modules = [m for m in snapshot.modules if m.course_id == snapshot.course.id]
    course_modules.sort(key=lambda m: (m.order is None, m.order or 0))
    for module in course_modules:
        members = [la for la in results if la.module_id == module.id]
        modules.append(
            ModuleAccess(
                module_id=module.id,
                title=module.title,
                order=module.order,
                lesson_ids=tuple(la.lesson_id for la in members),
                is_locked=bool(members) and all(not la.unlocked for la in members),
                total_lessons=len(members),
                watched_lessons=sum(1 for la in members if la.watched),
            )
        )

    assignments = tuple(
        _assignment_access(
            a,
            by_lesson.get(a.recording_id) if a.recording_id is not None else None,
            latest.get(a.id),
            fees_ok,
        )
        for a in snapshot.assignments
    )

    return CourseAccess(
        course_id=snapshot.course.id,
        student_id=snapshot.student_id,
        policy=policy,
        lessons=tuple(results),
        modules=tuple(modules),
        assignments=assignments,
    )
