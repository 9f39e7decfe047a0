"""Tests for the unlock rule evaluator (pure, no repositories)."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from app.models.course import Assignment, Course, CourseModule, Lesson
from app.models.enrollment import Enrollment
from app.models.progress import LessonView, Submission
from app.services.unlock_evaluator import CourseSnapshot, evaluate_course_access

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
STUDENT = uuid.uuid4()


def _course(sequential: bool = True, drip: bool = False) -> Course:
    return Course.new(title="Data 101", sequential_unlock=sequential, drip_enabled=drip)


def _module(course: Course, order: int | None = 1) -> CourseModule:
    return CourseModule(id=uuid.uuid4(), course_id=course.id, title="M", order=order)


def _lesson(module: CourseModule, seq: int | None, **kwargs) -> Lesson:
    return Lesson(
        id=uuid.uuid4(),
        module_id=module.id,
        title=f"L{seq}",
        sequence_order=seq,
        **kwargs,
    )


def _watched(*lessons: Lesson) -> tuple[LessonView, ...]:
    return tuple(
        LessonView(user_id=STUDENT, lesson_id=les.id, watched=True, watched_at=NOW)
        for les in lessons
    )


def _submission(assignment: Assignment, version: int, status: str) -> Submission:
    return Submission(
        id=uuid.uuid4(),
        assignment_id=assignment.id,
        student_id=STUDENT,
        version=version,
        status=status,  # type: ignore[arg-type]
    )


def _snapshot(course: Course, **kwargs) -> CourseSnapshot:
    kwargs.setdefault("lms_status", "active")
    return CourseSnapshot(course=course, student_id=STUDENT, **kwargs)


# ---- sequential unlock ----


def test_first_lesson_unlocked_second_waits_for_watch() -> None:
    course = _course()
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)

    access = evaluate_course_access(
        _snapshot(course, modules=(m1,), lessons=(l1, l2)), NOW
    )

    assert access.lesson(l1.id).unlocked is True
    second = access.lesson(l2.id)
    assert second.unlocked is False
    assert second.lock_reason == "previous_lesson_not_watched"


def test_pending_submission_blocks_next_lesson_as_not_approved() -> None:
    course = _course()
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)
    a1 = Assignment.new(name="A1", recording_id=l1.id)

    access = evaluate_course_access(
        _snapshot(
            course,
            modules=(m1,),
            lessons=(l1, l2),
            assignments=(a1,),
            lesson_views=_watched(l1),
            submissions=(_submission(a1, 1, "pending"),),
        ),
        NOW,
    )

    assert access.lesson(l2.id).lock_reason == "previous_assignment_not_approved"


def test_missing_submission_blocks_next_lesson_as_not_submitted() -> None:
    course = _course()
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)
    a1 = Assignment.new(name="A1", recording_id=l1.id)

    access = evaluate_course_access(
        _snapshot(
            course,
            modules=(m1,),
            lessons=(l1, l2),
            assignments=(a1,),
            lesson_views=_watched(l1),
        ),
        NOW,
    )

    assert access.lesson(l2.id).lock_reason == "previous_assignment_not_submitted"


def test_only_latest_submission_version_counts() -> None:
    course = _course()
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)
    a1 = Assignment.new(name="A1", recording_id=l1.id)
    snapshot = _snapshot(
        course,
        modules=(m1,),
        lessons=(l1, l2),
        assignments=(a1,),
        lesson_views=_watched(l1),
        submissions=(_submission(a1, 1, "declined"), _submission(a1, 2, "approved")),
    )

    assert evaluate_course_access(snapshot, NOW).lesson(l2.id).unlocked is True

    # Older approval does not rescue a newer declined version.
    flipped = replace(
        snapshot,
        submissions=(_submission(a1, 1, "approved"), _submission(a1, 2, "declined")),
    )
    assert (
        evaluate_course_access(flipped, NOW).lesson(l2.id).lock_reason
        == "previous_assignment_not_approved"
    )


def test_sequence_crosses_module_boundaries_in_module_order() -> None:
    course = _course()
    m2, m1 = _module(course, order=2), _module(course, order=1)
    first = _lesson(m1, 1)
    second = _lesson(m2, 1)

    access = evaluate_course_access(
        _snapshot(course, modules=(m2, m1), lessons=(second, first)), NOW
    )

    assert access.lesson(first.id).unlocked is True
    assert access.lesson(second.id).lock_reason == "previous_lesson_not_watched"
    assert [m.order for m in access.modules] == [1, 2]


def test_sequential_off_unlocks_everything() -> None:
    course = _course(sequential=False)
    m1 = _module(course)
    lessons = tuple(_lesson(m1, i) for i in (1, 2, 3))

    access = evaluate_course_access(_snapshot(course, modules=(m1,), lessons=lessons), NOW)

    assert all(la.unlocked for la in access.lessons)


def test_enrollment_override_beats_course_default() -> None:
    course = _course(sequential=True)
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)
    enrollment = replace(
        Enrollment.new(student_id=STUDENT, course_id=course.id, enrolled_at=NOW),
        sequential_override=True,
        sequential_enabled=False,
    )

    access = evaluate_course_access(
        _snapshot(course, modules=(m1,), lessons=(l1, l2), enrollment=enrollment), NOW
    )

    assert access.policy.sequential is False
    assert access.lesson(l2.id).unlocked is True


def test_unlock_is_monotonic_in_watched_set() -> None:
    course = _course()
    m1 = _module(course)
    lessons = tuple(_lesson(m1, i) for i in (1, 2, 3, 4))

    unlocked_counts = []
    for k in range(len(lessons) + 1):
        access = evaluate_course_access(
            _snapshot(
                course, modules=(m1,), lessons=lessons, lesson_views=_watched(*lessons[:k])
            ),
            NOW,
        )
        unlocked_counts.append(sum(1 for la in access.lessons if la.unlocked))

    assert unlocked_counts == sorted(unlocked_counts)
    assert unlocked_counts[-1] == len(lessons)


# ---- fees ----


def test_inactive_lms_status_locks_everything_even_watched() -> None:
    course = _course(sequential=False)
    m1 = _module(course)
    l1, l2 = _lesson(m1, 1), _lesson(m1, 2)
    a1 = Assignment.new(name="A1", recording_id=l1.id)

    access = evaluate_course_access(
        _snapshot(
            course,
            lms_status="suspended",
            modules=(m1,),
            lessons=(l1, l2),
            assignments=(a1,),
            lesson_views=_watched(l1),
        ),
        NOW,
    )

    assert {la.lock_reason for la in access.lessons} == {"fees_not_cleared"}
    assert access.assignment(a1.id).can_submit is False
    assert access.assignment(a1.id).blocked_reason == "fees_not_cleared"


def test_fees_reason_dominates_drip_and_sequence() -> None:
    course = _course(drip=True)
    m1 = _module(course)
    l1 = _lesson(m1, 1, drip_unlock_date=NOW + timedelta(days=3))
    l2 = _lesson(m1, 2)

    access = evaluate_course_access(
        _snapshot(course, lms_status="inactive", modules=(m1,), lessons=(l1, l2)), NOW
    )

    assert access.lesson(l1.id).lock_reason == "fees_not_cleared"
    assert access.lesson(l2.id).lock_reason == "fees_not_cleared"


# ---- drip ----


def test_future_drip_date_locks_with_date() -> None:
    course = _course(sequential=False, drip=True)
    m1 = _module(course)
    release = NOW + timedelta(days=2)
    l1 = _lesson(m1, 1, drip_unlock_date=release)

    access = evaluate_course_access(_snapshot(course, modules=(m1,), lessons=(l1,)), NOW)

    la = access.lesson(l1.id)
    assert la.lock_reason == "drip_locked"
    assert la.drip_unlock_date == release
    assert access.next_drip_date == release


def test_past_drip_date_unlocks() -> None:
    course = _course(sequential=False, drip=True)
    m1 = _module(course)
    l1 = _lesson(m1, 1, drip_unlock_date=NOW - timedelta(minutes=1))

    access = evaluate_course_access(_snapshot(course, modules=(m1,), lessons=(l1,)), NOW)

    assert access.lesson(l1.id).unlocked is True
    assert access.next_drip_date is None


def test_watched_lesson_is_exempt_from_drip() -> None:
    course = _course(sequential=False, drip=True)
    m1 = _module(course)
    l1 = _lesson(m1, 1, drip_unlock_date=NOW + timedelta(days=2))

    access = evaluate_course_access(
        _snapshot(course, modules=(m1,), lessons=(l1,), lesson_views=_watched(l1)), NOW
    )

    assert access.lesson(l1.id).unlocked is True


def test_sequential_reason_reported_before_drip() -> None:
    course = _course(drip=True)
    m1 = _module(course)
    l1 = _lesson(m1, 1)
    l2 = _lesson(m1, 2, drip_unlock_date=NOW + timedelta(days=2))

    access = evaluate_course_access(_snapshot(course, modules=(m1,), lessons=(l1, l2)), NOW)

    assert access.lesson(l2.id).lock_reason == "previous_lesson_not_watched"


def test_drip_ignored_when_disabled() -> None:
    course = _course(sequential=False, drip=False)
    m1 = _module(course)
    l1 = _lesson(m1, 1, drip_unlock_date=NOW + timedelta(days=2))

    access = evaluate_course_access(_snapshot(course, modules=(m1,), lessons=(l1,)), NOW)

    assert access.lesson(l1.id).unlocked is True


# ---- malformed content ----


def test_duplicate_sequence_order_fails_closed() -> None:
    course = _course(sequential=False)
    m1 = _module(course)
    a, b = _lesson(m1, 1), _lesson(m1, 1)
    ok = _lesson(m1, 2)

    access = evaluate_course_access(
        _snapshot(course, modules=(m1,), lessons=(a, b, ok)), NOW
    )

    assert access.lesson(a.id).lock_reason == "content_unavailable"
    assert access.lesson(b.id).lock_reason == "content_unavailable"
    assert access.lesson(ok.id).unlocked is True


def test_module_without_order_keeps_its_lessons_locked() -> None:
    course = _course(sequential=False)
    broken = _module(course, order=None)
    lesson = _lesson(broken, 1)

    access = evaluate_course_access(
        _snapshot(course, modules=(broken,), lessons=(lesson,)), NOW
    )

    assert access.lesson(lesson.id).lock_reason == "content_unavailable"
    assert access.modules[0].is_locked is True


# ---- assignments and completion ----


def test_assignment_submittable_only_after_watch() -> None:
    course = _course()
    m1 = _module(course)
    l1 = _lesson(m1, 1)
    a1 = Assignment.new(name="A1", recording_id=l1.id)
    base = _snapshot(course, modules=(m1,), lessons=(l1,), assignments=(a1,))

    before = evaluate_course_access(base, NOW).assignment(a1.id)
    assert before.can_submit is False
    assert before.blocked_reason == "lesson_not_watched"

    after = evaluate_course_access(replace(base, lesson_views=_watched(l1)), NOW)
    assert after.assignment(a1.id).can_submit is True


def test_approved_assignment_is_read_only() -> None:
    course = _course()
    m1 = _module(course)
    l1 = _lesson(m1, 1)
    a1 = Assignment.new(name="A1", recording_id=l1.id)

    access = evaluate_course_access(
        _snapshot(
            course,
            modules=(m1,),
            lessons=(l1,),
            assignments=(a1,),
            lesson_views=_watched(l1),
            submissions=(_submission(a1, 1, "approved"),),
        ),
        NOW,
    )

    aa = access.assignment(a1.id)
    assert aa.read_only is True
    assert aa.can_submit is False
    assert access.is_complete is True
    assert access.progress_percent == 100


def test_declined_assignment_can_be_resubmitted() -> None:
    course = _course()
    m1 = _module(course)
    l1 = _lesson(m1, 1)
    a1 = Assignment.new(name="A1", recording_id=l1.id)

    access = evaluate_course_access(
        _snapshot(
            course,
            modules=(m1,),
            lessons=(l1,),
            assignments=(a1,),
            lesson_views=_watched(l1),
            submissions=(_submission(a1, 1, "declined"),),
        ),
        NOW,
    )

    aa = access.assignment(a1.id)
    assert aa.can_submit is True
    assert aa.latest_version == 1
    assert access.is_complete is False


def test_progress_percent_rounds() -> None:
    course = _course(sequential=False)
    m1 = _module(course)
    lessons = tuple(_lesson(m1, i) for i in (1, 2, 3))

    access = evaluate_course_access(
        _snapshot(course, modules=(m1,), lessons=lessons, lesson_views=_watched(lessons[0])),
        NOW,
    )

    assert access.progress_percent == 33
    assert access.modules[0].watched_lessons == 1


def test_empty_course_is_not_an_error() -> None:
    course = _course()
    access = evaluate_course_access(_snapshot(course), NOW)
    assert access.lessons == ()
    assert access.progress_percent == 0
