"""Access policy resolution, drip dates and submission precedence."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, date, datetime

import pytest

from app.models.course import Course, Lesson
from app.models.enrollment import Batch, Enrollment
from app.models.progress import Submission
from app.services.access_policy import effective, resolve_access_policy
from app.services.drip_schedule import resolve_drip_date
from app.services.submissions import (
    can_resubmit,
    latest_submission,
    next_version,
    submission_state,
)

STUDENT = uuid.uuid4()


# ---- access policy ----


@pytest.mark.parametrize(
    ("override", "value", "default", "expected"),
    [
        (False, False, True, True),
        (False, True, False, False),
        (True, False, True, False),
        (True, True, False, True),
    ],
)
def test_effective(override: bool, value: bool, default: bool, expected: bool) -> None:
    assert effective(override, value, default) is expected


def test_policy_without_enrollment_uses_course_defaults() -> None:
    course = Course.new(title="C", sequential_unlock=False, drip_enabled=True)
    policy = resolve_access_policy(course, None)
    assert policy.sequential is False
    assert policy.drip is True


def test_policy_overrides_are_independent() -> None:
    course = Course.new(title="C", sequential_unlock=True, drip_enabled=True)
    enrollment = replace(
        Enrollment.new(
            student_id=STUDENT, course_id=course.id, enrolled_at=datetime.now(UTC)
        ),
        drip_override=True,
        drip_enabled=False,
    )
    policy = resolve_access_policy(course, enrollment)
    assert policy.drip is False
    assert policy.sequential is True


# ---- drip schedule ----


def _lesson(**kwargs) -> Lesson:
    return Lesson.new(module_id=uuid.uuid4(), title="L", sequence_order=1, **kwargs)


def test_drip_days_counts_from_enrollment_day() -> None:
    lesson = _lesson(drip_days=7)
    enrollment = Enrollment.new(
        student_id=STUDENT,
        course_id=uuid.uuid4(),
        enrolled_at=datetime(2026, 1, 10, 15, 30, tzinfo=UTC),
    )
    assert resolve_drip_date(lesson, enrollment, None) == datetime(2026, 1, 17, tzinfo=UTC)


def test_batch_timeline_wins_over_lesson_date() -> None:
    lesson = _lesson(drip_unlock_date=datetime(2026, 5, 1, tzinfo=UTC))
    batch = Batch.new(name="Spring", start_date=date(2026, 2, 1), timeline={lesson.id: 3})
    assert resolve_drip_date(lesson, None, batch) == datetime(2026, 2, 4, tzinfo=UTC)


def test_naive_drip_date_is_treated_as_utc() -> None:
    lesson = _lesson(drip_unlock_date=datetime(2026, 5, 1, 9, 0))
    assert resolve_drip_date(lesson, None, None) == datetime(2026, 5, 1, 9, 0, tzinfo=UTC)


def test_no_drip_configuration_means_no_date() -> None:
    assert resolve_drip_date(_lesson(), None, None) is None


# ---- submissions ----


def _sub(assignment_id: uuid.UUID, version: int, status: str = "pending") -> Submission:
    return Submission(
        id=uuid.uuid4(),
        assignment_id=assignment_id,
        student_id=STUDENT,
        version=version,
        status=status,  # type: ignore[arg-type]
    )


def test_latest_submission_picks_highest_version_regardless_of_order() -> None:
    aid = uuid.uuid4()
    subs = [_sub(aid, 2), _sub(aid, 3, "declined"), _sub(aid, 1, "approved")]
    latest = latest_submission(subs, aid, STUDENT)
    assert latest is not None
    assert latest.version == 3
    assert submission_state(latest) == "declined"


def test_latest_submission_ignores_other_students_and_assignments() -> None:
    aid = uuid.uuid4()
    other = replace(_sub(aid, 9), student_id=uuid.uuid4())
    assert latest_submission([other, _sub(uuid.uuid4(), 4)], aid, STUDENT) is None


def test_next_version_and_resubmit_rules() -> None:
    aid = uuid.uuid4()
    assert next_version(None) == 1
    assert next_version(_sub(aid, 2)) == 3
    assert can_resubmit(None) is True
    assert can_resubmit(_sub(aid, 1, "declined")) is True
    assert can_resubmit(_sub(aid, 1, "pending")) is False
    assert can_resubmit(_sub(aid, 1, "approved")) is False
