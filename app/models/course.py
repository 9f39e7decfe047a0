from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

SubmissionType = Literal["text", "link", "file"]


@dataclass(frozen=True, slots=True)
class Course:
    """Course with its default access policies.

    Enrollment-level overrides win over these defaults
    (see app/services/access_policy.py).
    """

    id: UUID
    title: str
    sequential_unlock: bool = True
    drip_enabled: bool = False

    @staticmethod
    def new(
        *, title: str, sequential_unlock: bool = True, drip_enabled: bool = False
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            sequential_unlock=sequential_unlock,
            drip_enabled=drip_enabled,
        )


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    title: str
    order: int | None  # None only for malformed content; such modules stay locked

    @staticmethod
    def new(*, course_id: UUID, title: str, order: int) -> CourseModule:
        return CourseModule(id=uuid4(), course_id=course_id, title=title, order=order)


@dataclass(frozen=True, slots=True)
class Lesson:
    """A recorded video lesson.

    sequence_order is unique within the module and is the unlock order.
    A drip date comes either from drip_unlock_date (absolute) or drip_days
    (offset from the student's drip anchor); see drip_schedule.
    """

    id: UUID
    module_id: UUID
    title: str
    sequence_order: int | None
    duration_minutes: int = 0
    drip_unlock_date: datetime | None = None
    drip_days: int | None = None

    @staticmethod
    def new(
        *,
        module_id: UUID,
        title: str,
        sequence_order: int,
        duration_minutes: int = 0,
        drip_unlock_date: datetime | None = None,
        drip_days: int | None = None,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            module_id=module_id,
            title=title,
            sequence_order=sequence_order,
            duration_minutes=duration_minutes,
            drip_unlock_date=drip_unlock_date,
            drip_days=drip_days,
        )


@dataclass(frozen=True, slots=True)
class Assignment:
    id: UUID
    name: str
    recording_id: UUID | None = None  # lesson that unlocks it
    submission_type: SubmissionType = "text"
    course_id: UUID | None = None  # scopes assignments with no lesson trigger

    @staticmethod
    def new(
        *,
        name: str,
        recording_id: UUID | None = None,
        submission_type: SubmissionType = "text",
        course_id: UUID | None = None,
    ) -> Assignment:
        return Assignment(
            id=uuid4(),
            name=name,
            recording_id=recording_id,
            submission_type=submission_type,
            course_id=course_id,
        )
