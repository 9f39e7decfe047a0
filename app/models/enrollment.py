from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal
from uuid import UUID, uuid4

EnrollmentStatus = Literal["active", "completed", "withdrawn"]
LmsStatus = Literal["active", "inactive", "suspended"]
LMS_STATUSES: tuple[LmsStatus, ...] = ("active", "inactive", "suspended")


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Binds a student to a course, optionally as part of a pathway.

    The *_override flags decide whether the paired *_enabled value replaces
    the course default for this student.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    enrolled_at: datetime
    pathway_id: UUID | None = None
    batch_id: UUID | None = None
    status: EnrollmentStatus = "active"
    drip_override: bool = False
    drip_enabled: bool = True
    sequential_override: bool = False
    sequential_enabled: bool = True

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        enrolled_at: datetime,
        pathway_id: UUID | None = None,
        batch_id: UUID | None = None,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
            pathway_id=pathway_id,
            batch_id=batch_id,
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True, slots=True)
class Batch:
    """A cohort that starts together.

    timeline maps lesson id -> days after start_date when the lesson drips.
    """

    id: UUID
    name: str
    start_date: date
    timeline: dict[UUID, int] = field(default_factory=dict)

    @staticmethod
    def new(
        *, name: str, start_date: date, timeline: dict[UUID, int] | None = None
    ) -> Batch:
        return Batch(
            id=uuid4(), name=name, start_date=start_date, timeline=timeline or {}
        )


@dataclass(frozen=True, slots=True)
class StudentAccount:
    student_id: UUID
    lms_status: LmsStatus = "active"  # billing gate; anything else locks all content
