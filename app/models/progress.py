from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

SubmissionStatus = Literal["pending", "approved", "declined"]
SUBMISSION_STATUSES: tuple[SubmissionStatus, ...] = ("pending", "approved", "declined")


@dataclass(frozen=True, slots=True)
class LessonView:
    """One record per (user, lesson). `watched` never goes back to False."""

    user_id: UUID
    lesson_id: UUID
    watched: bool
    watched_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Submission:
    """One version of a student's work on an assignment.

    Resubmitting appends a new row with a higher version; only the highest
    version counts (see app/services/submissions.latest_submission).
    """

    id: UUID
    assignment_id: UUID
    student_id: UUID
    version: int
    status: SubmissionStatus = "pending"
    content: str = ""
    created_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    notes: str | None = None

    @staticmethod
    def new(
        *,
        assignment_id: UUID,
        student_id: UUID,
        version: int,
        content: str,
        created_at: datetime,
    ) -> Submission:
        return Submission(
            id=uuid4(),
            assignment_id=assignment_id,
            student_id=student_id,
            version=version,
            content=content,
            created_at=created_at,
        )
