from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.models.progress import LessonView, Submission, SubmissionStatus


class ProgressRepo(Protocol):
    """Student-generated history: lesson views and submission versions."""

    async def list_lesson_views(self, user_id: UUID) -> list[LessonView]: ...
    async def mark_watched(
        self, user_id: UUID, lesson_id: UUID, watched_at: datetime
    ) -> LessonView: ...
    async def list_submissions(
        self, student_id: UUID, assignment_id: UUID | None = None
    ) -> list[Submission]: ...
    async def get_submission(self, submission_id: UUID) -> Submission | None: ...
    async def add_submission(self, submission: Submission) -> None: ...
    async def set_review(
        self,
        submission_id: UUID,
        status: SubmissionStatus,
        reviewed_by: UUID,
        reviewed_at: datetime,
        notes: str | None,
    ) -> Submission | None: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._views: dict[tuple[UUID, UUID], LessonView] = {}
        self._submissions: dict[UUID, Submission] = {}

    def clear(self) -> None:
        self._views.clear()
        self._submissions.clear()

    async def list_lesson_views(self, user_id: UUID) -> list[LessonView]:
        return [v for (uid, _), v in self._views.items() if uid == user_id]

    async def mark_watched(
        self, user_id: UUID, lesson_id: UUID, watched_at: datetime
    ) -> LessonView:
        key = (user_id, lesson_id)
        existing = self._views.get(key)
        if existing is not None and existing.watched:
            return existing
        view = LessonView(
            user_id=user_id, lesson_id=lesson_id, watched=True, watched_at=watched_at
        )
        self._views[key] = view
        return view

    async def list_submissions(
        self, student_id: UUID, assignment_id: UUID | None = None
    ) -> list[Submission]:
        return sorted(
            (
                s
                for s in self._submissions.values()
                if s.student_id == student_id
                and (assignment_id is None or s.assignment_id == assignment_id)
            ),
            key=lambda s: s.version,
        )

    async def get_submission(self, submission_id: UUID) -> Submission | None:
        return self._submissions.get(submission_id)

    async def add_submission(self, submission: Submission) -> None:
        # Mirrors the (assignment_id, student_id, version) unique constraint.
        for s in self._submissions.values():
            if (
                s.assignment_id == submission.assignment_id
                and s.student_id == submission.student_id
                and s.version == submission.version
            ):
                raise ValueError("submission version already exists")
        self._submissions[submission.id] = submission

    async def set_review(
        self,
        submission_id: UUID,
        status: SubmissionStatus,
        reviewed_by: UUID,
        reviewed_at: datetime,
        notes: str | None,
    ) -> Submission | None:
        s = self._submissions.get(submission_id)
        if s is None:
            return None
        updated = replace(
            s,
            status=status,
            reviewed_by=reviewed_by,
            reviewed_at=reviewed_at,
            notes=notes,
        )
        self._submissions[submission_id] = updated
        return updated
