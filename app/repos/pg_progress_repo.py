"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LessonViewRow, SubmissionRow
from app.models.progress import LessonView, Submission, SubmissionStatus


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_lesson_views(self, user_id: UUID) -> list[LessonView]:
        stmt = select(LessonViewRow).where(LessonViewRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            LessonView(
                user_id=r.user_id,
                lesson_id=r.lesson_id,
                watched=r.watched,
                watched_at=r.watched_at,
            )
            for r in rows
        ]

    async def mark_watched(
        self, user_id: UUID, lesson_id: UUID, watched_at: datetime
    ) -> LessonView:
        # watched never flips back, so an existing watched row is left alone
        stmt = insert(LessonViewRow).values(
            user_id=user_id, lesson_id=lesson_id, watched=True, watched_at=watched_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonViewRow.user_id, LessonViewRow.lesson_id],
            set_={"watched": True, "watched_at": stmt.excluded.watched_at},
            where=LessonViewRow.watched.is_(False),
        )
        await self._session.execute(stmt)

        row = (
            await self._session.execute(
                select(LessonViewRow).where(
                    LessonViewRow.user_id == user_id,
                    LessonViewRow.lesson_id == lesson_id,
                )
            )
        ).scalar_one()
        return LessonView(
            user_id=row.user_id,
            lesson_id=row.lesson_id,
            watched=row.watched,
            watched_at=row.watched_at,
        )

    async def list_submissions(
        self, student_id: UUID, assignment_id: UUID | None = None
    ) -> list[Submission]:
        stmt = select(SubmissionRow).where(SubmissionRow.student_id == student_id)
        if assignment_id is not None:
            stmt = stmt.where(SubmissionRow.assignment_id == assignment_id)
        stmt = stmt.order_by(SubmissionRow.version)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_submission(r) for r in rows]

    async def get_submission(self, submission_id: UUID) -> Submission | None:
        row = await self._session.get(SubmissionRow, submission_id)
        return None if row is None else _row_to_submission(row)

    async def add_submission(self, submission: Submission) -> None:
        self._session.add(
            SubmissionRow(
                id=submission.id,
                assignment_id=submission.assignment_id,
                student_id=submission.student_id,
                version=submission.version,
                status=submission.status,
                content=submission.content,
                created_at=submission.created_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ValueError("submission version already exists") from e

    async def set_review(
        self,
        submission_id: UUID,
        status: SubmissionStatus,
        reviewed_by: UUID,
        reviewed_at: datetime,
        notes: str | None,
    ) -> Submission | None:
        stmt = (
            update(SubmissionRow)
            .where(SubmissionRow.id == submission_id)
            .values(
                status=status,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                notes=notes,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_submission(submission_id)


def _row_to_submission(row: SubmissionRow) -> Submission:
    return Submission(
        id=row.id,
        assignment_id=row.assignment_id,
        student_id=row.student_id,
        version=row.version,
        status=row.status,  # type: ignore[arg-type]
        content=row.content,
        created_at=row.created_at,
        reviewed_at=row.reviewed_at,
        reviewed_by=row.reviewed_by,
        notes=row.notes,
    )
