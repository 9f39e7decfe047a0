"""PostgreSQL implementation of StudentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import StudentAccountRow
from app.models.enrollment import LmsStatus, StudentAccount


class PgStudentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID) -> StudentAccount | None:
        row = await self._session.get(StudentAccountRow, student_id)
        if row is None:
            return None
        return StudentAccount(student_id=row.student_id, lms_status=row.lms_status)  # type: ignore[arg-type]

    async def set_lms_status(
        self, student_id: UUID, lms_status: LmsStatus
    ) -> StudentAccount:
        stmt = insert(StudentAccountRow).values(
            student_id=student_id, lms_status=lms_status
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[StudentAccountRow.student_id],
            set_={"lms_status": stmt.excluded.lms_status},
        )
        await self._session.execute(stmt)
        return StudentAccount(student_id=student_id, lms_status=lms_status)
