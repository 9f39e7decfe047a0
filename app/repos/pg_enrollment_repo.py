"""PostgreSQL implementation of EnrollmentRepo.

The one-active-enrollment rules are partial unique indexes and choice
selections have a composite primary key (see app/db/tables.py), so the
database arbitrates concurrent transitions: the loser gets an
IntegrityError, re-raised as DuplicateEnrollmentError.
An active standalone enrollment in the course a transition opens is
adopted into the pathway rather than duplicated.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ChoiceSelectionRow, EnrollmentRow
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.pathway import ChoiceSelection
from app.services.errors import CourseInOtherPathwayError, DuplicateEnrollmentError


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, enrollment_id)
        return None if row is None else _row_to_enrollment(row)

    async def find_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .order_by(
                (EnrollmentRow.status == "active").desc(),
                EnrollmentRow.enrolled_at.desc(),
            )
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_enrollment(row)

    async def list_by_student(
        self, student_id: UUID, pathway_id: UUID | None = None
    ) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.student_id == student_id)
        if pathway_id is not None:
            stmt = stmt.where(EnrollmentRow.pathway_id == pathway_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add(self, enrollment: Enrollment) -> None:
        self._session.add(_enrollment_to_row(enrollment))
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateEnrollmentError("active enrollment already exists") from e

    async def update_access(
        self,
        enrollment_id: UUID,
        *,
        drip_override: bool | None = None,
        drip_enabled: bool | None = None,
        sequential_override: bool | None = None,
        sequential_enabled: bool | None = None,
    ) -> Enrollment | None:
        values = {
            k: v
            for k, v in {
                "drip_override": drip_override,
                "drip_enabled": drip_enabled,
                "sequential_override": sequential_override,
                "sequential_enabled": sequential_enabled,
            }.items()
            if v is not None
        }
        if values:
            stmt = (
                update(EnrollmentRow)
                .where(EnrollmentRow.id == enrollment_id)
                .values(**values)
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                return None
        return await self.get(enrollment_id)

    async def set_status(
        self, enrollment_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(status=status)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(enrollment_id)

    async def list_choices(
        self, student_id: UUID, pathway_id: UUID
    ) -> list[ChoiceSelection]:
        stmt = select(ChoiceSelectionRow).where(
            ChoiceSelectionRow.student_id == student_id,
            ChoiceSelectionRow.pathway_id == pathway_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            ChoiceSelection(
                student_id=r.student_id,
                pathway_id=r.pathway_id,
                choice_group=r.choice_group,
                course_id=r.course_id,
                selected_at=r.selected_at,
            )
            for r in rows
        ]

    async def apply_transition(
        self,
        student_id: UUID,
        pathway_id: UUID,
        *,
        close_course_id: UUID | None,
        open_enrollment: Enrollment | None,
        selection: ChoiceSelection | None,
    ) -> None:
        if close_course_id is not None:
            # Conditional update: a concurrent transition that already
            # closed this enrollment leaves nothing to match.
            stmt = (
                update(EnrollmentRow)
                .where(
                    EnrollmentRow.student_id == student_id,
                    EnrollmentRow.pathway_id == pathway_id,
                    EnrollmentRow.course_id == close_course_id,
                    EnrollmentRow.status == "active",
                )
                .values(status="completed")
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                raise DuplicateEnrollmentError(
                    f"no active enrollment in course {close_course_id}"
                )

        if selection is not None:
            self._session.add(
                ChoiceSelectionRow(
                    student_id=selection.student_id,
                    pathway_id=selection.pathway_id,
                    choice_group=selection.choice_group,
                    course_id=selection.course_id,
                    selected_at=selection.selected_at,
                )
            )
        if open_enrollment is not None:
            held = (
                await self._session.execute(
                    select(EnrollmentRow).where(
                        EnrollmentRow.student_id == student_id,
                        EnrollmentRow.course_id == open_enrollment.course_id,
                        EnrollmentRow.status == "active",
                    )
                )
            ).scalar_one_or_none()
            if held is None:
                self._session.add(_enrollment_to_row(open_enrollment))
            elif held.pathway_id is None:
                held.pathway_id = pathway_id
            else:
                raise CourseInOtherPathwayError(
                    f"course {open_enrollment.course_id} is active in pathway "
                    f"{held.pathway_id}"
                )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateEnrollmentError("transition already applied") from e


def _enrollment_to_row(e: Enrollment) -> EnrollmentRow:
    return EnrollmentRow(
        id=e.id,
        student_id=e.student_id,
        course_id=e.course_id,
        pathway_id=e.pathway_id,
        batch_id=e.batch_id,
        status=e.status,
        enrolled_at=e.enrolled_at,
        drip_override=e.drip_override,
        drip_enabled=e.drip_enabled,
        sequential_override=e.sequential_override,
        sequential_enabled=e.sequential_enabled,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        pathway_id=row.pathway_id,
        batch_id=row.batch_id,
        status=row.status,  # type: ignore[arg-type]
        drip_override=row.drip_override,
        drip_enabled=row.drip_enabled,
        sequential_override=row.sequential_override,
        sequential_enabled=row.sequential_enabled,
    )
