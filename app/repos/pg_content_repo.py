"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    AssignmentRow,
    BatchLessonOffsetRow,
    BatchRow,
    CourseModuleRow,
    CourseRow,
    LessonRow,
    PathwayRow,
    PathwayStepRow,
)
from app.models.course import Assignment, Course, CourseModule, Lesson
from app.models.enrollment import Batch
from app.models.pathway import Pathway, PathwayStep


class PgContentRepo:
    """Satisfies the ContentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                sequential_unlock=course.sequential_unlock,
                drip_enabled=course.drip_enabled,
            )
        )
        await self._session.flush()

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return None if row is None else _row_to_course(row)

    async def list_courses(self) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.title)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add_module(self, module: CourseModule) -> None:
        if await self._session.get(CourseRow, module.course_id) is None:
            raise KeyError("course not found")
        self._session.add(
            CourseModuleRow(
                id=module.id,
                course_id=module.course_id,
                title=module.title,
                order=module.order,
            )
        )
        await self._session.flush()

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(CourseModuleRow, module_id)
        return None if row is None else _row_to_module(row)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        stmt = select(CourseModuleRow).where(CourseModuleRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def add_lesson(self, lesson: Lesson) -> None:
        if await self._session.get(CourseModuleRow, lesson.module_id) is None:
            raise KeyError("module not found")
        self._session.add(
            LessonRow(
                id=lesson.id,
                module_id=lesson.module_id,
                title=lesson.title,
                sequence_order=lesson.sequence_order,
                duration_minutes=lesson.duration_minutes,
                drip_unlock_date=lesson.drip_unlock_date,
                drip_days=lesson.drip_days,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ValueError("sequence_order already used in this module") from e

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return None if row is None else _row_to_lesson(row)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .join(CourseModuleRow, LessonRow.module_id == CourseModuleRow.id)
            .where(CourseModuleRow.course_id == course_id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def add_assignment(self, assignment: Assignment) -> None:
        if (
            assignment.recording_id is not None
            and await self._session.get(LessonRow, assignment.recording_id) is None
        ):
            raise KeyError("lesson not found")
        self._session.add(
            AssignmentRow(
                id=assignment.id,
                name=assignment.name,
                recording_id=assignment.recording_id,
                submission_type=assignment.submission_type,
                course_id=assignment.course_id,
            )
        )
        await self._session.flush()

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        row = await self._session.get(AssignmentRow, assignment_id)
        return None if row is None else _row_to_assignment(row)

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        lesson_ids = (
            select(LessonRow.id)
            .join(CourseModuleRow, LessonRow.module_id == CourseModuleRow.id)
            .where(CourseModuleRow.course_id == course_id)
        )
        stmt = select(AssignmentRow).where(
            or_(
                AssignmentRow.recording_id.in_(lesson_ids),
                (AssignmentRow.recording_id.is_(None))
                & (AssignmentRow.course_id == course_id),
            )
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]

    async def add_pathway(self, pathway: Pathway) -> None:
        self._session.add(PathwayRow(id=pathway.id, title=pathway.title))
        for step in pathway.steps:
            self._session.add(
                PathwayStepRow(
                    pathway_id=pathway.id,
                    course_id=step.course_id,
                    step_number=step.step_number,
                    choice_group=step.choice_group,
                )
            )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise KeyError("course not found") from e

    async def get_pathway(self, pathway_id: UUID) -> Pathway | None:
        row = await self._session.get(PathwayRow, pathway_id)
        if row is None:
            return None
        stmt = (
            select(PathwayStepRow)
            .where(PathwayStepRow.pathway_id == pathway_id)
            .order_by(PathwayStepRow.step_number)
        )
        steps = (await self._session.execute(stmt)).scalars().all()
        return Pathway(
            id=row.id,
            title=row.title,
            steps=tuple(
                PathwayStep(
                    step_number=s.step_number,
                    course_id=s.course_id,
                    choice_group=s.choice_group,
                )
                for s in steps
            ),
        )

    async def add_batch(self, batch: Batch) -> None:
        self._session.add(
            BatchRow(id=batch.id, name=batch.name, start_date=batch.start_date)
        )
        for lesson_id, offset in batch.timeline.items():
            self._session.add(
                BatchLessonOffsetRow(
                    batch_id=batch.id, lesson_id=lesson_id, offset_days=offset
                )
            )
        await self._session.flush()

    async def get_batch(self, batch_id: UUID) -> Batch | None:
        row = await self._session.get(BatchRow, batch_id)
        if row is None:
            return None
        stmt = select(BatchLessonOffsetRow).where(
            BatchLessonOffsetRow.batch_id == batch_id
        )
        offsets = (await self._session.execute(stmt)).scalars().all()
        return Batch(
            id=row.id,
            name=row.name,
            start_date=row.start_date,
            timeline={o.lesson_id: o.offset_days for o in offsets},
        )


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        sequential_unlock=row.sequential_unlock,
        drip_enabled=row.drip_enabled,
    )


def _row_to_module(row: CourseModuleRow) -> CourseModule:
    return CourseModule(
        id=row.id, course_id=row.course_id, title=row.title, order=row.order
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        title=row.title,
        sequence_order=row.sequence_order,
        duration_minutes=row.duration_minutes,
        drip_unlock_date=row.drip_unlock_date,
        drip_days=row.drip_days,
    )


def _row_to_assignment(row: AssignmentRow) -> Assignment:
    return Assignment(
        id=row.id,
        name=row.name,
        recording_id=row.recording_id,
        submission_type=row.submission_type,  # type: ignore[arg-type]
        course_id=row.course_id,
    )
