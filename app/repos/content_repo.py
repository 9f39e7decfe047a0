from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.course import Assignment, Course, CourseModule, Lesson
from app.models.enrollment import Batch
from app.models.pathway import Pathway


class ContentRepo(Protocol):
    """Admin-authored course graph, pathways and batches."""

    async def add_course(self, course: Course) -> None: ...
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def add_module(self, module: CourseModule) -> None: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def list_modules(self, course_id: UUID) -> list[CourseModule]: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def add_assignment(self, assignment: Assignment) -> None: ...
    async def get_assignment(self, assignment_id: UUID) -> Assignment | None: ...
    async def list_assignments(self, course_id: UUID) -> list[Assignment]: ...
    async def add_pathway(self, pathway: Pathway) -> None: ...
    async def get_pathway(self, pathway_id: UUID) -> Pathway | None: ...
    async def add_batch(self, batch: Batch) -> None: ...
    async def get_batch(self, batch_id: UUID) -> Batch | None: ...


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._assignments: dict[UUID, Assignment] = {}
        self._pathways: dict[UUID, Pathway] = {}
        self._batches: dict[UUID, Batch] = {}

    def clear(self) -> None:
        for store in (
            self._courses,
            self._modules,
            self._lessons,
            self._assignments,
            self._pathways,
            self._batches,
        ):
            store.clear()

    async def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.title)

    async def add_module(self, module: CourseModule) -> None:
        if module.course_id not in self._courses:
            raise KeyError("course not found")
        self._modules[module.id] = module

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        return [m for m in self._modules.values() if m.course_id == course_id]

    async def add_lesson(self, lesson: Lesson) -> None:
        if lesson.module_id not in self._modules:
            raise KeyError("module not found")
        # Mirrors the (module_id, sequence_order) unique constraint.
        for other in self._lessons.values():
            if (
                other.module_id == lesson.module_id
                and other.sequence_order == lesson.sequence_order
            ):
                raise ValueError("sequence_order already used in this module")
        self._lessons[lesson.id] = lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        module_ids = {m.id for m in self._modules.values() if m.course_id == course_id}
        return [les for les in self._lessons.values() if les.module_id in module_ids]

    async def add_assignment(self, assignment: Assignment) -> None:
        if (
            assignment.recording_id is not None
            and assignment.recording_id not in self._lessons
        ):
            raise KeyError("lesson not found")
        self._assignments[assignment.id] = assignment

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        return self._assignments.get(assignment_id)

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        lesson_ids = {les.id for les in await self.list_lessons(course_id)}
        return [
            a
            for a in self._assignments.values()
            if a.recording_id in lesson_ids
            or (a.recording_id is None and a.course_id == course_id)
        ]

    async def add_pathway(self, pathway: Pathway) -> None:
        for step in pathway.steps:
            if step.course_id not in self._courses:
                raise KeyError("course not found")
        self._pathways[pathway.id] = pathway

    async def get_pathway(self, pathway_id: UUID) -> Pathway | None:
        return self._pathways.get(pathway_id)

    async def add_batch(self, batch: Batch) -> None:
        self._batches[batch.id] = batch

    async def get_batch(self, batch_id: UUID) -> Batch | None:
        return self._batches.get(batch_id)
