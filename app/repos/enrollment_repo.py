from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.pathway import ChoiceSelection
from app.services.errors import CourseInOtherPathwayError, DuplicateEnrollmentError


class EnrollmentRepo(Protocol):
    """Enrollments plus the pathway choice selections built on them.

    Invariants the implementations enforce atomically:
      - at most one active enrollment per (student, course)
      - at most one active enrollment per (student, pathway)
      - at most one selection per (student, pathway, choice_group)
    Violations raise DuplicateEnrollmentError.

    apply_transition adopts an active standalone enrollment in the course it
    opens instead of inserting a second one; an active enrollment held by
    another pathway raises CourseInOtherPathwayError.
    """

    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def find_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def list_by_student(
        self, student_id: UUID, pathway_id: UUID | None = None
    ) -> list[Enrollment]: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update_access(
        self,
        enrollment_id: UUID,
        *,
        drip_override: bool | None = None,
        drip_enabled: bool | None = None,
        sequential_override: bool | None = None,
        sequential_enabled: bool | None = None,
    ) -> Enrollment | None: ...
    async def set_status(
        self, enrollment_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None: ...
    async def list_choices(
        self, student_id: UUID, pathway_id: UUID
    ) -> list[ChoiceSelection]: ...
    async def apply_transition(
        self,
        student_id: UUID,
        pathway_id: UUID,
        *,
        close_course_id: UUID | None,
        open_enrollment: Enrollment | None,
        selection: ChoiceSelection | None,
    ) -> None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._choices: dict[tuple[UUID, UUID, int], ChoiceSelection] = {}
        self._lock = threading.Lock()

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._choices.clear()

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def find_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """The active enrollment, else the most recent closed one."""
        mine = [
            e
            for e in self._by_id.values()
            if e.student_id == student_id and e.course_id == course_id
        ]
        if not mine:
            return None
        mine.sort(key=lambda e: (e.is_active, e.enrolled_at))
        return mine[-1]

    async def list_by_student(
        self, student_id: UUID, pathway_id: UUID | None = None
    ) -> list[Enrollment]:
        return [
            e
            for e in self._by_id.values()
            if e.student_id == student_id
            and (pathway_id is None or e.pathway_id == pathway_id)
        ]

    def _active_in_course(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        return next(
            (
                e
                for e in self._by_id.values()
                if e.student_id == student_id and e.course_id == course_id and e.is_active
            ),
            None,
        )

    def _check_unique(
        self, enrollment: Enrollment, closing: UUID | None = None
    ) -> None:
        if not enrollment.is_active:
            return
        for e in self._by_id.values():
            if e.id == closing:
                continue
            if not e.is_active or e.student_id != enrollment.student_id:
                continue
            if e.course_id == enrollment.course_id:
                raise DuplicateEnrollmentError("already enrolled in this course")
            if enrollment.pathway_id is not None and e.pathway_id == enrollment.pathway_id:
                raise DuplicateEnrollmentError("pathway already has an active enrollment")

    async def add(self, enrollment: Enrollment) -> None:
        with self._lock:
            self._check_unique(enrollment)
            self._by_id[enrollment.id] = enrollment

    async def update_access(
        self,
        enrollment_id: UUID,
        *,
        drip_override: bool | None = None,
        drip_enabled: bool | None = None,
        sequential_override: bool | None = None,
        sequential_enabled: bool | None = None,
    ) -> Enrollment | None:
        with self._lock:
            e = self._by_id.get(enrollment_id)
            if e is None:
                return None
            changes = {
                k: v
                for k, v in {
                    "drip_override": drip_override,
                    "drip_enabled": drip_enabled,
                    "sequential_override": sequential_override,
                    "sequential_enabled": sequential_enabled,
                }.items()
                if v is not None
            }
            updated = replace(e, **changes)
            self._by_id[enrollment_id] = updated
            return updated

    async def set_status(
        self, enrollment_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None:
        with self._lock:
            e = self._by_id.get(enrollment_id)
            if e is None:
                return None
            updated = replace(e, status=status)
            self._by_id[enrollment_id] = updated
            return updated

    async def list_choices(
        self, student_id: UUID, pathway_id: UUID
    ) -> list[ChoiceSelection]:
        return [
            c
            for (sid, pid, _), c in self._choices.items()
            if sid == student_id and pid == pathway_id
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
        """Check-and-set for one pathway transition.

        The student's active enrollment in the pathway must be exactly
        close_course_id (or absent when close_course_id is None); otherwise
        another transition got there first.
        """
        with self._lock:
            active = next(
                (
                    e
                    for e in self._by_id.values()
                    if e.student_id == student_id
                    and e.pathway_id == pathway_id
                    and e.is_active
                ),
                None,
            )
            current = active.course_id if active is not None else None
            if current != close_course_id:
                raise DuplicateEnrollmentError(
                    f"active enrollment is {current}, expected {close_course_id}"
                )
            if selection is not None:
                key = (student_id, pathway_id, selection.choice_group)
                if key in self._choices:
                    raise DuplicateEnrollmentError("choice group already resolved")
            adopted = None
            if open_enrollment is not None:
                adopted = self._active_in_course(student_id, open_enrollment.course_id)
                if adopted is None:
                    self._check_unique(
                        open_enrollment, active.id if active is not None else None
                    )
                elif adopted.pathway_id is not None:
                    raise CourseInOtherPathwayError(
                        f"course {open_enrollment.course_id} is active in pathway "
                        f"{adopted.pathway_id}"
                    )

            if active is not None:
                self._by_id[active.id] = replace(active, status="completed")
            if selection is not None:
                self._choices[(student_id, pathway_id, selection.choice_group)] = (
                    selection
                )
            if adopted is not None:
                self._by_id[adopted.id] = replace(adopted, pathway_id=pathway_id)
            elif open_enrollment is not None:
                self._by_id[open_enrollment.id] = open_enrollment
