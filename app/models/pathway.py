from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

PathwayStatus = Literal["not_enrolled", "in_progress", "awaiting_choice", "completed"]


@dataclass(frozen=True, slots=True)
class PathwayStep:
    step_number: int
    course_id: UUID
    choice_group: int | None = None  # steps sharing a group are "OR" alternatives


@dataclass(frozen=True, slots=True)
class Pathway:
    id: UUID
    title: str
    steps: tuple[PathwayStep, ...] = ()

    @staticmethod
    def new(*, title: str, steps: tuple[PathwayStep, ...] = ()) -> Pathway:
        return Pathway(id=uuid4(), title=title, steps=steps)


@dataclass(frozen=True, slots=True)
class ChoiceSelection:
    """A student's one-way commit to one alternative of a choice group."""

    student_id: UUID
    pathway_id: UUID
    choice_group: int
    course_id: UUID
    selected_at: datetime


@dataclass(frozen=True, slots=True)
class PathwayState:
    """Where a student stands in a pathway.

    Derived from enrollments and choice selections, never stored.
    """

    pathway_id: UUID
    status: PathwayStatus
    current_step_number: int
    total_steps: int
    current_course_id: UUID | None = None
    choice_group: int | None = None
    selected_choice_course_id: UUID | None = None

    @property
    def has_pending_choice(self) -> bool:
        return self.status == "awaiting_choice"

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"
