"""Pathway transition state machine.

Pure functions over a pathway definition, the student's enrollments in it
and their choice selections.  Nothing here touches storage; the service
layer applies the returned Transition atomically.

Steps are normalised into stages.  Steps sharing a choice_group collapse
into one choice stage, numbered by the lowest step_number in the group;
every other step is its own single-course stage.  "Next step" always means
the next stage.

    InProgress(n) --advance--> InProgress(n+1)
                          |--> AwaitingChoice(n+1, group)   (unresolved choice)
                          |--> Completed                    (last stage)
    AwaitingChoice(n, g) --make_choice(c)--> InProgress(n)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from app.models.enrollment import Enrollment
from app.models.pathway import Pathway, PathwayState, PathwayStatus
from app.services.errors import (
    ChoicePendingError,
    CourseIncompleteError,
    InvalidChoiceError,
    NotInPathwayError,
    PathwayAlreadyCompleteError,
)

TransitionKind = Literal["enroll", "advance", "await_choice", "complete", "choose"]


@dataclass(frozen=True, slots=True)
class Stage:
    number: int
    course_ids: tuple[UUID, ...]
    choice_group: int | None = None

    @property
    def is_choice(self) -> bool:
        return self.choice_group is not None


@dataclass(frozen=True, slots=True)
class Transition:
    """What to persist for one accepted transition.

    close_course_id: the active enrollment expected before the change
    open_course_id:  course to enroll in after it (None: nothing to open)
    choice:          (choice_group, course_id) to record as the selection
    """

    kind: TransitionKind
    state: PathwayState
    close_course_id: UUID | None = None
    open_course_id: UUID | None = None
    choice: tuple[int, UUID] | None = None


@dataclass(frozen=True, slots=True)
class DisplayGroup:
    step_number: int
    course_ids: tuple[UUID, ...]
    choice_group: int | None = None
    selected_course_id: UUID | None = None

    @property
    def is_choice_point(self) -> bool:
        return self.choice_group is not None

    def label(self, titles: Mapping[UUID, str]) -> str:
        return " OR ".join(titles.get(c, str(c)) for c in self.course_ids)


@dataclass(frozen=True, slots=True)
class CourseStatus:
    course_id: UUID
    step_number: int
    is_available: bool
    is_completed: bool
    is_current: bool
    requires_choice: bool
    is_choice_point: bool
    is_selected_choice: bool
    choice_group: int | None = None
    choice_options: tuple[UUID, ...] = ()


def build_stages(pathway: Pathway) -> tuple[Stage, ...]:
    singles: list[Stage] = []
    groups: dict[int, list[tuple[int, UUID]]] = {}
    for step in sorted(pathway.steps, key=lambda s: s.step_number):
        if step.choice_group is None:
            singles.append(Stage(number=step.step_number, course_ids=(step.course_id,)))
        else:
            groups.setdefault(step.choice_group, []).append(
                (step.step_number, step.course_id)
            )

    stages = singles + [
        Stage(
            number=min(n for n, _ in members),
            course_ids=tuple(c for _, c in members),
            choice_group=group,
        )
        for group, members in groups.items()
    ]
    stages.sort(key=lambda s: s.number)
    return tuple(stages)


def _stage_index(stages: tuple[Stage, ...], course_id: UUID) -> int | None:
    for i, stage in enumerate(stages):
        if course_id in stage.course_ids:
            return i
    return None


def _state(
    pathway_id: UUID,
    stages: tuple[Stage, ...],
    status: PathwayStatus,
    stage: Stage | None,
    *,
    course_id: UUID | None = None,
    selections: Mapping[int, UUID] | None = None,
) -> PathwayState:
    group = stage.choice_group if stage is not None else None
    selected = None
    if group is not None and selections is not None:
        selected = selections.get(group)
    return PathwayState(
        pathway_id=pathway_id,
        status=status,
        current_step_number=stage.number if stage is not None else 0,
        total_steps=len(stages),
        current_course_id=course_id,
        choice_group=group,
        selected_choice_course_id=selected,
    )


def derive_state(
    pathway: Pathway,
    enrollments: Iterable[Enrollment],
    selections: Mapping[int, UUID],
) -> PathwayState:
    """Where the student stands, from their enrollments in this pathway.

    An active enrollment puts them InProgress at its stage.  Without one,
    the furthest completed stage decides: Completed if it was the last,
    otherwise AwaitingChoice (or InProgress on an already-chosen course)
    at the stage after it.
    """
    stages = build_stages(pathway)
    mine = [e for e in enrollments if e.pathway_id == pathway.id]
    first = stages[0] if stages else None

    active = next((e for e in mine if e.is_active), None)
    if active is not None:
        idx = _stage_index(stages, active.course_id)
        stage = stages[idx] if idx is not None else None
        return _state(
            pathway.id,
            stages,
            "in_progress",
            stage,
            course_id=active.course_id,
            selections=selections,
        )

    done = [
        idx
        for e in mine
        if e.status == "completed"
        and (idx := _stage_index(stages, e.course_id)) is not None
    ]
    if not done:
        return _state(pathway.id, stages, "not_enrolled", first)

    last = max(done)
    if last == len(stages) - 1:
        return _state(pathway.id, stages, "completed", stages[last])

    nxt = stages[last + 1]
    if nxt.is_choice and nxt.choice_group not in selections:
        return _state(pathway.id, stages, "awaiting_choice", nxt)
    course_id = selections[nxt.choice_group] if nxt.is_choice else nxt.course_ids[0]
    return _state(
        pathway.id,
        stages,
        "in_progress",
        nxt,
        course_id=course_id,
        selections=selections,
    )


def _reject_terminal(state: PathwayState) -> None:
    if state.status == "completed":
        raise PathwayAlreadyCompleteError(f"pathway {state.pathway_id} is complete")
    if state.status == "not_enrolled":
        raise NotInPathwayError(f"not enrolled in pathway {state.pathway_id}")


def plan_enroll(
    pathway_id: UUID, stages: tuple[Stage, ...], course_id: UUID | None = None
) -> Transition:
    if not stages:
        raise InvalidChoiceError(f"pathway {pathway_id} has no steps")
    first = stages[0]
    choice: tuple[int, UUID] | None = None
    if first.choice_group is not None:
        if course_id is None or course_id not in first.course_ids:
            raise InvalidChoiceError(
                f"step {first.number} is a choice; pick one of {list(first.course_ids)}"
            )
        chosen = course_id
        choice = (first.choice_group, chosen)
    else:
        if course_id is not None and course_id != first.course_ids[0]:
            raise InvalidChoiceError(f"course {course_id} is not step {first.number}")
        chosen = first.course_ids[0]

    return Transition(
        kind="enroll",
        state=_state(
            pathway_id,
            stages,
            "in_progress",
            first,
            course_id=chosen,
            selections=dict([choice]) if choice is not None else None,
        ),
        open_course_id=chosen,
        choice=choice,
    )


def plan_advance(
    state: PathwayState,
    stages: tuple[Stage, ...],
    selections: Mapping[int, UUID],
    current_course_complete: bool,
) -> Transition:
    _reject_terminal(state)
    if state.status == "awaiting_choice":
        raise ChoicePendingError(
            f"step {state.current_step_number} waits for a choice"
        )
    if not current_course_complete:
        raise CourseIncompleteError(
            f"course {state.current_course_id} is not complete"
        )

    current = state.current_course_id
    idx = _stage_index(stages, current) if current is not None else None
    if idx is None:
        raise NotInPathwayError(f"course {current} is not part of the pathway")

    if idx == len(stages) - 1:
        return Transition(
            kind="complete",
            state=_state(state.pathway_id, stages, "completed", stages[idx]),
            close_course_id=current,
        )

    nxt = stages[idx + 1]
    if nxt.is_choice and nxt.choice_group not in selections:
        return Transition(
            kind="await_choice",
            state=_state(state.pathway_id, stages, "awaiting_choice", nxt),
            close_course_id=current,
        )

    course_id = selections[nxt.choice_group] if nxt.is_choice else nxt.course_ids[0]
    return Transition(
        kind="advance",
        state=_state(
            state.pathway_id,
            stages,
            "in_progress",
            nxt,
            course_id=course_id,
            selections=selections,
        ),
        close_course_id=current,
        open_course_id=course_id,
    )


def plan_choice(
    state: PathwayState, stages: tuple[Stage, ...], course_id: UUID
) -> Transition:
    _reject_terminal(state)
    if state.status != "awaiting_choice" or state.choice_group is None:
        raise InvalidChoiceError(
            f"no choice pending in pathway {state.pathway_id}"
        )

    group = state.choice_group
    stage = next((s for s in stages if s.choice_group == group), None)
    if stage is None or course_id not in stage.course_ids:
        raise InvalidChoiceError(
            f"course {course_id} is not an alternative of group {state.choice_group}"
        )

    return Transition(
        kind="choose",
        state=_state(
            state.pathway_id,
            stages,
            "in_progress",
            stage,
            course_id=course_id,
            selections={group: course_id},
        ),
        open_course_id=course_id,
        choice=(group, course_id),
    )


def display_groups(
    stages: tuple[Stage, ...], selections: Mapping[int, UUID]
) -> list[DisplayGroup]:
    """Pathway course list for rendering.

    An unresolved choice lists every alternative; a resolved one lists only
    the selected course.
    """
    groups: list[DisplayGroup] = []
    for stage in stages:
        selected = (
            selections.get(stage.choice_group) if stage.choice_group is not None else None
        )
        groups.append(
            DisplayGroup(
                step_number=stage.number,
                course_ids=(selected,) if selected is not None else stage.course_ids,
                choice_group=stage.choice_group,
                selected_course_id=selected,
            )
        )
    return groups


def course_map(
    stages: tuple[Stage, ...],
    state: PathwayState,
    enrollments: Iterable[Enrollment],
    selections: Mapping[int, UUID],
) -> list[CourseStatus]:
    completed = {
        e.course_id
        for e in enrollments
        if e.pathway_id == state.pathway_id and e.status == "completed"
    }
    current = state.current_course_id if state.status == "in_progress" else None

    out: list[CourseStatus] = []
    for group in display_groups(stages, selections):
        for course_id in group.course_ids:
            is_completed = course_id in completed
            is_current = course_id == current
            out.append(
                CourseStatus(
                    course_id=course_id,
                    step_number=group.step_number,
                    is_available=is_current or is_completed,
                    is_completed=is_completed,
                    is_current=is_current,
                    requires_choice=group.is_choice_point
                    and group.selected_course_id is None,
                    is_choice_point=group.is_choice_point,
                    is_selected_choice=group.selected_course_id == course_id,
                    choice_group=group.choice_group,
                    choice_options=group.course_ids if group.is_choice_point else (),
                )
            )
    return out
