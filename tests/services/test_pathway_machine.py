"""Tests for the pathway transition state machine (pure functions)."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime

import pytest

from app.models.enrollment import Enrollment
from app.models.pathway import Pathway, PathwayStep
from app.services import pathway_machine as pm
from app.services.errors import (
    ChoicePendingError,
    CourseIncompleteError,
    InvalidChoiceError,
    NotInPathwayError,
    PathwayAlreadyCompleteError,
)

NOW = datetime(2026, 3, 1, tzinfo=UTC)
STUDENT = uuid.uuid4()

A, X, Y, Z = (uuid.uuid4() for _ in range(4))


def _pathway() -> Pathway:
    """A -> (X OR Y) -> Z"""
    return Pathway.new(
        title="Data Track",
        steps=(
            PathwayStep(step_number=1, course_id=A),
            PathwayStep(step_number=2, course_id=X, choice_group=1),
            PathwayStep(step_number=3, course_id=Y, choice_group=1),
            PathwayStep(step_number=4, course_id=Z),
        ),
    )


def _enrollment(pathway: Pathway, course_id: uuid.UUID, status: str = "active") -> Enrollment:
    e = Enrollment.new(
        student_id=STUDENT, course_id=course_id, enrolled_at=NOW, pathway_id=pathway.id
    )
    return replace(e, status=status)  # type: ignore[arg-type]


# ---- stages ----


def test_choice_group_collapses_into_one_stage() -> None:
    stages = pm.build_stages(_pathway())
    assert [s.number for s in stages] == [1, 2, 4]
    assert stages[1].course_ids == (X, Y)
    assert stages[1].is_choice is True
    assert stages[2].is_choice is False


# ---- derive_state ----


def test_no_enrollments_is_not_enrolled_at_first_step() -> None:
    state = pm.derive_state(_pathway(), [], {})
    assert state.status == "not_enrolled"
    assert state.current_step_number == 1
    assert state.total_steps == 3


def test_active_enrollment_is_in_progress() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A)], {})
    assert state.status == "in_progress"
    assert state.current_course_id == A


def test_completed_step_before_unresolved_choice_awaits_choice() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A, "completed")], {})
    assert state.status == "awaiting_choice"
    assert state.current_step_number == 2
    assert state.choice_group == 1
    assert state.has_pending_choice is True


def test_last_stage_completed_is_completed() -> None:
    pathway = _pathway()
    enrollments = [
        _enrollment(pathway, A, "completed"),
        _enrollment(pathway, Y, "completed"),
        _enrollment(pathway, Z, "completed"),
    ]
    state = pm.derive_state(pathway, enrollments, {1: Y})
    assert state.status == "completed"
    assert state.is_completed is True


def test_enrollments_in_other_pathways_are_ignored() -> None:
    pathway = _pathway()
    foreign = replace(_enrollment(pathway, A), pathway_id=uuid.uuid4())
    assert pm.derive_state(pathway, [foreign], {}).status == "not_enrolled"


# ---- enroll ----


def test_enroll_opens_first_course() -> None:
    pathway = _pathway()
    t = pm.plan_enroll(pathway.id, pm.build_stages(pathway))
    assert t.kind == "enroll"
    assert t.open_course_id == A
    assert t.close_course_id is None
    assert t.state.status == "in_progress"
    assert t.state.current_step_number == 1


def test_enroll_with_choice_first_stage_requires_alternative() -> None:
    pathway = Pathway.new(
        title="Pick",
        steps=(
            PathwayStep(step_number=1, course_id=X, choice_group=7),
            PathwayStep(step_number=2, course_id=Y, choice_group=7),
        ),
    )
    stages = pm.build_stages(pathway)
    with pytest.raises(InvalidChoiceError):
        pm.plan_enroll(pathway.id, stages)

    t = pm.plan_enroll(pathway.id, stages, Y)
    assert t.open_course_id == Y
    assert t.choice == (7, Y)
    assert t.state.selected_choice_course_id == Y


def test_enroll_in_empty_pathway_is_rejected() -> None:
    with pytest.raises(InvalidChoiceError):
        pm.plan_enroll(uuid.uuid4(), ())


# ---- advance ----


def test_advance_into_choice_stage_awaits_choice_without_opening() -> None:
    pathway = _pathway()
    stages = pm.build_stages(pathway)
    state = pm.derive_state(pathway, [_enrollment(pathway, A)], {})

    t = pm.plan_advance(state, stages, {}, current_course_complete=True)

    assert t.kind == "await_choice"
    assert t.close_course_id == A
    assert t.open_course_id is None
    assert t.state.status == "awaiting_choice"
    assert t.state.current_step_number == 2


def test_advance_requires_complete_course() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A)], {})
    with pytest.raises(CourseIncompleteError):
        pm.plan_advance(state, pm.build_stages(pathway), {}, current_course_complete=False)


def test_advance_while_awaiting_choice_is_rejected() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A, "completed")], {})
    with pytest.raises(ChoicePendingError):
        pm.plan_advance(state, pm.build_stages(pathway), {}, current_course_complete=True)


def test_advance_from_chosen_course_moves_to_next_single_stage() -> None:
    pathway = _pathway()
    enrollments = [_enrollment(pathway, A, "completed"), _enrollment(pathway, Y)]
    state = pm.derive_state(pathway, enrollments, {1: Y})

    t = pm.plan_advance(state, pm.build_stages(pathway), {1: Y}, True)

    assert t.kind == "advance"
    assert t.close_course_id == Y
    assert t.open_course_id == Z
    assert t.state.current_step_number == 4


def test_advance_on_last_stage_completes() -> None:
    pathway = _pathway()
    enrollments = [
        _enrollment(pathway, A, "completed"),
        _enrollment(pathway, X, "completed"),
        _enrollment(pathway, Z),
    ]
    state = pm.derive_state(pathway, enrollments, {1: X})

    t = pm.plan_advance(state, pm.build_stages(pathway), {1: X}, True)

    assert t.kind == "complete"
    assert t.open_course_id is None
    assert t.state.status == "completed"


def test_terminal_and_not_enrolled_states_reject_everything() -> None:
    pathway = _pathway()
    stages = pm.build_stages(pathway)
    done = [
        _enrollment(pathway, A, "completed"),
        _enrollment(pathway, X, "completed"),
        _enrollment(pathway, Z, "completed"),
    ]
    completed = pm.derive_state(pathway, done, {1: X})

    with pytest.raises(PathwayAlreadyCompleteError):
        pm.plan_advance(completed, stages, {1: X}, True)
    with pytest.raises(PathwayAlreadyCompleteError):
        pm.plan_choice(completed, stages, Y)

    outside = pm.derive_state(pathway, [], {})
    with pytest.raises(NotInPathwayError):
        pm.plan_advance(outside, stages, {}, True)


# ---- choice ----


def test_choice_opens_selected_course_at_same_step() -> None:
    pathway = _pathway()
    stages = pm.build_stages(pathway)
    state = pm.derive_state(pathway, [_enrollment(pathway, A, "completed")], {})

    t = pm.plan_choice(state, stages, Y)

    assert t.kind == "choose"
    assert t.open_course_id == Y
    assert t.close_course_id is None
    assert t.choice == (1, Y)
    assert t.state.status == "in_progress"
    assert t.state.current_step_number == 2
    assert t.state.selected_choice_course_id == Y


def test_choice_outside_group_is_invalid() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A, "completed")], {})
    with pytest.raises(InvalidChoiceError):
        pm.plan_choice(state, pm.build_stages(pathway), Z)


def test_choice_while_in_progress_is_invalid() -> None:
    pathway = _pathway()
    state = pm.derive_state(pathway, [_enrollment(pathway, A)], {})
    with pytest.raises(InvalidChoiceError):
        pm.plan_choice(state, pm.build_stages(pathway), X)


# ---- display ----


def test_unresolved_choice_lists_all_alternatives() -> None:
    groups = pm.display_groups(pm.build_stages(_pathway()), {})
    choice = groups[1]
    assert choice.is_choice_point is True
    assert choice.course_ids == (X, Y)
    assert choice.label({X: "Pandas", Y: "Spark"}) == "Pandas OR Spark"


def test_resolved_choice_shows_only_selected_course() -> None:
    groups = pm.display_groups(pm.build_stages(_pathway()), {1: Y})
    assert groups[1].course_ids == (Y,)
    assert groups[1].selected_course_id == Y


def test_course_map_flags() -> None:
    pathway = _pathway()
    stages = pm.build_stages(pathway)
    enrollments = [_enrollment(pathway, A, "completed")]
    state = pm.derive_state(pathway, enrollments, {})

    by_course = {c.course_id: c for c in pm.course_map(stages, state, enrollments, {})}

    assert by_course[A].is_completed is True
    assert by_course[A].is_available is True
    assert by_course[X].requires_choice is True
    assert by_course[X].choice_options == (X, Y)
    assert by_course[X].is_available is False
    assert by_course[Z].is_available is False
