"""Domain errors raised by the progress and pathway services.

Lock reasons (fees_not_cleared, drip_locked, previous_*) are NOT errors:
the evaluator returns them as data.  The exceptions here are rejected
actions, translated into HTTP responses by the routers.
"""

from __future__ import annotations

from uuid import UUID


class NotFoundError(LookupError):
    """A referenced course, lesson, assignment, pathway, ... does not exist."""

    def __init__(self, kind: str, entity_id: UUID | str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class NotEnrolledError(Exception):
    pass


class LessonLockedError(Exception):
    """Tried to watch a lesson the evaluator reports as locked."""

    def __init__(self, lesson_id: UUID, reason: str) -> None:
        super().__init__(f"lesson {lesson_id} is locked: {reason}")
        self.lesson_id = lesson_id
        self.reason = reason


class SubmissionNotAllowedError(Exception):
    def __init__(self, assignment_id: UUID, reason: str) -> None:
        super().__init__(f"assignment {assignment_id} cannot be submitted: {reason}")
        self.assignment_id = assignment_id
        self.reason = reason


class SubmissionNotReviewableError(Exception):
    pass


class DuplicateEnrollmentError(ValueError):
    pass


# --- Pathway transitions ---


class PathwayTransitionError(Exception):
    """Base class for rejected pathway transitions."""

    code = "pathway_transition_error"


class CourseIncompleteError(PathwayTransitionError):
    """advance() while the current course still has locked or pending items."""

    code = "course_incomplete"


class InvalidChoiceError(PathwayTransitionError):
    """make_choice() outside AwaitingChoice, or with a course not in the group."""

    code = "invalid_choice"


class PathwayAlreadyCompleteError(PathwayTransitionError):
    code = "pathway_already_complete"


class ConcurrentAdvanceConflictError(PathwayTransitionError):
    """Another request already applied this transition."""

    code = "concurrent_advance_conflict"


class CourseInOtherPathwayError(PathwayTransitionError):
    """The next course is already active for the student through another pathway."""

    code = "course_active_in_other_pathway"


class NotInPathwayError(PathwayTransitionError):
    code = "not_enrolled_in_pathway"


class ChoicePendingError(PathwayTransitionError):
    """advance() while the next stage still waits for make_choice()."""

    code = "choice_pending"


class ContentConflictError(ValueError):
    """Authored content violates a uniqueness rule (e.g. sequence_order)."""
