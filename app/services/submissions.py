"""Submission version precedence.

A student may resubmit an assignment; each resubmission is a new row with
version + 1.  Only the highest version is authoritative, for unlocking and
for review.  Everything that needs "the" submission goes through
latest_submission().
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal
from uuid import UUID

from app.models.progress import Submission

SubmissionState = Literal["not_submitted", "pending", "approved", "declined"]


def latest_submission(
    submissions: Iterable[Submission], assignment_id: UUID, student_id: UUID
) -> Submission | None:
    latest: Submission | None = None
    for s in submissions:
        if s.assignment_id != assignment_id or s.student_id != student_id:
            continue
        if latest is None or s.version > latest.version:
            latest = s
    return latest


def latest_by_assignment(
    submissions: Iterable[Submission], student_id: UUID
) -> dict[UUID, Submission]:
    """Index a student's submissions to the latest version per assignment."""
    out: dict[UUID, Submission] = {}
    for s in submissions:
        if s.student_id != student_id:
            continue
        current = out.get(s.assignment_id)
        if current is None or s.version > current.version:
            out[s.assignment_id] = s
    return out


def submission_state(latest: Submission | None) -> SubmissionState:
    return "not_submitted" if latest is None else latest.status


def next_version(latest: Submission | None) -> int:
    return 1 if latest is None else latest.version + 1


def can_resubmit(latest: Submission | None) -> bool:
    """No submission yet, or the latest one was declined.

    approved is read-only; pending waits for review.
    """
    return latest is None or latest.status == "declined"
