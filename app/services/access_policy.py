"""Two-level access policy resolution.

Courses carry default drip/sequential settings; an enrollment may override
either one for a single student.  This is the only place the override rule
lives:

    effective(setting) = enrollment.override ? enrollment.value : course.default
"""

from __future__ import annotations

from dataclasses import dataclass

from app.models.course import Course
from app.models.enrollment import Enrollment


@dataclass(frozen=True, slots=True)
class AccessPolicy:
    sequential: bool
    drip: bool


def effective(override: bool, value: bool, default: bool) -> bool:
    return value if override else default


def resolve_access_policy(course: Course, enrollment: Enrollment | None) -> AccessPolicy:
    if enrollment is None:
        return AccessPolicy(sequential=course.sequential_unlock, drip=course.drip_enabled)
    return AccessPolicy(
        sequential=effective(
            enrollment.sequential_override,
            enrollment.sequential_enabled,
            course.sequential_unlock,
        ),
        drip=effective(
            enrollment.drip_override, enrollment.drip_enabled, course.drip_enabled
        ),
    )
