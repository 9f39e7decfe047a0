"""Drip date resolution for a single lesson and student.

Precedence:
  1. batch timeline offset for the lesson (batch.start_date + offset days)
  2. lesson.drip_unlock_date
  3. lesson.drip_days after the enrollment date
Relative dates unlock at the start of the day, UTC.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

from app.models.course import Lesson
from app.models.enrollment import Batch, Enrollment


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=UTC)


def _as_utc(dt: datetime) -> datetime:
    # Naive datetimes from the database are stored as UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def resolve_drip_date(
    lesson: Lesson, enrollment: Enrollment | None, batch: Batch | None
) -> datetime | None:
    if batch is not None and lesson.id in batch.timeline:
        return _start_of_day(batch.start_date) + timedelta(days=batch.timeline[lesson.id])
    if lesson.drip_unlock_date is not None:
        return _as_utc(lesson.drip_unlock_date)
    if lesson.drip_days is not None and enrollment is not None:
        anchor = _as_utc(enrollment.enrolled_at).date()
        return _start_of_day(anchor) + timedelta(days=lesson.drip_days)
    return None
