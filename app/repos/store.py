"""Repository bundle handed to the services.

One Store per request: Postgres repos sharing the request's AsyncSession
when DATABASE_URL is configured, otherwise the process-wide in-memory
repos below.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.repos.content_repo import ContentRepo, InMemoryContentRepo
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.pg_content_repo import PgContentRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_student_repo import PgStudentRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.student_repo import InMemoryStudentRepo, StudentRepo


@dataclass(frozen=True, slots=True)
class Store:
    content: ContentRepo
    progress: ProgressRepo
    enrollments: EnrollmentRepo
    students: StudentRepo


def pg_store(session: AsyncSession) -> Store:
    return Store(
        content=PgContentRepo(session),
        progress=PgProgressRepo(session),
        enrollments=PgEnrollmentRepo(session),
        students=PgStudentRepo(session),
    )


memory_content = InMemoryContentRepo()
memory_progress = InMemoryProgressRepo()
memory_enrollments = InMemoryEnrollmentRepo()
memory_students = InMemoryStudentRepo()

memory_store = Store(
    content=memory_content,
    progress=memory_progress,
    enrollments=memory_enrollments,
    students=memory_students,
)


def reset_memory_store() -> None:
    """Drop all in-memory state (tests)."""
    memory_content.clear()
    memory_progress.clear()
    memory_enrollments.clear()
    memory_students.clear()
