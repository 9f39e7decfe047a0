from __future__ import annotations

import asyncio
import sys
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.models.course import Assignment, Course, CourseModule, Lesson  # noqa: E402
from app.models.enrollment import Enrollment  # noqa: E402
from app.repos.store import memory_store, reset_memory_store  # noqa: E402
from app.services import token_service  # noqa: E402
from app.services.cache import cache_service  # noqa: E402

ENROLLED_AT = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Clear the in-memory repositories between tests."""
    reset_memory_store()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(subject: uuid.UUID | str, roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(subject), roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def student_token(student_id: uuid.UUID) -> str:
    return mint_token(student_id, ["student"])


@pytest.fixture
def mentor_token() -> str:
    return mint_token(uuid.uuid4(), ["mentor"])


@pytest.fixture
def admin_token() -> str:
    return mint_token(uuid.uuid4(), ["admin"])


# ---------------------------------------------------------------------------
# Content seeding helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    modules: list[CourseModule] = field(default_factory=list)
    lessons: list[Lesson] = field(default_factory=list)
    assignments: list[Assignment] = field(default_factory=list)


def seed_course(
    title: str = "Python Basics",
    *,
    lessons: int = 3,
    sequential: bool = True,
    drip: bool = False,
    assignment_on: tuple[int, ...] = (),
) -> SeededCourse:
    """One module with `lessons` lessons (sequence_order 1..n).

    assignment_on lists lesson indexes (0-based) that trigger an assignment.
    """

    async def _seed() -> SeededCourse:
        course = Course.new(title=title, sequential_unlock=sequential, drip_enabled=drip)
        await memory_store.content.add_course(course)
        module = CourseModule.new(course_id=course.id, title="Module 1", order=1)
        await memory_store.content.add_module(module)
        seeded = SeededCourse(course=course, modules=[module])
        for i in range(lessons):
            lesson = Lesson.new(
                module_id=module.id, title=f"Lesson {i + 1}", sequence_order=i + 1
            )
            await memory_store.content.add_lesson(lesson)
            seeded.lessons.append(lesson)
        for i in assignment_on:
            assignment = Assignment.new(
                name=f"Assignment {i + 1}", recording_id=seeded.lessons[i].id
            )
            await memory_store.content.add_assignment(assignment)
            seeded.assignments.append(assignment)
        return seeded

    return asyncio.run(_seed())


def enroll(student_id: uuid.UUID, course_id: uuid.UUID, **kwargs) -> Enrollment:
    enrollment = Enrollment.new(
        student_id=student_id, course_id=course_id, enrolled_at=ENROLLED_AT, **kwargs
    )
    asyncio.run(memory_store.enrollments.add(enrollment))
    return enrollment
