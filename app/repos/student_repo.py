from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.enrollment import LmsStatus, StudentAccount


class StudentRepo(Protocol):
    async def get(self, student_id: UUID) -> StudentAccount | None: ...
    async def set_lms_status(
        self, student_id: UUID, lms_status: LmsStatus
    ) -> StudentAccount: ...


class InMemoryStudentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, StudentAccount] = {}

    def clear(self) -> None:
        self._by_id.clear()

    async def get(self, student_id: UUID) -> StudentAccount | None:
        return self._by_id.get(student_id)

    async def set_lms_status(
        self, student_id: UUID, lms_status: LmsStatus
    ) -> StudentAccount:
        account = StudentAccount(student_id=student_id, lms_status=lms_status)
        self._by_id[student_id] = account
        return account
