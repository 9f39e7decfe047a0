"""Admin endpoints: content authoring, enrollments, LMS status."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from tests.conftest import auth, enroll, seed_course


def test_authoring_requires_admin(client: TestClient, mentor_token: str) -> None:
    resp = client.post(
        "/v1/content/courses", json={"title": "Go"}, headers=auth(mentor_token)
    )
    assert resp.status_code == 403


def test_author_course_graph(client: TestClient, admin_token: str) -> None:
    headers = auth(admin_token)

    course = client.post(
        "/v1/content/courses",
        json={"title": "SQL", "drip_enabled": True},
        headers=headers,
    )
    assert course.status_code == 201
    course_id = course.json()["id"]
    assert course.json()["sequential_unlock"] is True

    module = client.post(
        "/v1/content/modules",
        json={"course_id": course_id, "title": "Joins", "order": 1},
        headers=headers,
    )
    assert module.status_code == 201
    module_id = module.json()["id"]

    lesson = client.post(
        "/v1/content/lessons",
        json={"module_id": module_id, "title": "Inner join", "sequence_order": 1},
        headers=headers,
    )
    assert lesson.status_code == 201

    duplicate = client.post(
        "/v1/content/lessons",
        json={"module_id": module_id, "title": "Outer join", "sequence_order": 1},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "content_conflict"

    assignment = client.post(
        "/v1/content/assignments",
        json={"name": "Join drill", "recording_id": lesson.json()["id"]},
        headers=headers,
    )
    assert assignment.status_code == 201
    assert assignment.json()["submission_type"] == "text"

    listed = client.get("/v1/content/courses", headers=headers)
    assert [c["title"] for c in listed.json()] == ["SQL"]


def test_module_for_unknown_course_is_404(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/content/modules",
        json={"course_id": str(uuid.uuid4()), "title": "M", "order": 1},
        headers=auth(admin_token),
    )
    assert resp.status_code == 404


def test_assignment_needs_a_scope(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/content/assignments", json={"name": "Floating"}, headers=auth(admin_token)
    )
    assert resp.status_code == 409


def test_pathway_rejects_repeated_course(client: TestClient, admin_token: str) -> None:
    seeded = seed_course()
    cid = str(seeded.course.id)
    resp = client.post(
        "/v1/content/pathways",
        json={
            "title": "Loop",
            "steps": [
                {"step_number": 1, "course_id": cid},
                {"step_number": 2, "course_id": cid},
            ],
        },
        headers=auth(admin_token),
    )
    assert resp.status_code == 409


def test_batch_drip_timeline(
    client: TestClient,
    admin_token: str,
    student_id: uuid.UUID,
    student_token: str,
) -> None:
    seeded = seed_course(sequential=False, drip=True, lessons=1)
    lesson_id = str(seeded.lessons[0].id)

    batch = client.post(
        "/v1/content/batches",
        json={"name": "Cohort 9", "start_date": "2099-01-01", "timeline": {lesson_id: 0}},
        headers=auth(admin_token),
    )
    assert batch.status_code == 201

    enrolled = client.post(
        "/v1/enrollments",
        json={
            "student_id": str(student_id),
            "course_id": str(seeded.course.id),
            "batch_id": batch.json()["id"],
        },
        headers=auth(admin_token),
    )
    assert enrolled.status_code == 201

    body = client.get(
        f"/v1/courses/{seeded.course.id}/access", headers=auth(student_token)
    ).json()
    lesson = body["lessons"][0]
    assert lesson["lock_reason"] == "drip_locked"
    assert lesson["drip_unlock_date"].startswith("2099-01-01")
    assert body["next_drip_date"].startswith("2099-01-01")


def test_enroll_twice_is_409(
    client: TestClient, admin_token: str, student_id: uuid.UUID
) -> None:
    seeded = seed_course()
    payload = {"student_id": str(student_id), "course_id": str(seeded.course.id)}

    first = client.post("/v1/enrollments", json=payload, headers=auth(admin_token))
    second = client.post("/v1/enrollments", json=payload, headers=auth(admin_token))

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "already_enrolled"


def test_override_unlocks_sequence(
    client: TestClient,
    admin_token: str,
    student_id: uuid.UUID,
    student_token: str,
) -> None:
    seeded = seed_course(lessons=3)
    enrollment = enroll(student_id, seeded.course.id)
    url = f"/v1/courses/{seeded.course.id}/access"
    before = client.get(url, headers=auth(student_token)).json()
    assert before["lessons"][2]["unlocked"] is False

    resp = client.patch(
        f"/v1/enrollments/{enrollment.id}/access",
        json={"sequential_override": True, "sequential_enabled": False},
        headers=auth(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json()["sequential_override"] is True

    after = client.get(url, headers=auth(student_token)).json()
    assert after["policy"]["sequential"] is False
    assert all(les["unlocked"] for les in after["lessons"])


def test_override_unknown_enrollment_is_404(client: TestClient, admin_token: str) -> None:
    resp = client.patch(
        f"/v1/enrollments/{uuid.uuid4()}/access",
        json={"drip_override": True},
        headers=auth(admin_token),
    )
    assert resp.status_code == 404


def test_lms_status_gate(
    client: TestClient,
    admin_token: str,
    student_id: uuid.UUID,
    student_token: str,
) -> None:
    seeded = seed_course(sequential=False)
    enroll(student_id, seeded.course.id)
    url = f"/v1/courses/{seeded.course.id}/access"
    client.get(url, headers=auth(student_token))

    resp = client.put(
        f"/v1/students/{student_id}/lms-status",
        json={"lms_status": "inactive"},
        headers=auth(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json() == {"student_id": str(student_id), "lms_status": "inactive"}

    body = client.get(url, headers=auth(student_token)).json()
    assert {les["lock_reason"] for les in body["lessons"]} == {"fees_not_cleared"}


def test_lms_status_rejects_unknown_value(
    client: TestClient, admin_token: str
) -> None:
    resp = client.put(
        f"/v1/students/{uuid.uuid4()}/lms-status",
        json={"lms_status": "vip"},
        headers=auth(admin_token),
    )
    assert resp.status_code == 422
