"""Pathway endpoints."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from tests.conftest import auth, seed_course


def _create_track(client: TestClient, admin_token: str) -> tuple[str, dict]:
    courses = {name: seed_course(name, lessons=1) for name in ("Intro", "Web", "Mobile")}
    resp = client.post(
        "/v1/content/pathways",
        json={
            "title": "App Developer",
            "steps": [
                {"step_number": 1, "course_id": str(courses["Intro"].course.id)},
                {
                    "step_number": 2,
                    "course_id": str(courses["Web"].course.id),
                    "choice_group": 1,
                },
                {
                    "step_number": 3,
                    "course_id": str(courses["Mobile"].course.id),
                    "choice_group": 1,
                },
            ],
        },
        headers=auth(admin_token),
    )
    assert resp.status_code == 201
    return resp.json()["id"], courses


def test_pathway_flow(
    client: TestClient, admin_token: str, student_token: str
) -> None:
    pathway_id, courses = _create_track(client, admin_token)
    headers = auth(student_token)
    base = f"/v1/pathways/{pathway_id}"

    state = client.get(f"{base}/state", headers=headers).json()
    assert state["status"] == "not_enrolled"

    resp = client.post(f"{base}/enroll", headers=headers)
    assert resp.status_code == 201
    assert resp.json()["current_course_id"] == str(courses["Intro"].course.id)

    resp = client.post(f"{base}/advance", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "course_incomplete"

    client.post(f"/v1/lessons/{courses['Intro'].lessons[0].id}/watch", headers=headers)
    resp = client.post(f"{base}/advance", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "awaiting_choice"
    assert resp.json()["has_pending_choice"] is True

    listing = client.get(f"{base}/courses", headers=headers).json()
    choice_group = next(g for g in listing["groups"] if g["is_choice_point"])
    assert choice_group["label"] == "Web OR Mobile"

    resp = client.post(f"{base}/advance", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "choice_pending"

    resp = client.post(
        f"{base}/choice", json={"course_id": str(uuid.uuid4())}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "invalid_choice"

    mobile = str(courses["Mobile"].course.id)
    resp = client.post(f"{base}/choice", json={"course_id": mobile}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["current_course_id"] == mobile

    listing = client.get(f"{base}/courses", headers=headers).json()
    step2 = next(g for g in listing["groups"] if g["step_number"] == 2)
    assert step2["course_ids"] == [mobile]
    assert step2["label"] == "Mobile"
    current = next(c for c in listing["courses"] if c["is_current"])
    assert current["course_id"] == mobile
    assert current["is_selected_choice"] is True

    client.post(f"/v1/lessons/{courses['Mobile'].lessons[0].id}/watch", headers=headers)
    resp = client.post(f"{base}/advance", headers=headers)
    assert resp.json()["status"] == "completed"

    resp = client.post(f"{base}/advance", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "pathway_already_complete"


def test_advance_without_enrollment_is_403(
    client: TestClient, admin_token: str, student_token: str
) -> None:
    pathway_id, _ = _create_track(client, admin_token)
    resp = client.post(f"/v1/pathways/{pathway_id}/advance", headers=auth(student_token))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "not_enrolled_in_pathway"


def test_unknown_pathway_is_404(client: TestClient, student_token: str) -> None:
    resp = client.get(f"/v1/pathways/{uuid.uuid4()}/state", headers=auth(student_token))
    assert resp.status_code == 404


def test_pathway_endpoints_require_student(
    client: TestClient, admin_token: str
) -> None:
    resp = client.get(f"/v1/pathways/{uuid.uuid4()}/state", headers=auth(admin_token))
    assert resp.status_code == 403


def test_choosing_course_of_another_pathway_is_409(
    client: TestClient, admin_token: str, student_token: str
) -> None:
    pathway_id, courses = _create_track(client, admin_token)
    web = str(courses["Web"].course.id)
    other = client.post(
        "/v1/content/pathways",
        json={"title": "Web Only", "steps": [{"step_number": 1, "course_id": web}]},
        headers=auth(admin_token),
    ).json()["id"]
    headers = auth(student_token)
    client.post(f"/v1/pathways/{other}/enroll", headers=headers)
    client.post(f"/v1/pathways/{pathway_id}/enroll", headers=headers)
    client.post(f"/v1/lessons/{courses['Intro'].lessons[0].id}/watch", headers=headers)
    client.post(f"/v1/pathways/{pathway_id}/advance", headers=headers)

    resp = client.post(
        f"/v1/pathways/{pathway_id}/choice", json={"course_id": web}, headers=headers
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "course_active_in_other_pathway"
