import json

from elevateu.auth.roles import Role

from conftest import course_payload, login_as, make_account, make_published_course, run


def _create(client, category, **overrides):
    response = client.post("/api/tutor/create-course", json=course_payload(category["category_id"], **overrides))
    assert response.status_code == 201
    return response.json()["data"]


def test_tutor_creates_draft_course(client, tutor, category, db):
    course = _create(client, category)

    assert course["status"] == "draft"
    assert course["is_published"] is False
    lessons = course["modules"][0]["lessons"]
    assert all(lesson["lesson_id"].startswith("LSN_") for lesson in lessons)
    assert course["modules"][0]["module_id"].startswith("MOD_")

    stored_tutor = run(db.tutors.find_one({"tutor_id": tutor["tutor_id"]}))
    assert stored_tutor["course_count"] == 1


def test_course_titles_are_unique_ignoring_case(client, tutor, category):
    _create(client, category)

    response = client.post("/api/tutor/create-course", json=course_payload(category["category_id"], title="python from scratch"))
    assert response.status_code == 409

    check = client.get("/api/tutor/check-title", params={"title": "PYTHON FROM SCRATCH"})
    assert check.json()["data"]["exists"] is True


def test_update_course_ignores_null_fields(client, tutor, category):
    course = _create(client, category)

    empty = client.post("/api/tutor/update-course", json={"course_id": course["course_id"], "title": None})
    assert empty.status_code == 400

    response = client.post("/api/tutor/update-course", json={
        "course_id": course["course_id"], "title": None, "modules": None, "price": 450,
    })
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["title"] == course["title"]
    assert updated["price"] == 450
    assert len(updated["modules"]) == len(course["modules"])


def test_unverified_tutor_cannot_publish(client, db, category):
    tutor = make_account(db, Role.TUTOR, "fresh@example.com", "Fresh")
    login_as(client, "tutor", tutor["tutor_id"])
    course = _create(client, category)

    response = client.post("/api/tutor/publish-course", json={"course_id": course["course_id"]})

    assert response.status_code == 403


def test_incomplete_course_lists_publish_errors(client, tutor, category):
    course = _create(client, category, modules=[], thumbnail=None)

    response = client.post("/api/tutor/publish-course", json={"course_id": course["course_id"]})

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert "Thumbnail is required" in errors
    assert "At least one module is required" in errors


def test_publish_and_approve_workflow(client, db, admin, tutor, category):
    course = _create(client, category)
    course_id = course["course_id"]

    response = client.post("/api/tutor/publish-course", json={"course_id": course_id})
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "pending"

    admin_notes = run(db.notifications.find({"recipient_id": admin["admin_id"]}).to_list(length=None))
    assert [note["type"] for note in admin_notes] == ["publish_request"]

    # locked while under review
    edit = client.post("/api/tutor/update-course", json={"course_id": course_id, "price": 999})
    assert edit.status_code == 400

    pending = client.get("/api/admin/pending-request")
    assert [c["course_id"] for c in pending.json()["data"]] == [course_id]

    review = client.post("/api/admin/verify-course", json={"course_id": course_id, "action": "approve"})
    assert review.status_code == 200
    approved = review.json()["data"]
    assert approved["status"] == "approved"
    assert approved["is_published"] is True

    tutor_notes = run(db.notifications.find({"recipient_id": tutor["tutor_id"]}).to_list(length=None))
    assert "course_approved" in [note["type"] for note in tutor_notes]

    # a second review finds nothing pending
    again = client.post("/api/admin/verify-course", json={"course_id": course_id, "action": "approve"})
    assert again.status_code == 400

    catalog = client.get("/api/courses")
    assert [c["course_id"] for c in catalog.json()["data"]] == [course_id]
    assert catalog.json()["data"][0]["tutor_name"] == "Tara Example"


def test_reject_needs_reason_and_returns_course_to_draft(client, db, admin, tutor, category):
    course = _create(client, category)
    client.post("/api/tutor/publish-course", json={"course_id": course["course_id"]})

    missing_reason = client.post("/api/admin/verify-course", json={"course_id": course["course_id"], "action": "reject"})
    assert missing_reason.status_code == 400

    response = client.post("/api/admin/verify-course", json={
        "course_id": course["course_id"], "action": "reject", "reason": "Audio is too quiet",
    })
    assert response.status_code == 200
    rejected = response.json()["data"]
    assert rejected["status"] == "draft"
    assert rejected["rejection_reason"] == "Audio is too quiet"

    # editable again and can be resubmitted
    assert client.post("/api/tutor/update-course", json={"course_id": course["course_id"], "price": 450}).status_code == 200
    assert client.post("/api/tutor/publish-course", json={"course_id": course["course_id"]}).status_code == 200


def test_catalog_details_hide_locked_videos(client, published_course):
    response = client.get(f"/api/courses/{published_course['course_id']}")

    assert response.status_code == 200
    lessons = response.json()["data"]["modules"][0]["lessons"]
    assert lessons[0]["video_url"] == "https://cdn.example.com/1.mp4"
    assert lessons[1]["video_url"] is None


def test_draft_course_is_not_public(client, tutor, category):
    course = _create(client, category)

    assert client.get(f"/api/courses/{course['course_id']}").status_code == 404


def test_suspend_and_allow_course(client, admin, published_course):
    course_id = published_course["course_id"]

    response = client.post("/api/admin/course-status", json={"course_id": course_id, "action": "suspend"})
    assert response.status_code == 200
    assert client.get(f"/api/courses/{course_id}").status_code == 404

    response = client.post("/api/admin/course-status", json={"course_id": course_id, "action": "allow"})
    assert response.status_code == 200
    assert client.get(f"/api/courses/{course_id}").status_code == 200


def test_course_with_students_cannot_be_deleted(client, db, admin, user, published_course):
    run(db.enrolled_courses.insert_one({
        "enrollment_id": "ENR_1", "user_id": user["user_id"], "course_id": published_course["course_id"],
    }))

    assert client.delete(f"/api/tutor/delete-course/{published_course['course_id']}").status_code == 409
    assert client.delete(f"/api/admin/delete-course/{published_course['course_id']}").status_code == 409


def test_catalog_filters_by_price_and_search(client, db, tutor, category):
    cheap = make_published_course(db, tutor["tutor_id"], category["category_id"], title="Intro to Git", price=50)
    make_published_course(db, tutor["tutor_id"], category["category_id"], title="Advanced Rust", price=900)

    response = client.get("/api/courses", params={"filter": json.dumps({"priceRange": [0, 100]})})
    assert [c["course_id"] for c in response.json()["data"]] == [cheap["course_id"]]

    response = client.get("/api/courses", params={"filter": json.dumps({"search": "rust", "sort": "price-high"})})
    assert [c["title"] for c in response.json()["data"]] == ["Advanced Rust"]

    assert client.get("/api/courses", params={"filter": "{not json"}).status_code == 400
