import pytest

from conftest import make_published_course, run


@pytest.fixture
def free_course(db, tutor, category):
    return make_published_course(db, tutor["tutor_id"], category["category_id"], title="Free Taster", price=0)


def _lessons(course):
    return [lesson["lesson_id"] for lesson in course["modules"][0]["lessons"]]


def test_enroll_in_free_course(client, db, user, free_course):
    response = client.post("/api/user/enroll-course", json={"course_id": free_course["course_id"]})

    assert response.status_code == 201
    assert response.json()["data"]["progress"] == 0.0

    stored = run(db.courses.find_one({"course_id": free_course["course_id"]}))
    assert stored["enroll_count"] == 1

    again = client.post("/api/user/enroll-course", json={"course_id": free_course["course_id"]})
    assert again.status_code == 409

    check = client.get(f"/api/user/check-enrollment/{free_course['course_id']}")
    assert check.json()["data"] == {"isEnrolled": True}

    enrolled = client.get("/api/user/enrolled-courses")
    assert [e["course"]["title"] for e in enrolled.json()["data"]] == ["Free Taster"]


def test_paid_course_needs_payment(client, user, published_course):
    response = client.post("/api/user/enroll-course", json={"course_id": published_course["course_id"]})

    assert response.status_code == 402


def test_learning_endpoints_need_enrollment(client, user, published_course):
    course_id = published_course["course_id"]
    lesson_id = _lessons(published_course)[0]

    assert client.get(f"/api/user/check-enrollment/{course_id}").json()["data"] == {"isEnrolled": False}
    assert client.get("/api/user/lesson", params={"course_id": course_id, "lesson_id": lesson_id}).status_code == 403
    assert client.patch(f"/api/user/update-progress-tracker/{course_id}", json={"lesson_id": lesson_id}).status_code == 403
    assert client.get(f"/api/user/enrolled-course/course-details/{course_id}").status_code == 403


def test_progress_certificate_and_reset(client, db, user, free_course):
    course_id = free_course["course_id"]
    first, second = _lessons(free_course)
    client.post("/api/user/enroll-course", json={"course_id": course_id})

    tracker = client.patch(f"/api/user/update-progress-tracker/{course_id}", json={"lesson_id": second})
    assert tracker.json()["data"] == {"current_lesson": second}

    response = client.put("/api/user/enrolled-course/lesson-status", json={"course_id": course_id, "lesson_id": first})
    assert response.status_code == 200
    assert response.json()["data"]["progress"] == 50.0
    assert response.json()["data"]["completed_modules"] == []

    lesson = client.get("/api/user/lesson", params={"course_id": course_id, "lesson_id": first})
    assert lesson.json()["data"]["is_completed"] is True
    assert lesson.json()["data"]["module_title"] == "Basics"

    module_id = free_course["modules"][0]["module_id"]
    response = client.put("/api/user/enrolled-course/lesson-status", json={"course_id": course_id, "module_id": module_id})
    finished = response.json()["data"]
    assert finished["progress"] == 100.0
    assert finished["is_completed"] is True
    assert finished["completed_modules"] == [module_id]
    certificate_id = finished["certificate"]["certificate_id"]
    assert certificate_id.startswith("CERT")

    notes = run(db.notifications.find({"recipient_id": user["user_id"]}).to_list(length=None))
    assert [note["type"] for note in notes] == ["course_completed"]

    reset = client.put(f"/api/user/reset-progress/{course_id}")
    assert reset.json()["data"]["progress"] == 0.0
    assert reset.json()["data"]["is_completed"] is False
    assert reset.json()["data"]["certificate"]["certificate_id"] == certificate_id

    certificates = client.get("/api/user/certificates").json()["data"]
    assert [c["certificate_id"] for c in certificates] == [certificate_id]
    assert certificates[0]["course_title"] == "Free Taster"
    assert certificates[0]["tutor_name"] == "Tara Example"


def test_unmarking_a_lesson_lowers_progress(client, user, free_course):
    course_id = free_course["course_id"]
    first, _ = _lessons(free_course)
    client.post("/api/user/enroll-course", json={"course_id": course_id})
    client.put("/api/user/enrolled-course/lesson-status", json={"course_id": course_id, "lesson_id": first})

    response = client.put("/api/user/enrolled-course/lesson-status", json={
        "course_id": course_id, "lesson_id": first, "completed": False,
    })

    assert response.json()["data"]["progress"] == 0.0
    status = client.get(f"/api/user/enrolled-course/current-status/{course_id}")
    assert status.json()["data"]["completed_lessons"] == []


def test_lesson_status_needs_lesson_or_module(client, user, free_course):
    client.post("/api/user/enroll-course", json={"course_id": free_course["course_id"]})

    response = client.put("/api/user/enrolled-course/lesson-status", json={"course_id": free_course["course_id"]})

    assert response.status_code == 400


# ==================== BOOKMARKS & CART ====================

def test_bookmarks(client, user, published_course):
    course_id = published_course["course_id"]

    assert client.post("/api/user/bookmark-course", json={"course_id": course_id}).status_code == 200
    assert client.get(f"/api/user/isBookmarked-course/{course_id}").json()["data"] == {"isBookmarked": True}
    assert [c["course_id"] for c in client.get("/api/user/bookmark-course").json()["data"]] == [course_id]

    client.patch(f"/api/user/bookmark-course/{course_id}")
    assert client.get(f"/api/user/isBookmarked-course/{course_id}").json()["data"] == {"isBookmarked": False}

    assert client.post("/api/user/bookmark-course", json={"course_id": "CRS_MISSING"}).status_code == 404


def test_cart_is_cleared_by_enrollment(client, db, user, free_course):
    course_id = free_course["course_id"]

    assert client.post("/api/user/cart", json={"course_id": course_id}).status_code == 200
    details = client.get(f"/api/user/cart/{course_id}").json()["data"]
    assert details["in_cart"] is True
    assert details["pricing"]["final_price"] == 0.0

    client.post("/api/user/enroll-course", json={"course_id": course_id})

    stored = run(db.users.find_one({"user_id": user["user_id"]}))
    assert stored["cart"] == []
    assert client.post("/api/user/cart", json={"course_id": course_id}).status_code == 409
