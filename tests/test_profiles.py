from elevateu.auth.roles import Role

from conftest import PASSWORD, make_account, run


def test_update_profile(client, db, user):
    response = client.post("/api/user/update-profile", json={
        "first_name": "  Umaira ", "phone": "+919876543210", "dob": "1999-04-12",
    })

    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["first_name"] == "Umaira"
    assert profile["phone"] == "+919876543210"
    assert "password_hash" not in profile

    assert client.get("/api/user/profile").json()["data"]["first_name"] == "Umaira"


def test_profile_validation(client, user):
    assert client.post("/api/user/update-profile", json={"phone": "12"}).status_code == 400
    assert client.post("/api/user/update-profile", json={"dob": "2999-01-01"}).status_code == 400
    assert client.post("/api/user/update-profile", json={}).status_code == 400


def test_users_cannot_set_tutor_fields_or_edit_others(client, user):
    response = client.post("/api/user/update-profile", json={"bio": "Curious learner", "expertise": "Everything"})
    assert "expertise" not in response.json()["data"]

    other = client.post("/api/user/update-profile/USR_SOMEONE_ELSE", json={"bio": "hijacked"})
    assert other.status_code == 403


def test_tutor_updates_expertise(client, tutor):
    response = client.post("/api/tutor/update-profile", json={"expertise": "Rust", "experience": 7})

    assert response.json()["data"]["expertise"] == "Rust"
    assert response.json()["data"]["experience"] == 7


def test_email_change_by_otp(client, db, outbox, user):
    make_account(db, Role.USER, "taken@example.com")

    assert client.patch("/api/user/update-email", json={"email": "user@example.com"}).status_code == 400
    assert client.patch("/api/user/update-email", json={"email": "taken@example.com"}).status_code == 409

    response = client.patch("/api/user/update-email", json={"email": "Moved@example.com"})
    assert response.status_code == 200
    assert outbox[-1]["email"] == "moved@example.com"

    verified = client.patch("/api/user/verify-email", json={"email": "moved@example.com", "otp": outbox[-1]["otp"]})
    assert verified.status_code == 200
    assert verified.json()["data"]["email"] == "moved@example.com"


def test_password_change_by_otp(client, db, outbox, user):
    wrong = client.patch("/api/user/profile/update-password", json={
        "currentPassword": "not-it", "newPassword": "another-secret",
    })
    assert wrong.status_code == 401

    same = client.patch("/api/user/profile/update-password", json={
        "currentPassword": PASSWORD, "newPassword": PASSWORD,
    })
    assert same.status_code == 400

    response = client.patch("/api/user/profile/update-password", json={
        "currentPassword": PASSWORD, "newPassword": "another-secret",
    })
    assert response.status_code == 200

    assert client.patch("/api/user/profile/update-password/re-send-otp").status_code == 200
    code = outbox[-1]["otp"]

    verified = client.patch("/api/user/profile/update-password/verify-otp", json={"otp": code})
    assert verified.status_code == 200

    client.cookies.clear()
    login = client.post("/api/user/login", json={"email": "user@example.com", "password": "another-secret"})
    assert login.status_code == 200


def test_deactivate_account(client, db, user):
    response = client.patch("/api/user/profile/deactivate-account")

    assert response.status_code == 200
    stored = run(db.users.find_one({"user_id": user["user_id"]}))
    assert stored["is_active"] is False
