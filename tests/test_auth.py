from elevateu.auth.roles import Role
from elevateu.auth.tokens import create_token, refresh_cookie_name

from conftest import PASSWORD, make_account, run


def _signup(client, outbox, role="user", email="new@example.com"):
    response = client.post("/api/generate-otp", json={"email": email, "role": role, "name": "Newbie"})
    assert response.status_code == 200
    code = outbox[-1]["otp"]

    response = client.post("/api/verify-otp", json={"email": email, "otp": code, "role": role})
    assert response.status_code == 200

    return client.post(f"/api/{role}/signup", json={
        "email": email, "password": PASSWORD, "first_name": "Newbie", "last_name": "Learner",
    })


def test_signup_without_verified_otp_is_refused(client):
    response = client.post("/api/user/signup", json={
        "email": "nobody@example.com", "password": PASSWORD, "first_name": "Nobody",
    })

    assert response.status_code == 403
    assert response.json()["success"] is False


def test_signup_flow_sets_session_cookies(client, outbox, db):
    response = _signup(client, outbox)

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["role"] == "user"
    assert body["data"]["user"]["email"] == "new@example.com"
    assert "password_hash" not in body["data"]["user"]
    assert client.cookies.get("user_access_token")
    assert client.cookies.get("user_refresh_token")

    # the verified OTP is consumed by signup
    assert run(db.otps.count_documents({"email": "new@example.com"})) == 0

    session = client.get("/api/user/auth-load")
    assert session.status_code == 200
    assert session.json()["data"]["user"]["first_name"] == "Newbie"


def test_tutor_signup_starts_unverified(client, outbox):
    response = _signup(client, outbox, role="tutor", email="newtutor@example.com")

    assert response.status_code == 200
    tutor = response.json()["data"]["tutor"]
    assert tutor["verification_status"] == "unverified"
    assert tutor["is_admin_verified"] is False

    status = client.get("/api/tutor/is-verified")
    assert status.json()["data"] == {"isVerified": False, "status": "unverified"}


def test_generate_otp_for_registered_email_conflicts(client, db, outbox):
    make_account(db, Role.USER, "taken@example.com")

    response = client.post("/api/generate-otp", json={"email": "taken@example.com", "role": "user"})

    assert response.status_code == 409
    assert outbox == []


def test_wrong_otp_is_rejected(client, outbox):
    client.post("/api/generate-otp", json={"email": "otp@example.com", "role": "user"})
    code = outbox[-1]["otp"]
    wrong = "000000" if code != "000000" else "111111"

    response = client.post("/api/verify-otp", json={"email": "otp@example.com", "otp": wrong, "role": "user"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP"


def test_signup_validation_errors_use_error_envelope(client):
    response = client.post("/api/user/signup", json={"email": "not-an-email", "password": "123", "first_name": "Al"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    fields = {error["field"] for error in body["errors"]}
    assert {"email", "password", "first_name"} <= fields


def test_login_checks_credentials(client, db):
    make_account(db, Role.USER, "login@example.com")

    assert client.post("/api/user/login", json={"email": "missing@example.com", "password": PASSWORD}).status_code == 404
    assert client.post("/api/user/login", json={"email": "login@example.com", "password": "wrong-pass"}).status_code == 401

    response = client.post("/api/user/login", json={"email": "LOGIN@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert client.cookies.get("user_access_token")


def test_login_refused_for_blocked_account(client, db):
    make_account(db, Role.USER, "blocked@example.com", is_blocked=True)

    response = client.post("/api/user/login", json={"email": "blocked@example.com", "password": PASSWORD})

    assert response.status_code == 403


def test_login_reactivates_deactivated_account(client, db):
    account = make_account(db, Role.USER, "sleepy@example.com", is_active=False)

    response = client.post("/api/user/login", json={"email": "sleepy@example.com", "password": PASSWORD})

    assert response.status_code == 200
    stored = run(db.users.find_one({"user_id": account["user_id"]}))
    assert stored["is_active"] is True
    assert stored["last_login"] is not None


def test_expired_access_cookie_is_reminted_from_refresh_cookie(client, db):
    account = make_account(db, Role.USER, "refresh@example.com")
    client.cookies.set(refresh_cookie_name("user"), create_token(account["user_id"], "user", "refresh"))

    response = client.get("/api/user/auth-load")

    assert response.status_code == 200
    assert "user_access_token" in response.cookies


def test_token_of_another_role_is_rejected(client, db):
    account = make_account(db, Role.USER, "mixed@example.com")
    client.cookies.set("user_access_token", create_token(account["user_id"], "tutor", "access"))

    assert client.get("/api/user/auth-load").status_code == 401


def test_missing_cookies_are_unauthorized(client):
    assert client.get("/api/user/profile").status_code == 401
    assert client.get("/api/admin/dashboard").status_code == 401


def test_blocked_user_is_locked_out_but_can_check_status(client, db, user):
    run(db.users.update_one({"user_id": user["user_id"]}, {"$set": {"is_blocked": True}}))

    assert client.get("/api/user/profile").status_code == 403

    response = client.get("/api/user/isblocked")
    assert response.status_code == 403
    assert response.json()["isBlocked"] is True


def test_forgot_and_reset_password(client, db, outbox):
    make_account(db, Role.TUTOR, "forgetful@example.com")

    response = client.post("/api/tutor/forgot-password", json={"email": "forgetful@example.com"})
    assert response.status_code == 200
    code = outbox[-1]["otp"]

    response = client.post("/api/tutor/reset-password", json={
        "email": "forgetful@example.com", "otp": code, "newPassword": "brand-new-pass",
    })
    assert response.status_code == 200

    login = client.post("/api/tutor/login", json={"email": "forgetful@example.com", "password": "brand-new-pass"})
    assert login.status_code == 200


def test_admin_signup_is_bootstrap_only(client):
    first = client.post("/api/admin/signup", json={
        "email": "root@example.com", "password": PASSWORD, "first_name": "Root",
    })
    assert first.status_code == 200
    assert first.json()["data"]["role"] == "admin"

    second = client.post("/api/admin/signup", json={
        "email": "another@example.com", "password": PASSWORD, "first_name": "Another",
    })
    assert second.status_code == 403


def test_admin_refresh_token(client, db):
    account = make_account(db, Role.ADMIN, "refresh-admin@example.com")
    client.cookies.set(refresh_cookie_name("admin"), create_token(account["admin_id"], "admin", "refresh"))

    response = client.patch("/api/admin/refresh-token")

    assert response.status_code == 200
    assert "admin_access_token" in response.cookies


def test_logout_clears_cookies(client, user):
    response = client.delete("/api/user/logout")

    assert response.status_code == 200
    cleared = response.headers.get_list("set-cookie")
    assert any(header.startswith("user_access_token=") and "Max-Age=0" in header for header in cleared)
    assert any(header.startswith("user_refresh_token=") for header in cleared)
