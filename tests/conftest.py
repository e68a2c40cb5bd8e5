"""
Shared fixtures: an in-memory Mongo (mongomock-motor), a TestClient running
the app's startup / shutdown, captured OTP mails and seeded accounts.
"""

import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from elevateu.auth.passwords import hash_password
from elevateu.auth.roles import Role
from elevateu.auth.service import insert_account, new_account_document
from elevateu.auth.tokens import access_cookie_name, create_token
from elevateu.core import mailer
from elevateu.core.database import db_manager
from elevateu.core.rate_limiting import limiter
from elevateu.courses import database as courses_db
from elevateu.main import app

PASSWORD = "secret123"


def run(coro):
    """Drive a coroutine from a synchronous test"""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def login_as(client: TestClient, role: str, account_id: str):
    client.cookies.set(access_cookie_name(role), create_token(account_id, role, "access"))


def make_account(db, role: Role, email: str, first_name: str = "Tester", **extra) -> dict:
    doc = new_account_document(
        role, email, first_name, "Example",
        password_hash=hash_password(PASSWORD), is_verified=True,
    )
    doc.update(extra)
    run(insert_account(db, role, doc))
    doc.pop("_id", None)
    return doc


def course_payload(category_id: str, title: str = "Python From Scratch", price: float = 500.0, **overrides) -> dict:
    data = {
        "title": title,
        "description": "Learn Python step by step",
        "category_id": category_id,
        "price": price,
        "discount": 0,
        "thumbnail": "https://cdn.example.com/thumb.png",
        "level": "Beginner",
        "has_certification": True,
        "modules": [
            {
                "title": "Basics",
                "lessons": [
                    {"title": "Intro", "video_url": "https://cdn.example.com/1.mp4", "is_free": True, "duration": 5},
                    {"title": "Variables", "video_url": "https://cdn.example.com/2.mp4", "duration": 10},
                ],
            },
        ],
    }
    data.update(overrides)
    return data


def make_published_course(db, tutor_id: str, category_id: str, **overrides) -> dict:
    course = run(courses_db.create_course(db, course_payload(category_id, **overrides), tutor_id))
    run(db.courses.update_one(
        {"course_id": course["course_id"]},
        {"$set": {"status": "approved", "is_published": True, "published_at": datetime.utcnow()}},
    ))
    return run(courses_db.get_course(db, course["course_id"]))


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["elevateu_test"]
    db_manager.use(database)
    yield database
    db_manager.db = None


@pytest.fixture
def outbox(monkeypatch):
    """Every OTP mail the app tries to send"""
    sent = []

    async def capture(email, name, otp):
        sent.append({"email": email, "name": name, "otp": otp})
        return True

    monkeypatch.setattr(mailer, "send_otp_email", capture)
    monkeypatch.setattr(mailer, "send_reset_password_email", capture)
    return sent


@pytest.fixture
def client(db, outbox):
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def category(db):
    doc = {
        "category_id": "CAT_PROGRAMMING",
        "name": "Programming",
        "name_key": "programming",
        "description": None,
        "icon": None,
        "is_active": True,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    run(db.categories.insert_one(doc))
    doc.pop("_id", None)
    return doc


@pytest.fixture
def admin(client, db):
    account = make_account(db, Role.ADMIN, "admin@example.com", "Admin")
    login_as(client, "admin", account["admin_id"])
    return account


@pytest.fixture
def tutor(client, db):
    account = make_account(
        db, Role.TUTOR, "tutor@example.com", "Tara",
        bio="Ten years of teaching", expertise="Python",
        is_admin_verified=True, verification_status="approved",
    )
    login_as(client, "tutor", account["tutor_id"])
    return account


@pytest.fixture
def user(client, db):
    account = make_account(db, Role.USER, "user@example.com", "Uma")
    login_as(client, "user", account["user_id"])
    return account


@pytest.fixture
def published_course(db, tutor, category):
    return make_published_course(db, tutor["tutor_id"], category["category_id"])
