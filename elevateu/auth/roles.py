"""Role → collection mapping shared by auth, profiles and admin management"""

from enum import Enum
from typing import Optional


class Role(str, Enum):
    USER = "user"
    TUTOR = "tutor"
    ADMIN = "admin"


ROLE_COLLECTIONS = {
    Role.USER: {"collection": "users", "id_field": "user_id", "prefix": "USR"},
    Role.TUTOR: {"collection": "tutors", "id_field": "tutor_id", "prefix": "TUT"},
    Role.ADMIN: {"collection": "admins", "id_field": "admin_id", "prefix": "ADM"},
}


def get_role(role) -> Optional[Role]:
    try:
        return Role(str(getattr(role, "value", role)).lower())
    except ValueError:
        return None


def collection_for(db, role):
    return db[ROLE_COLLECTIONS[Role(role)]["collection"]]


def id_field(role) -> str:
    return ROLE_COLLECTIONS[Role(role)]["id_field"]


def id_prefix(role) -> str:
    return ROLE_COLLECTIONS[Role(role)]["prefix"]


# Fields never sent to a client
PRIVATE_FIELDS = {"_id": 0, "password_hash": 0}
