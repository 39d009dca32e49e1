import jwt
import pytest

from app.core.config import ALGORITHM, SECRET_KEY
from app.core.errors import Conflict
from app.core.security import hash_password
from app.models.user import Role, User
from app.schemas.user import UserCreate, UserUpdate
from app.services import users as user_service


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def add_admin(db, email: str = "admin2@example.com") -> User:
    admin = User(
        first_name="Second",
        last_name="Admin",
        email=email,
        role=Role.ADMIN,
        hashed_password=hash_password("password123"),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


# -- auth ---------------------------------------------------------------------


def test_register_defaults_to_student_and_returns_token(client):
    r = client.post(
        "/api/auth/register",
        json={
            "first_name": "New",
            "last_name": "Person",
            "email": "new@example.com",
            "password": "secret1",
        },
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "student"
    assert body["user"]["active"] is True
    assert "hashed_password" not in body["user"]

    claims = jwt.decode(body["access_token"], SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["sub"] == str(body["user"]["id"])
    assert claims["role"] == "student"


def test_register_as_instructor_is_allowed(client):
    r = client.post(
        "/api/auth/register",
        json={
            "first_name": "Ina",
            "last_name": "Teach",
            "email": "ina@example.com",
            "password": "secret1",
            "role": "instructor",
        },
    )
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "instructor"


def test_register_as_admin_is_forbidden(client):
    r = client.post(
        "/api/auth/register",
        json={
            "first_name": "Eve",
            "last_name": "Hacker",
            "email": "eve@example.com",
            "password": "secret1",
            "role": "admin",
        },
    )
    assert r.status_code == 403


def test_register_duplicate_email_is_conflict(client):
    r = client.post(
        "/api/auth/register",
        json={
            "first_name": "Again",
            "last_name": "Student",
            "email": "student1@example.com",
            "password": "secret1",
        },
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Email already registered"


def test_password_longer_than_bcrypt_input_is_rejected(client, seed_data):
    # 40 characters, but 80 bytes once encoded
    long_password = "\u00e9" * 40

    r = client.post(
        "/api/auth/register",
        json={
            "first_name": "Long",
            "last_name": "Secret",
            "email": "long@example.com",
            "password": long_password,
        },
    )
    assert r.status_code == 422

    headers = auth_header(login(client, "student1@example.com"))
    r = client.put(
        f"/api/users/{seed_data['student']}",
        headers=headers,
        json={"password": long_password},
    )
    assert r.status_code == 422

    # 72 bytes exactly is still accepted
    r = client.put(
        f"/api/users/{seed_data['student']}",
        headers=headers,
        json={"password": "\u00e9" * 36},
    )
    assert r.status_code == 200, r.text


def test_login_with_bad_password_is_401(client):
    r = client.post(
        "/api/auth/login", json={"email": "student1@example.com", "password": "wrong-one"}
    )
    assert r.status_code == 401


def test_deactivated_user_cannot_log_in(client, db, seed_data):
    user = db.get(User, seed_data["other_student"])
    user.active = False
    db.commit()

    r = client.post(
        "/api/auth/login", json={"email": "student2@example.com", "password": "password123"}
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Account is deactivated"


def test_token_stops_working_once_deactivated(client, db, seed_data):
    headers = auth_header(login(client, "student2@example.com"))
    assert client.get("/api/auth/me", headers=headers).status_code == 200

    user = db.get(User, seed_data["other_student"])
    user.active = False
    db.commit()

    assert client.get("/api/auth/me", headers=headers).status_code == 403


def test_garbage_token_is_401(client):
    r = client.get("/api/auth/me", headers=auth_header("not-a-jwt"))
    assert r.status_code == 401


# -- user management -----------------------------------------------------------


def test_only_admin_lists_users(client):
    admin = auth_header(login(client, "admin1@example.com"))
    r = client.get("/api/users", headers=admin)
    assert r.status_code == 200
    assert len(r.json()) == 5

    r = client.get("/api/users", headers=admin, params={"role": "student"})
    assert {u["email"] for u in r.json()} == {"student1@example.com", "student2@example.com"}

    student = auth_header(login(client, "student1@example.com"))
    assert client.get("/api/users", headers=student).status_code == 403


def test_list_instructors(client):
    admin = auth_header(login(client, "admin1@example.com"))
    r = client.get("/api/instructors", headers=admin)
    assert r.status_code == 200
    assert {u["email"] for u in r.json()} == {
        "instructor1@example.com",
        "instructor2@example.com",
    }


def test_user_reads_self_but_not_others(client, seed_data):
    headers = auth_header(login(client, "student1@example.com"))
    assert client.get(f"/api/users/{seed_data['student']}", headers=headers).status_code == 200
    assert client.get(f"/api/users/{seed_data['other_student']}", headers=headers).status_code == 403


def test_admin_creates_user(client):
    admin = auth_header(login(client, "admin1@example.com"))
    r = client.post(
        "/api/users",
        headers=admin,
        json={
            "first_name": "Ivy",
            "last_name": "Instructor",
            "email": "ivy@example.com",
            "password": "secret1",
            "role": "instructor",
        },
    )
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "instructor"

    # the new account can log in
    login(client, "ivy@example.com", "secret1")


def test_self_update_profile_and_password(client, seed_data):
    headers = auth_header(login(client, "student1@example.com"))
    r = client.put(
        f"/api/users/{seed_data['student']}",
        headers=headers,
        json={"first_name": "Renamed", "password": "newpass1"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["first_name"] == "Renamed"

    login(client, "student1@example.com", "newpass1")


def test_non_admin_cannot_change_own_role_or_status(client, seed_data):
    headers = auth_header(login(client, "instructor1@example.com"))
    url = f"/api/users/{seed_data['instructor']}"

    assert client.put(url, headers=headers, json={"role": "admin"}).status_code == 403
    assert client.put(url, headers=headers, json={"active": False}).status_code == 403


def test_update_to_taken_email_is_conflict(client, seed_data):
    headers = auth_header(login(client, "student1@example.com"))
    r = client.put(
        f"/api/users/{seed_data['student']}",
        headers=headers,
        json={"email": "student2@example.com"},
    )
    assert r.status_code == 409


def test_admin_changes_role_and_status(client, seed_data):
    admin = auth_header(login(client, "admin1@example.com"))
    r = client.put(
        f"/api/users/{seed_data['other_student']}",
        headers=admin,
        json={"role": "instructor", "active": False},
    )
    assert r.status_code == 200
    assert r.json()["role"] == "instructor"
    assert r.json()["active"] is False


def test_last_admin_cannot_demote_self(client, seed_data):
    admin = auth_header(login(client, "admin1@example.com"))
    r = client.put(f"/api/users/{seed_data['admin']}", headers=admin, json={"role": "student"})
    assert r.status_code == 409


def test_deleting_last_admin_is_conflict(db, seed_data):
    with pytest.raises(Conflict):
        user_service.delete_user(db, seed_data["admin"])


def test_deleting_admin_when_two_exist(client, db, seed_data):
    second = add_admin(db)
    headers = auth_header(login(client, "admin1@example.com"))

    r = client.delete(f"/api/users/{second.id}", headers=headers)
    assert r.status_code == 200, r.text

    # now admin1 is the last one again
    r = client.delete(f"/api/users/{seed_data['admin']}", headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Cannot delete the last admin user"


def test_deleting_student_removes_their_enrollments(client, db, seed_data):
    headers = auth_header(login(client, "admin1@example.com"))
    r = client.delete(f"/api/users/{seed_data['student']}", headers=headers)
    assert r.status_code == 200

    assert [u.email for u in user_service.list_users(db, Role.STUDENT)] == [
        "student2@example.com"
    ]
    roster = client.get(f"/api/courses/{seed_data['cs']}/enrollments", headers=headers).json()
    assert roster == []


def test_deleting_instructor_with_courses_is_conflict(client, seed_data):
    headers = auth_header(login(client, "admin1@example.com"))
    r = client.delete(f"/api/users/{seed_data['instructor']}", headers=headers)
    assert r.status_code == 409


def test_delete_missing_user_is_404(client):
    headers = auth_header(login(client, "admin1@example.com"))
    assert client.delete("/api/users/999999", headers=headers).status_code == 404


def test_last_admin_cannot_deactivate_self(client, db, seed_data):
    headers = auth_header(login(client, "admin1@example.com"))
    url = f"/api/users/{seed_data['admin']}"

    r = client.put(url, headers=headers, json={"active": False})
    assert r.status_code == 409
    assert r.json()["detail"] == "Cannot deactivate the last admin user"

    # an inactive second admin cannot sign in, so it does not count
    second = add_admin(db)
    second.active = False
    db.commit()
    assert client.put(url, headers=headers, json={"active": False}).status_code == 409

    second.active = True
    db.commit()
    r = client.put(url, headers=headers, json={"active": False})
    assert r.status_code == 200, r.text
    assert r.json()["active"] is False


def test_demoting_an_inactive_admin_is_allowed(client, db):
    second = add_admin(db)
    second.active = False
    db.commit()

    headers = auth_header(login(client, "admin1@example.com"))
    r = client.put(f"/api/users/{second.id}", headers=headers, json={"role": "student"})
    assert r.status_code == 200, r.text


def test_concurrent_admin_deletes_keep_one_admin(db, second_db, seed_data, monkeypatch):
    second = add_admin(db)
    # both requests already saw two admins in their early count
    monkeypatch.setattr(user_service, "_ensure_not_last_admin", lambda *args, **kwargs: None)

    user_service.delete_user(second_db, second.id)
    with pytest.raises(Conflict):
        user_service.delete_user(db, seed_data["admin"])

    assert db.query(User).filter(User.role == Role.ADMIN).count() == 1


def test_concurrent_admin_deactivations_keep_one_active_admin(
    db, second_db, seed_data, monkeypatch
):
    second = add_admin(db)
    monkeypatch.setattr(user_service, "_ensure_not_last_admin", lambda *args, **kwargs: None)

    other_actor = second_db.get(User, seed_data["admin"])
    user_service.update_user(second_db, other_actor, second.id, UserUpdate(active=False))

    actor = db.get(User, seed_data["admin"])
    with pytest.raises(Conflict):
        user_service.update_user(db, actor, seed_data["admin"], UserUpdate(active=False))

    assert db.get(User, seed_data["admin"]).active is True


def test_duplicate_email_missed_by_lookup_is_conflict(db, monkeypatch):
    # another request inserted the same email after our lookup
    monkeypatch.setattr(user_service, "_ensure_email_available", lambda *args, **kwargs: None)
    payload = UserCreate(
        first_name="Twin",
        last_name="Student",
        email="student1@example.com",
        password="secret1",
        role=Role.STUDENT,
    )

    with pytest.raises(Conflict) as exc:
        user_service.create_user(db, payload)
    assert exc.value.detail == "Email already registered"

    # the session was rolled back and is usable again
    assert db.query(User).count() == 5
