import pytest
from jose import jwt

import ivms.dependencies.auth as auth_dep
from ivms.config import get_settings
from ivms.exceptions import BusinessRuleError
from ivms.exceptions import ConflictError
from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.services.auth_service import JWT_ALGORITHM
from ivms.services.auth_service import create_access_token
from ivms.services.auth_service import decode_access_token
from ivms.services.auth_service import verify_password
from ivms.services.users import UserService


def account(username="jdoe", department=Department.GARAGE, role=Role.OPERATOR, **overrides):
    data = {
        "username": username,
        "password": "secret123",
        "full_name": "Jane Doe",
        "department": department,
        "role": role,
    }
    data.update(overrides)
    return data


@pytest.fixture
def users(db_session):
    return UserService(db_session)


@pytest.fixture
def jwt_mode(monkeypatch):
    """Switch the API from the development bypass to bearer-token checks."""
    monkeypatch.setattr(auth_dep, "AUTH_DISABLED", False)


# ---------------------------------------------------------------------------
# UserService
# ---------------------------------------------------------------------------


def test_create_hashes_password(users):
    user = users.create(account())
    assert user.is_active is True
    assert user.password_hash != "secret123"
    assert verify_password("secret123", user.password_hash)


@pytest.mark.parametrize(
    "department, role",
    [(Department.GARAGE, Role.SUPER_ADMIN), (Department.ADMIN, Role.OPERATOR)],
)
def test_super_admin_and_admin_department_go_together(users, department, role):
    with pytest.raises(BusinessRuleError):
        users.create(account(department=department, role=role))


def test_department_change_is_rechecked_on_update(users):
    user = users.create(account())
    with pytest.raises(BusinessRuleError, match="ADMIN department"):
        users.update(user.id, {"department": Department.ADMIN})


def test_username_unique_among_active_users(users):
    first = users.create(account())
    with pytest.raises(ConflictError, match="username already exists"):
        users.create(account(full_name="Someone Else"))

    users.deactivate(first.id)
    second = users.create(account(full_name="Someone Else"))
    assert second.id != first.id

    # The old account cannot come back while its username is taken.
    with pytest.raises(ConflictError):
        users.activate(first.id)

    users.deactivate(second.id)
    assert users.activate(first.id).is_active is True


def test_find_all_includes_inactive_by_default(users):
    kept = users.create(account("kept"))
    gone = users.create(account("gone"))
    users.deactivate(gone.id)

    assert {u.username for u in users.find_all()} == {"kept", "gone"}
    assert [u.id for u in users.find_all(include_inactive=False)] == [kept.id]
    assert users.find_by_username("gone") is None


# ---------------------------------------------------------------------------
# Login and tokens
# ---------------------------------------------------------------------------


def test_token_round_trip(users):
    user = users.create(account())
    claims = decode_access_token(create_access_token(user))
    assert claims["sub"] == user.id
    assert claims["department"] == "GARAGE"


def test_login_and_me(client, users, jwt_mode):
    users.create(account())

    resp = client.post("/api/auth/login", json={"username": "jdoe", "password": "secret123"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "jdoe"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Jane Doe"


def test_bad_credentials_are_401(client, users, jwt_mode):
    users.create(account())
    resp = client.post("/api/auth/login", json={"username": "jdoe", "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"


def test_deactivated_user_cannot_log_in(client, users, jwt_mode):
    user = users.create(account())
    users.deactivate(user.id)
    resp = client.post("/api/auth/login", json={"username": "jdoe", "password": "secret123"})
    assert resp.status_code == 401


def test_login_uses_the_live_account_for_a_reused_username(client, users, jwt_mode):
    old = users.create(account(password="old-secret"))
    users.deactivate(old.id)
    new = users.create(account(password="new-secret"))

    assert client.post("/api/auth/login", json={"username": "jdoe", "password": "old-secret"}).status_code == 401

    resp = client.post("/api/auth/login", json={"username": "jdoe", "password": "new-secret"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["id"] == new.id


def test_missing_or_bad_token(client, jwt_mode):
    resp = client.get("/api/cars")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"

    resp = client.get("/api/cars", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_token_with_malformed_claims_is_rejected(client, users, jwt_mode):
    user = users.create(account())
    claims = decode_access_token(create_access_token(user))
    forged = jwt.encode({**claims, "role": "OWNER"}, get_settings().jwt_secret, algorithm=JWT_ALGORITHM)

    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token payload"


def test_token_of_deactivated_user_is_rejected(client, users, jwt_mode):
    user = users.create(account())
    token = create_access_token(user)
    users.deactivate(user.id)

    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Admin routes
# ---------------------------------------------------------------------------


def test_user_admin_api(client, super_admin, as_user, db_session):
    as_user(super_admin)
    body = {
        "username": "mech1",
        "password": "secret123",
        "full_name": "Max Mechanic",
        "department": "MAINTENANCE",
        "role": "OPERATOR",
    }

    resp = client.post("/api/users", json=body)
    assert resp.status_code == 201, resp.text
    user_id = resp.json()["id"]
    assert "password_hash" not in resp.json()

    assert client.post("/api/users", json=body).status_code == 409

    resp = client.patch(f"/api/users/{user_id}", json={"full_name": "Max M."})
    assert resp.json()["full_name"] == "Max M."

    assert client.delete(f"/api/users/{user_id}").json()["is_active"] is False
    assert client.post(f"/api/users/{user_id}/activate").json()["is_active"] is True

    resp = client.post("/api/auth/reset-password", json={"user_id": user_id, "new_password": "newsecret"})
    assert resp.json() == {"message": "Password reset successfully"}

    actions = client.get("/api/audit", params={"entity_id": user_id}).json()
    assert sorted(a["action"] for a in actions) == [
        "PASSWORD_RESET",
        "USER_ACTIVATED",
        "USER_CREATED",
        "USER_DEACTIVATED",
        "USER_UPDATED",
    ]


def test_reset_password_for_unknown_user(client, super_admin, as_user):
    as_user(super_admin)
    resp = client.post("/api/auth/reset-password", json={"user_id": "missing", "new_password": "newsecret"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"


def test_only_super_admin_manages_users(client, garage_user, as_user):
    as_user(garage_user)
    assert client.get("/api/users").status_code == 403
    assert client.get("/api/auth/me").json()["username"] == garage_user.username
