"""
Tests for user management endpoints.
"""

from conftest import auth_header
from massmail.routers.users import USERS


def _new_user(organization_id="org-1", email="new@example.com"):
    return {
        "name": "New Person",
        "email": email,
        "password": "hunter22",
        "organizationId": organization_id,
    }


class TestRegisterUser:

    def test_org_admin_registers_user_in_own_organization(self, client, store, identity):
        response = client.post("/users", json=_new_user(), headers=auth_header(role="org-admin"))

        assert response.status_code == 201
        user_id = response.json()["userId"]
        assert identity.accounts["new@example.com"][0] == user_id
        row = store.rows(USERS)[0]
        assert row["id"] == user_id
        assert row["role"] == "user"
        assert row["name_lower"] == "new person"

    def test_org_admin_cannot_register_into_other_organization(self, client, store, identity):
        response = client.post(
            "/users", json=_new_user(organization_id="org-2"), headers=auth_header(role="org-admin"),
        )

        assert response.status_code == 403
        assert identity.accounts == {}

    def test_super_admin_registers_anywhere(self, client, store):
        response = client.post(
            "/users",
            json=_new_user(organization_id="org-2"),
            headers=auth_header(role="super-admin", organization_id=None),
        )

        assert response.status_code == 201

    def test_duplicate_email_is_409(self, client, store, identity):
        identity.add("uid-old", "new@example.com", "x")

        response = client.post("/users", json=_new_user(), headers=auth_header(role="org-admin"))

        assert response.status_code == 409
        assert store.writes == []

    def test_plain_user_is_forbidden(self, client):
        response = client.post("/users", json=_new_user(), headers=auth_header(role="user"))

        assert response.status_code == 403


class TestListUsers:

    def test_org_admin_sees_own_organization(self, client, store):
        store.seed(USERS, {"id": "u1", "name": "Ana", "role": "user", "organization_id": "org-1", "created_at": "2026-01-02"})
        store.seed(USERS, {"id": "u2", "name": "Bea", "role": "user", "organization_id": "org-2", "created_at": "2026-01-03"})

        response = client.get("/users", headers=auth_header(role="org-admin"))

        assert response.status_code == 200
        assert response.json()["users"] == [{"id": "u1", "name": "Ana", "role": "user"}]

    def test_search_matches_name_prefix(self, client, store):
        for uid, name in [("u1", "Ana"), ("u2", "Andre"), ("u3", "Bea")]:
            store.seed(USERS, {"id": uid, "name": name, "name_lower": name.lower(), "role": "user", "organization_id": "org-1"})

        response = client.get("/users?search=AN", headers=auth_header(role="super-admin"))

        assert [u["name"] for u in response.json()["users"]] == ["Ana", "Andre"]

    def test_pagination(self, client, store):
        for i in range(5):
            store.seed(USERS, {"id": f"u{i}", "name": f"User {i}", "organization_id": "org-1", "created_at": f"2026-01-0{i + 1}"})

        response = client.get("/users?page=2&limitValue=2", headers=auth_header(role="super-admin"))

        assert [u["id"] for u in response.json()["users"]] == ["u2", "u1"]

    def test_missing_name_is_reported(self, client, store):
        store.seed(USERS, {"id": "u1", "organization_id": "org-1"})

        response = client.get("/users", headers=auth_header(role="org-admin"))

        assert response.json()["users"][0]["name"] == "No name"


class TestDeleteUser:

    def test_delete_removes_identity_and_profile(self, client, store, identity):
        store.seed(USERS, {"id": "u1", "organization_id": "org-1"})

        response = client.delete("/users/u1", headers=auth_header(role="org-admin"))

        assert response.status_code == 200
        assert identity.deleted == ["u1"]
        assert store.rows(USERS) == []

    def test_unknown_user_is_404(self, client, identity):
        response = client.delete("/users/ghost", headers=auth_header(role="org-admin"))

        assert response.status_code == 404
        assert identity.deleted == []

    def test_cannot_delete_user_of_other_organization(self, client, store, identity):
        store.seed(USERS, {"id": "u1", "organization_id": "org-2"})

        response = client.delete("/users/u1", headers=auth_header(role="org-admin"))

        assert response.status_code == 403
        assert identity.deleted == []
