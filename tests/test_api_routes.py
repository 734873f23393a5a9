"""
tests/test_api_routes.py -- Integration tests for the users, library, works and auth routes.

These tests exercise the full stack: FastAPI routing -> auth dependency
injection -> UserDirectory/LibraryManager -> stores -> response model
serialization -> the error envelope handlers in api/main.py.

Coverage:
  - Guard ordering: no token is 401, a token for someone else is 403
  - Registration: 201 {user, token}, duplicate 409, shape errors 400
  - Admin-only user creation and listing
  - Update requires the account password, even for an admin
  - Delete cascades the library
  - Library add/annotate/remove, duplicate add 409, enrichment on read
  - Works CRUD (admin writes, any user reads)
  - Login sets the cookie; the cookie authenticates /auth/me

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, catalog) -- the admin is "testadmin"
  - catalog: the same mock catalog, reset after each test

Each test class registers its own users so tests never depend on each
other's leftovers in the module-shared database.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from jose import jwt

ApiClient = tuple[TestClient, str, MagicMock]

# Created by the api_client fixture in conftest.py.
ADMIN_USERNAME = "testadmin"
ADMIN_PASSWORD = "testpass123"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, username: str, password: str = "secret1", email: str | None = None) -> str:
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "name": username.title(),
            "email": email or f"{username}@example.com",
            "password": password,
        },
    )
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["token"]


def _create_work(client: TestClient, admin_token: str, **fields) -> int:
    resp = client.post("/api/v1/works", json=fields, headers=_auth(admin_token))
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["work"]["id"]


class TestGuardOrdering:
    """No credential is always 401; a credential for the wrong account is 403."""

    def test_list_users_unauthenticated(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.get("/api/v1/users")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_get_user_unauthenticated(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        assert client.get(f"/api/v1/users/{ADMIN_USERNAME}").status_code == 401

    def test_add_to_library_unauthenticated(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        assert client.post("/api/v1/users/anyone/userLib/1").status_code == 401

    def test_garbage_token(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        assert client.get("/api/v1/auth/me", headers=_auth("garbage")).status_code == 401

    def test_forged_admin_token(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        forged = jwt.encode({"username": ADMIN_USERNAME, "isAdmin": True}, "z" * 32, algorithm="HS256")
        assert client.get("/api/v1/users", headers=_auth(forged)).status_code == 401

    def test_non_admin_list_users_forbidden(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "guard_ana")
        resp = client.get("/api/v1/users", headers=_auth(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_other_users_record_forbidden(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "guard_ben")
        assert client.get(f"/api/v1/users/{ADMIN_USERNAME}", headers=_auth(token)).status_code == 403
        assert client.delete(f"/api/v1/users/{ADMIN_USERNAME}", headers=_auth(token)).status_code == 403
        assert client.post(f"/api/v1/users/{ADMIN_USERNAME}/userLib/1", headers=_auth(token)).status_code == 403

    def test_forbidden_even_when_target_missing(self, api_client: ApiClient) -> None:
        """The guard runs before the lookup: a non-admin cannot discover which usernames exist."""
        client, _token, _catalog = api_client
        token = _register(client, "guard_cy")
        assert client.get("/api/v1/users/no_such_user", headers=_auth(token)).status_code == 403

    def test_self_allowed(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "guard_dee")
        resp = client.get("/api/v1/users/guard_dee", headers=_auth(token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["works"] == []

    def test_admin_reads_anyone(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        _register(client, "guard_eve")
        assert client.get("/api/v1/users/guard_eve", headers=_auth(admin_token)).status_code == 200

    def test_admin_missing_user_is_404(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        resp = client.get("/api/v1/users/no_such_user", headers=_auth(admin_token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"


class TestRegistration:
    def test_register_returns_user_and_token(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_bob", "name": "Bob", "email": "bob@example.com", "password": "pw123"},
        )
        assert resp.status_code == 201, resp.text
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["user"] == {"username": "reg_bob", "name": "Bob", "email": "bob@example.com", "isAdmin": False}
        assert "password" not in data["user"]
        assert "hashed_password" not in data["user"]
        me = client.get("/api/v1/auth/me", headers=_auth(data["token"]))
        assert me.json() == {"username": "reg_bob", "isAdmin": False}

    def test_duplicate_username_conflicts(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        _register(client, "reg_dup")
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_dup", "name": "Dup", "email": "other_dup@example.com", "password": "pw123"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_duplicate_email_conflicts(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        _register(client, "reg_mail_a", email="shared_mail@example.com")
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_mail_b", "name": "B", "email": "shared_mail@example.com", "password": "pw123"},
        )
        assert resp.status_code == 409

    def test_register_cannot_claim_admin(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_sneaky", "name": "S", "email": "s@example.com", "password": "pw123", "isAdmin": True},
        )
        assert resp.status_code == 400

    def test_shape_errors_are_400(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        bad_bodies = [
            {"username": "x" * 31, "name": "N", "email": "n@example.com", "password": "pw123"},
            {"username": "reg_short", "name": "N", "email": "n@example.com", "password": "pw"},
            {"username": "reg_mail", "name": "N", "email": "not-an-email", "password": "pw123"},
            {"username": "", "name": "N", "email": "n@example.com", "password": "pw123"},
            {"username": "reg_noname", "email": "n@example.com", "password": "pw123"},
        ]
        for body in bad_bodies:
            resp = client.post("/api/v1/auth/register", json=body)
            assert resp.status_code == 400, f"{body} -> {resp.status_code}"
            assert resp.json()["error"]["code"] == "validation_error"

    def test_password_limit_counts_bytes(self, api_client: ApiClient) -> None:
        """40 x 'é' passes a character count of 72 but is 80 UTF-8 bytes."""
        client, _token, _catalog = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_accent", "name": "A", "email": "reg_accent@example.com", "password": "é" * 40},
        )
        assert resp.status_code == 400, resp.text
        assert resp.json()["error"]["code"] == "validation_error"
        assert client.app.state.user_store.get_by_username("reg_accent") is None

    def test_password_at_byte_limit_accepted(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        _register(client, "reg_accent_ok", password="é" * 36)
        resp = client.post("/api/v1/auth/login", json={"username": "reg_accent_ok", "password": "é" * 36})
        client.cookies.clear()
        assert resp.status_code == 200, resp.text

    def test_email_is_lower_cased(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_case_a", "name": "A", "email": "Mixed.Case@Example.COM", "password": "pw123"},
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["user"]["email"] == "mixed.case@example.com"

    def test_email_conflict_ignores_case(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        _register(client, "reg_case_b", email="casefold@example.com")
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "reg_case_c", "name": "C", "email": "CaseFold@Example.com", "password": "pw123"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"


class TestAdminUserRoutes:
    def test_admin_creates_admin(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        resp = client.post(
            "/api/v1/users",
            json={"username": "adm_new", "name": "New", "email": "adm_new@example.com", "password": "pw123", "isAdmin": True},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["user"]["isAdmin"] is True
        assert client.get("/api/v1/users", headers=_auth(data["token"])).status_code == 200

    def test_non_admin_cannot_create(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "adm_plain")
        resp = client.post(
            "/api/v1/users",
            json={"username": "adm_x", "name": "X", "email": "adm_x@example.com", "password": "pw123"},
            headers=_auth(token),
        )
        assert resp.status_code == 403

    def test_list_users(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        _register(client, "adm_listed")
        resp = client.get("/api/v1/users", headers=_auth(admin_token))
        assert resp.status_code == 200
        usernames = [u["username"] for u in resp.json()["users"]]
        assert ADMIN_USERNAME in usernames
        assert "adm_listed" in usernames
        assert usernames == sorted(usernames)

    def test_admin_create_rejects_long_multibyte_password(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        resp = client.post(
            "/api/v1/users",
            json={"username": "adm_accent", "name": "A", "email": "adm_accent@example.com", "password": "é" * 40},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"


class TestUpdateUser:
    def test_update_with_password(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_ok", password="pw123")
        resp = client.patch(
            "/api/v1/users/upd_ok",
            json={"password": "pw123", "name": "Renamed", "email": "renamed@example.com"},
            headers=_auth(token),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["name"] == "Renamed"
        assert resp.json()["user"]["email"] == "renamed@example.com"

    def test_wrong_password_changes_nothing(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_bad", password="pw123")
        resp = client.patch(
            "/api/v1/users/upd_bad",
            json={"password": "wrong", "name": "Mallory"},
            headers=_auth(token),
        )
        assert resp.status_code == 401
        assert client.get("/api/v1/users/upd_bad", headers=_auth(token)).json()["user"]["name"] == "Upd_Bad"

    def test_admin_still_needs_account_password(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        _register(client, "upd_target", password="pw123")
        resp = client.patch(
            "/api/v1/users/upd_target",
            json={"password": ADMIN_PASSWORD, "name": "Hijacked"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 401

    def test_update_requires_a_field(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_empty", password="pw123")
        resp = client.patch("/api/v1/users/upd_empty", json={"password": "pw123"}, headers=_auth(token))
        assert resp.status_code == 400

    def test_email_taken(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_mail_a", password="pw123")
        _register(client, "upd_mail_b", email="taken@example.com")
        resp = client.patch(
            "/api/v1/users/upd_mail_a",
            json={"password": "pw123", "email": "taken@example.com"},
            headers=_auth(token),
        )
        assert resp.status_code == 409

    def test_password_whitespace_is_kept(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_spaced", password="  pw123  ")
        trimmed = client.patch(
            "/api/v1/users/upd_spaced",
            json={"password": "pw123", "name": "Trimmed"},
            headers=_auth(token),
        )
        assert trimmed.status_code == 401
        resp = client.patch(
            "/api/v1/users/upd_spaced",
            json={"password": "  pw123  ", "name": "Spaced"},
            headers=_auth(token),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["name"] == "Spaced"

    def test_email_change_is_lower_cased(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "upd_case", password="pw123")
        resp = client.patch(
            "/api/v1/users/upd_case",
            json={"password": "pw123", "email": "Upd.Case@Example.com"},
            headers=_auth(token),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["email"] == "upd.case@example.com"


class TestDeleteUser:
    def test_delete_cascades_library(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "del_me")
        work_id = _create_work(client, admin_token, title="Nocturne")
        assert client.post(f"/api/v1/users/del_me/userLib/{work_id}", headers=_auth(token)).status_code == 200

        resp = client.delete("/api/v1/users/del_me", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json() == {"deleted": "del_me"}

        assert client.get("/api/v1/users/del_me", headers=_auth(admin_token)).status_code == 404
        assert client.app.state.library_store.count_entries("del_me") == 0
        # The work is shared and survives.
        assert client.get(f"/api/v1/works/{work_id}", headers=_auth(admin_token)).status_code == 200

    def test_admin_deletes_missing_user(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        assert client.delete("/api/v1/users/never_existed", headers=_auth(admin_token)).status_code == 404


class TestLibraryRoutes:
    def test_add_then_read(self, api_client: ApiClient, catalog: MagicMock) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_add")
        work_id = _create_work(client, admin_token, externalId="1001")

        resp = client.post(f"/api/v1/users/lib_add/userLib/{work_id}", headers=_auth(token))
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"added": work_id}

        resp = client.get("/api/v1/users/lib_add", headers=_auth(token))
        works = resp.json()["user"]["works"]
        assert len(works) == 1
        assert works[0]["workId"] == work_id
        assert works[0]["externalId"] == "1001"
        # Catalog lookup failed (mock returns None): title stays null, read still succeeds.
        assert works[0]["title"] is None
        assert works[0]["composer"] is None
        catalog.work_detail.assert_called_with("1001")

    def test_read_is_enriched(self, api_client: ApiClient, catalog: MagicMock) -> None:
        client, admin_token, _catalog = api_client
        catalog.work_detail.return_value = {"title": "Carnaval, op. 9", "composer": "Robert Schumann"}
        token = _register(client, "lib_enriched")
        work_id = _create_work(client, admin_token, externalId="1002")
        client.post(f"/api/v1/users/lib_enriched/userLib/{work_id}", headers=_auth(token))

        works = client.get("/api/v1/users/lib_enriched", headers=_auth(token)).json()["user"]["works"]
        assert works[0]["title"] == "Carnaval, op. 9"
        assert works[0]["composer"] == "Robert Schumann"

    def test_raising_catalog_does_not_fail_read(self, api_client: ApiClient, catalog: MagicMock) -> None:
        client, admin_token, _catalog = api_client
        catalog.work_detail.side_effect = RuntimeError("catalog down")
        token = _register(client, "lib_flaky")
        work_id = _create_work(client, admin_token, externalId="1003", title="Local title")
        client.post(f"/api/v1/users/lib_flaky/userLib/{work_id}", headers=_auth(token))

        resp = client.get("/api/v1/users/lib_flaky", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["works"][0]["title"] == "Local title"

    def test_add_with_annotations(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_notes")
        work_id = _create_work(client, admin_token, title="Études")
        resp = client.post(
            f"/api/v1/users/lib_notes/userLib/{work_id}",
            json={"owned": True, "physical": True, "notes": "Peters edition"},
            headers=_auth(token),
        )
        assert resp.status_code == 200, resp.text

        entry = client.get("/api/v1/users/lib_notes", headers=_auth(token)).json()["user"]["works"][0]
        assert entry["owned"] is True
        assert entry["physical"] is True
        assert entry["digital"] is False
        assert entry["notes"] == "Peters edition"

    def test_duplicate_add_conflicts(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_dup")
        work_id = _create_work(client, admin_token, title="Ballade")
        assert client.post(f"/api/v1/users/lib_dup/userLib/{work_id}", headers=_auth(token)).status_code == 200
        resp = client.post(f"/api/v1/users/lib_dup/userLib/{work_id}", headers=_auth(token))
        assert resp.status_code == 409
        assert len(client.get("/api/v1/users/lib_dup", headers=_auth(token)).json()["user"]["works"]) == 1

    def test_missing_work_is_404(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "lib_nowork")
        assert client.post("/api/v1/users/lib_nowork/userLib/999999", headers=_auth(token)).status_code == 404

    def test_non_numeric_work_id_is_400(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "lib_badid")
        assert client.post("/api/v1/users/lib_badid/userLib/abc", headers=_auth(token)).status_code == 400

    def test_admin_adds_for_someone_else(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_managed")
        work_id = _create_work(client, admin_token, title="Sonata")
        resp = client.post(f"/api/v1/users/lib_managed/userLib/{work_id}", headers=_auth(admin_token))
        assert resp.status_code == 200
        works = client.get("/api/v1/users/lib_managed", headers=_auth(token)).json()["user"]["works"]
        assert [w["workId"] for w in works] == [work_id]

    def test_update_entry(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_loan")
        work_id = _create_work(client, admin_token, title="Fantasie")
        client.post(f"/api/v1/users/lib_loan/userLib/{work_id}", headers=_auth(token))

        resp = client.patch(
            f"/api/v1/users/lib_loan/userLib/{work_id}",
            json={"loanedOut": True, "borrower": "Johannes"},
            headers=_auth(token),
        )
        assert resp.status_code == 200, resp.text
        entry = resp.json()["entry"]
        assert entry["loanedOut"] is True
        assert entry["borrower"] == "Johannes"

        resp = client.patch(
            f"/api/v1/users/lib_loan/userLib/{work_id}",
            json={"loanedOut": False, "borrower": None},
            headers=_auth(token),
        )
        assert resp.json()["entry"]["borrower"] is None

    def test_update_entry_needs_a_field(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "lib_noop")
        assert client.patch("/api/v1/users/lib_noop/userLib/1", json={}, headers=_auth(token)).status_code == 400

    def test_remove_entry(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "lib_rm")
        work_id = _create_work(client, admin_token, title="Arabeske")
        client.post(f"/api/v1/users/lib_rm/userLib/{work_id}", headers=_auth(token))

        resp = client.delete(f"/api/v1/users/lib_rm/userLib/{work_id}", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json() == {"removed": work_id}
        assert client.delete(f"/api/v1/users/lib_rm/userLib/{work_id}", headers=_auth(token)).status_code == 404


class TestWorkRoutes:
    def test_admin_creates_and_reads(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        resp = client.post(
            "/api/v1/works",
            json={"externalId": "2001", "title": "Papillons", "composer": "Robert Schumann"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 201, resp.text
        work = resp.json()["work"]
        assert work["externalId"] == "2001"

        got = client.get(f"/api/v1/works/{work['id']}", headers=_auth(admin_token))
        assert got.json()["work"] == work

    def test_any_user_lists(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        work_id = _create_work(client, admin_token, title="Humoreske")
        token = _register(client, "works_reader")
        resp = client.get("/api/v1/works", headers=_auth(token))
        assert resp.status_code == 200
        assert work_id in [w["id"] for w in resp.json()["works"]]

    def test_anonymous_cannot_list(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        assert client.get("/api/v1/works").status_code == 401

    def test_non_admin_cannot_write(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        work_id = _create_work(client, admin_token, title="Kreisleriana")
        token = _register(client, "works_writer")
        assert client.post("/api/v1/works", json={"title": "Mine"}, headers=_auth(token)).status_code == 403
        assert client.delete(f"/api/v1/works/{work_id}", headers=_auth(token)).status_code == 403

    def test_work_needs_reference(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        assert client.post("/api/v1/works", json={"composer": "Anon"}, headers=_auth(admin_token)).status_code == 400

    def test_delete_work_removes_entries(self, api_client: ApiClient) -> None:
        client, admin_token, _catalog = api_client
        token = _register(client, "works_shelver")
        work_id = _create_work(client, admin_token, title="Waldszenen")
        client.post(f"/api/v1/users/works_shelver/userLib/{work_id}", headers=_auth(token))

        resp = client.delete(f"/api/v1/works/{work_id}", headers=_auth(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"deleted": work_id}
        assert client.get("/api/v1/users/works_shelver", headers=_auth(token)).json()["user"]["works"] == []
        assert client.get(f"/api/v1/works/{work_id}", headers=_auth(admin_token)).status_code == 404


class TestLoginRoutes:
    def test_login_sets_cookie(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        try:
            resp = client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
            assert resp.status_code == 200, resp.text
            assert resp.json()["user"]["isAdmin"] is True
            assert "access_token" in resp.headers.get("set-cookie", "")

            # No Authorization header: the cookie alone authenticates.
            me = client.get("/api/v1/auth/me")
            assert me.status_code == 200
            assert me.json() == {"username": ADMIN_USERNAME, "isAdmin": True}
        finally:
            client.cookies.clear()

    def test_bearer_header_wins_over_cookie(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        token = _register(client, "login_header")
        try:
            # Leaves the admin's cookie in the client jar.
            client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
            me = client.get("/api/v1/auth/me", headers=_auth(token))
            assert me.json()["username"] == "login_header"
        finally:
            client.cookies.clear()

    def test_bad_credentials(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        wrong = client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": "nope"})
        unknown = client.post("/api/v1/auth/login", json={"username": "nobody_here", "password": "nope"})
        assert wrong.status_code == 401
        assert unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_logout_clears_cookie(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert "access_token" in resp.headers.get("set-cookie", "")

    def test_login_keeps_password_whitespace(self, api_client: ApiClient) -> None:
        """A password registered with surrounding spaces logs in with exactly those spaces."""
        client, _token, _catalog = api_client
        _register(client, "login_spaced", password="  pw123  ")
        try:
            exact = client.post("/api/v1/auth/login", json={"username": "login_spaced", "password": "  pw123  "})
            assert exact.status_code == 200, exact.text
            assert exact.json()["user"]["username"] == "login_spaced"
        finally:
            client.cookies.clear()
        trimmed = client.post("/api/v1/auth/login", json={"username": "login_spaced", "password": "pw123"})
        assert trimmed.status_code == 401

    def test_login_rejects_password_over_byte_limit(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": "é" * 40})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"


class TestErrorEnvelope:
    def test_unknown_route(self, api_client: ApiClient) -> None:
        client, _token, _catalog = api_client
        resp = client.get("/api/v1/no-such-route")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "http_404"
