"""Initial setup, admin login and user management."""
from database import ADMIN, utcnow


def _admin_payload(**overrides):
    data = {
        "name": "Meera Shah",
        "username": "meera",
        "email": "meera@petzify.com",
        "password": "secret1",
        "confirm_password": "secret1",
        "role": "editor",
    }
    data.update(overrides)
    return data


class TestInitialSetup:
    def test_setup_creates_superadmin_once(self, client, db):
        assert client.get("/setup/status").json() == {"admin_exists": False}

        resp = client.post("/setup", json=_admin_payload(role="editor"))

        assert resp.status_code == 201
        body = resp.json()
        assert body["role"] == "superadmin"
        assert body["permissions"]["can_manage_users"] is True
        assert "password_hash" not in body
        assert client.get("/setup/status").json() == {"admin_exists": True}

        again = client.post("/setup", json=_admin_payload(username="other", email="other@petzify.com"))
        assert again.status_code == 409
        assert db[ADMIN].count_documents({}) == 1

    def test_password_mismatch(self, client):
        resp = client.post("/setup", json=_admin_payload(confirm_password="different"))
        assert resp.status_code == 400

    def test_short_password(self, client):
        resp = client.post("/setup", json=_admin_payload(password="abc", confirm_password="abc"))
        assert resp.status_code == 422


class TestAdminLogin:
    def test_login_with_hashed_password(self, client):
        client.post("/setup", json=_admin_payload())

        resp = client.post("/auth/admin/login", json={"username": "meera", "password": "secret1"})

        assert resp.status_code == 200
        assert resp.json()["username"] == "meera"
        assert "password_hash" not in resp.json()

    def test_wrong_password(self, client):
        client.post("/setup", json=_admin_payload())
        resp = client.post("/auth/admin/login", json={"username": "meera", "password": "nope"})
        assert resp.status_code == 401

    def test_unknown_user(self, client):
        resp = client.post("/auth/admin/login", json={"username": "ghost", "password": "whatever"})
        assert resp.status_code == 401

    def test_legacy_plaintext_password_is_upgraded(self, client, db):
        db[ADMIN].insert_one({
            "name": "Old Admin", "username": "legacy", "email": "legacy@petzify.com",
            "password": "admin123", "role": "admin", "created_at": utcnow(),
        })

        resp = client.post("/auth/admin/login", json={"username": "legacy", "password": "admin123"})

        assert resp.status_code == 200
        stored = db[ADMIN].find_one({"username": "legacy"})
        assert "password" not in stored
        assert stored["password_hash"].startswith("$2")

        again = client.post("/auth/admin/login", json={"username": "legacy", "password": "admin123"})
        assert again.status_code == 200


class TestUserManagement:
    def test_create_with_role_defaults(self, client):
        resp = client.post("/admin/users", json=_admin_payload(role="doctor"))
        assert resp.status_code == 201
        body = resp.json()
        assert body["role"] == "doctor"
        assert body["permissions"]["can_manage_messages"] is True
        assert body["profile_info"]["specialization"] == "General Veterinarian"

    def test_custom_role_uses_requested_permissions(self, client):
        resp = client.post("/admin/users", json=_admin_payload(
            role="receptionist", permissions={"can_manage_messages": True},
        ))
        perms = resp.json()["permissions"]
        assert perms["can_manage_messages"] is True
        assert perms["can_manage_users"] is False

    def test_duplicate_username_and_email(self, client):
        client.post("/admin/users", json=_admin_payload())

        dup_user = client.post("/admin/users", json=_admin_payload(email="new@petzify.com"))
        assert dup_user.status_code == 409
        assert dup_user.json()["detail"] == "Username already exists"

        dup_email = client.post("/admin/users", json=_admin_payload(username="new"))
        assert dup_email.status_code == 409
        assert dup_email.json()["detail"] == "Email already exists"

    def test_edit_keeps_own_username(self, client):
        user = client.post("/admin/users", json=_admin_payload()).json()

        resp = client.patch(f"/admin/users/{user['id']}", json={"username": "meera", "name": "Meera S."})

        assert resp.status_code == 200
        assert resp.json()["name"] == "Meera S."

    def test_edit_to_taken_username(self, client):
        client.post("/admin/users", json=_admin_payload())
        other = client.post("/admin/users", json=_admin_payload(username="kiran", email="kiran@petzify.com")).json()

        resp = client.patch(f"/admin/users/{other['id']}", json={"username": "meera"})

        assert resp.status_code == 409

    def test_edit_to_taken_email(self, client):
        client.post("/admin/users", json=_admin_payload())
        other = client.post("/admin/users", json=_admin_payload(username="kiran", email="kiran@petzify.com")).json()

        resp = client.patch(f"/admin/users/{other['id']}", json={"email": "meera@petzify.com"})

        assert resp.status_code == 409
        assert resp.json()["detail"] == "Email already exists"

    def test_edit_keeps_own_email(self, client):
        user = client.post("/admin/users", json=_admin_payload()).json()

        resp = client.patch(f"/admin/users/{user['id']}", json={"email": "meera@petzify.com", "phone": "9000000000"})

        assert resp.status_code == 200
        assert resp.json()["phone"] == "9000000000"

    def test_role_change_resets_permissions(self, client):
        user = client.post("/admin/users", json=_admin_payload()).json()
        resp = client.patch(f"/admin/users/{user['id']}", json={"role": "admin"})
        assert resp.json()["permissions"]["can_manage_messages"] is True

    def test_password_change_rehashes(self, client):
        user = client.post("/admin/users", json=_admin_payload()).json()
        client.patch(f"/admin/users/{user['id']}", json={"password": "newpass1"})

        assert client.post("/auth/admin/login", json={"username": "meera", "password": "newpass1"}).status_code == 200
        assert client.post("/auth/admin/login", json={"username": "meera", "password": "secret1"}).status_code == 401

    def test_list_by_role_and_delete(self, client):
        editor = client.post("/admin/users", json=_admin_payload()).json()
        client.post("/admin/users", json=_admin_payload(username="doc", email="doc@petzify.com", role="doctor"))

        doctors = client.get("/admin/users", params={"role": "doctor"}).json()
        assert [u["username"] for u in doctors] == ["doc"]

        assert client.delete(f"/admin/users/{editor['id']}").status_code == 200
        assert client.delete(f"/admin/users/{editor['id']}").status_code == 404

    def test_roles_listing(self, client):
        assert "boarding_admin" in client.get("/roles").json()["roles"]
