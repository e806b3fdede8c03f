"""Authentication API tests."""

from fakes import API, auth_headers_for, make_user
from tableorder.core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from tableorder.models.user import AppRole, User


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = get_password_hash("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_token_round_trip(self):
        payload = decode_access_token(create_access_token(data={"sub": "7", "email": "a@b.com"}))
        assert payload["sub"] == "7"
        assert payload["jti"]

    def test_tampered_token(self):
        header, _, signature = create_access_token(data={"sub": "7", "email": "a@b.com"}).split(".")
        forged_payload = create_access_token(data={"sub": "1", "email": "a@b.com"}).split(".")[1]
        assert decode_access_token(f"{header}.{forged_payload}.{signature}") is None


class TestRegister:
    def test_first_user_becomes_universal_admin(self, client):
        response = client.post(f"{API}/auth/register", json={
            "email": "Owner@TableOrder.app", "password": "secret123", "full_name": "Platform Owner",
        })
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["email"] == "owner@tableorder.app"
        assert data["roles"] == [{"role": "admin", "tenant_id": None}]

    def test_later_users_are_customers(self, client, db_session):
        make_user(db_session, "root@tableorder.app", AppRole.ADMIN)
        response = client.post(f"{API}/auth/register", json={
            "email": "diner@example.com", "password": "secret123", "phone": "+91 98765 43210",
        })
        assert response.status_code == 201
        assert response.json()["roles"] == []
        assert response.json()["phone"] == "+91 98765 43210"

    def test_duplicate_email(self, client, customer):
        response = client.post(f"{API}/auth/register", json={
            "email": "DINER@example.com", "password": "secret123",
        })
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_user"

    def test_short_password(self, client):
        response = client.post(f"{API}/auth/register", json={"email": "a@example.com", "password": "123"})
        assert response.status_code == 422


class TestLogin:
    def test_login_success(self, client, chef):
        response = client.post(f"{API}/auth/login", json={
            "email": "chef@spicegarden.in", "password": "testpass123",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert decode_access_token(data["access_token"])["sub"] == str(chef.id)
        assert "access_token" in response.cookies

    def test_login_is_case_insensitive_on_email(self, client, chef):
        response = client.post(f"{API}/auth/login", json={
            "email": "Chef@SpiceGarden.in", "password": "testpass123",
        })
        assert response.status_code == 200

    def test_wrong_password(self, client, chef):
        response = client.post(f"{API}/auth/login", json={
            "email": "chef@spicegarden.in", "password": "nope",
        })
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_unknown_user(self, client):
        response = client.post(f"{API}/auth/login", json={
            "email": "ghost@example.com", "password": "whatever",
        })
        assert response.status_code == 401

    def test_inactive_user(self, client, db_session, chef):
        chef.is_active = False
        db_session.commit()
        response = client.post(f"{API}/auth/login", json={
            "email": "chef@spicegarden.in", "password": "testpass123",
        })
        assert response.status_code == 401
        assert response.json()["detail"] == "User account is inactive"

    def test_cookie_session(self, client, tenant, chef):
        client.post(f"{API}/auth/login", json={"email": "chef@spicegarden.in", "password": "testpass123"})
        response = client.get(f"{API}/tenants/{tenant.id}/staff/orders")
        assert response.status_code == 200


class TestMe:
    def test_me_lists_roles(self, client, tenant, chef_headers):
        response = client.get(f"{API}/auth/me", headers=chef_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Ravi Kumar"
        assert data["roles"] == [{"role": "chef", "tenant_id": tenant.id}]

    def test_unauthenticated(self, client):
        assert client.get(f"{API}/auth/me").status_code == 401

    def test_deactivated_user_token_rejected(self, client, db_session, chef, chef_headers):
        chef.is_active = False
        db_session.commit()
        assert client.get(f"{API}/auth/me", headers=chef_headers).status_code == 401

    def test_token_for_deleted_user(self, client, db_session):
        user = make_user(db_session, "temp@example.com")
        headers = auth_headers_for(user)
        db_session.delete(db_session.get(User, user.id))
        db_session.commit()
        assert client.get(f"{API}/auth/me", headers=headers).status_code == 401


class TestLogout:
    def test_logout_revokes_token(self, client, customer_headers):
        response = client.post(f"{API}/auth/logout", headers=customer_headers)
        assert response.status_code == 200
        assert client.get(f"{API}/auth/me", headers=customer_headers).status_code == 401
