"""
API tests for authentication: the bearer dependency and the account routes.
"""
from uuid import UUID

from assurpro.api.deps import get_profile_store
from assurpro.main import app
from assurpro.models import Entreprise
from assurpro.services.identity import IdentityErrorKind
from assurpro.services.profile_store import StoreErrorKind
from conftest import FakeProfileStore, make_user


class TestAuthenticationDependency:
    """Tests for get_current_entreprise through a protected route."""

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_invalid_token(self, client, auth_user):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unverified_email(self, client, fake_identity):
        fake_identity.add_user(make_user(verified=False), token="unverified")
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer unverified"})
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "EMAIL_NOT_CONFIRMED"

    def test_provider_unavailable(self, client, fake_identity, auth_headers):
        fake_identity.fail_with = IdentityErrorKind.UNAVAILABLE
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 503

    def test_first_request_provisions_profile(self, client, db_session, auth_user, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["entreprise"]["id"] == auth_user.id
        assert db_session.get(Entreprise, UUID(auth_user.id)) is not None

    def test_degraded_profile_does_not_fail_request(self, client, auth_headers):
        """When the profile row cannot be written the request still goes through."""
        store = FakeProfileStore(insert_errors=[StoreErrorKind.FOREIGN_KEY_VIOLATION] * 10)
        app.dependency_overrides[get_profile_store] = lambda: store

        response = client.get("/api/stats/dashboard", headers=auth_headers)

        assert response.status_code == 200
        assert store.insert_calls == 3
        assert response.json()["clients_actifs"] == 0

    def test_me_is_404_for_placeholder(self, client, auth_headers):
        store = FakeProfileStore(insert_errors=[StoreErrorKind.POLICY_DENIED])
        app.dependency_overrides[get_profile_store] = lambda: store

        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 404


class TestAccountRoutes:
    """Tests for register, login and password routes."""

    def test_register(self, client, db_session, fake_identity):
        response = client.post(
            "/api/auth/register",
            json={
                "nom": "Agence Plateau",
                "email": "plateau@example.com",
                "password": "Secret123",
                "telephone": "0102030405",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email_sent"] is True
        assert body["email_verified"] is False
        assert body["profile_persisted"] is True
        row = db_session.get(Entreprise, UUID(body["user_id"]))
        assert row.nom == "Agence Plateau"
        assert row.telephone == "0102030405"

    def test_register_weak_password(self, client):
        response = client.post(
            "/api/auth/register",
            json={"nom": "Agence", "email": "a@example.com", "password": "short"},
        )
        assert response.status_code == 422

    def test_register_existing_email(self, client, auth_user):
        response = client.post(
            "/api/auth/register",
            json={"nom": "Agence", "email": auth_user.email, "password": "Secret123"},
        )
        assert response.status_code == 400

    def test_login(self, client, auth_user):
        response = client.post(
            "/api/auth/login", json={"email": auth_user.email, "password": "Secret123"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token"] == "access"
        assert body["entreprise"]["id"] == auth_user.id

    def test_login_wrong_password(self, client, auth_user):
        response = client.post(
            "/api/auth/login", json={"email": auth_user.email, "password": "Wrong1234"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_login_unconfirmed(self, client, fake_identity):
        user = make_user(email="new@example.com", verified=False)
        fake_identity.add_user(user, token="t2")
        response = client.post(
            "/api/auth/login", json={"email": "new@example.com", "password": "Secret123"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "EMAIL_NOT_CONFIRMED"

    def test_forgot_password_is_neutral(self, client, fake_identity):
        fake_identity.fail_with = IdentityErrorKind.REJECTED
        response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert response.status_code == 200

    def test_reset_password_rejected_token(self, client):
        response = client.post(
            "/api/auth/reset-password", json={"token": "expired", "new_password": "Secret123"}
        )
        assert response.status_code == 400

    def test_change_password(self, client, fake_identity, auth_user, auth_headers):
        response = client.post(
            "/api/auth/change-password",
            headers=auth_headers,
            json={"current_password": "Secret123", "new_password": "Nouveau123"},
        )
        assert response.status_code == 200
        assert fake_identity.passwords[auth_user.email] == "Nouveau123"

    def test_change_password_wrong_current(self, client, auth_headers):
        response = client.post(
            "/api/auth/change-password",
            headers=auth_headers,
            json={"current_password": "Wrong1234", "new_password": "Nouveau123"},
        )
        assert response.status_code == 401

    def test_update_profile_email_conflict(self, client, db_session, auth_headers):
        client.get("/api/auth/me", headers=auth_headers)
        other = make_user(email="autre@example.com")
        db_session.add(Entreprise(id=UUID(other.id), nom="Autre", email="autre@example.com"))
        db_session.commit()

        response = client.put(
            "/api/auth/profile",
            headers=auth_headers,
            json={"nom": "Agence", "email": "autre@example.com"},
        )
        assert response.status_code == 400

    def test_update_profile(self, client, auth_headers):
        client.get("/api/auth/me", headers=auth_headers)
        response = client.put(
            "/api/auth/profile",
            headers=auth_headers,
            json={"nom": "Agence Renommée", "email": "agence@example.com", "telephone": "0909"},
        )
        assert response.status_code == 200
        assert response.json()["entreprise"]["nom"] == "Agence Renommée"


class TestHealth:
    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "OK"
