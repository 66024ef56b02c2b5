from datetime import datetime, timedelta

from jose import jwt

from conftest import bearer
from lessonvault.auth import decode_token
from lessonvault.config import get_settings


class TestLogin:
    def test_login_and_me(self, client, make_user):
        user = make_user(password="correct horse")
        res = client.post("/api/auth/login", json={"email": user.email.upper(), "password": "correct horse"})
        assert res.status_code == 200
        token = res.json()["access_token"]
        assert res.json()["token_type"] == "bearer"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["id"] == user.id
        assert me.json()["is_approved"] is True

    def test_wrong_password(self, client, make_user):
        user = make_user(password="correct horse")
        res = client.post("/api/auth/login", json={"email": user.email, "password": "battery staple"})
        assert res.status_code == 401

    def test_unknown_email(self, client):
        res = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert res.status_code == 401

    def test_account_without_password(self, client, make_user):
        user = make_user()
        res = client.post("/api/auth/login", json={"email": user.email, "password": ""})
        assert res.status_code == 401

    def test_unapproved_user_can_still_log_in(self, client, make_user):
        user = make_user(approved=False, password="pw")
        res = client.post("/api/auth/login", json={"email": user.email, "password": "pw"})
        assert res.status_code == 200


class TestMe:
    def test_requires_bearer(self, client):
        res = client.get("/api/auth/me")
        assert res.status_code == 401
        assert res.json()["code"] == "NOT_AUTHENTICATED"

    def test_deleted_user(self, client, db, make_user):
        user = make_user()
        headers = bearer(user)
        db.delete(user)
        db.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestDecodeToken:
    def test_access_token(self, make_user):
        user = make_user()
        token = bearer(user)["Authorization"].removeprefix("Bearer ")
        payload = decode_token(token)
        assert payload.sub == user.id
        assert payload.type == "access"

    def test_other_token_types_are_ignored(self):
        settings = get_settings()
        exp = datetime.utcnow() + timedelta(minutes=5)
        token = jwt.encode(
            {"sub": "u1", "email": "a@b.c", "exp": exp, "type": "refresh"},
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        assert decode_token(token) is None

    def test_expired_access_token(self):
        settings = get_settings()
        exp = datetime.utcnow() - timedelta(minutes=5)
        token = jwt.encode(
            {"sub": "u1", "email": "a@b.c", "exp": exp, "type": "access"},
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        assert decode_token(token) is None

    def test_garbage(self):
        assert decode_token("garbage") is None
