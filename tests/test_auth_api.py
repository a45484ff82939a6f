"""
Auth API tests — signup, login, session cookie and Bearer resolution,
profile updates and the JSON error envelope.
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt

from bugfixer.services.jwt_service import generate_session_token


def _signup(c, email="alice@acme.io", password="s3cret-pass", name="Alice"):
    return c.post("/api/auth/signup", json={"email": email, "password": password, "name": name})


# ═══════════════════════════════════════════════════════════════
# Signup / login
# ═══════════════════════════════════════════════════════════════

class TestSignup:
    def test_signup_sets_cookie_and_returns_user(self, client):
        res = _signup(client)
        assert res.status_code == 201
        data = res.get_json()
        assert data["user"]["email"] == "alice@acme.io"
        assert data["invitationsAccepted"] == 0
        assert "password_hash" not in data["user"]
        cookie = res.headers.get("Set-Cookie", "")
        assert cookie.startswith("token=")
        assert "HttpOnly" in cookie

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.get_json()["user"]["name"] == "Alice"

    def test_email_is_lowercased(self, client):
        res = _signup(client, email="Alice@Acme.IO")
        assert res.get_json()["user"]["email"] == "alice@acme.io"

    def test_duplicate_email_rejected(self, app, client):
        _signup(client)
        res = _signup(app.test_client(), email="ALICE@acme.io")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Email already in use"

    def test_validation_details(self, client):
        res = client.post("/api/auth/signup", json={"email": "nope", "password": "123", "name": "A"})
        assert res.status_code == 400
        body = res.get_json()
        assert body["error"] == "Validation failed"
        fields = {d["field"] for d in body["details"]}
        assert fields == {"email", "password", "name"}

    def test_non_object_body(self, client):
        res = client.post("/api/auth/signup", data="not json", content_type="text/plain")
        assert res.status_code == 400
        assert res.get_json()["details"][0]["field"] == "body"

    def test_welcome_email_sent(self, client, outbox):
        _signup(client)
        assert [m["template"] for m in outbox] == ["welcome"]
        assert outbox[0]["to"] == "alice@acme.io"


class TestLogin:
    def test_login_with_any_case(self, app, client):
        _signup(client)
        c = app.test_client()
        res = c.post("/api/auth/login", json={"email": "ALICE@acme.io", "password": "s3cret-pass"})
        assert res.status_code == 200
        assert res.get_json()["user"]["email"] == "alice@acme.io"
        assert c.get("/api/auth/me").status_code == 200

    def test_wrong_password_and_unknown_email_look_the_same(self, app, client):
        _signup(client)
        c = app.test_client()
        wrong = c.post("/api/auth/login", json={"email": "alice@acme.io", "password": "bad-pass"})
        unknown = c.post("/api/auth/login", json={"email": "bob@acme.io", "password": "bad-pass"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json() == {"error": "Invalid email or password"}

    def test_logout_clears_cookie(self, client):
        _signup(client)
        res = client.post("/api/auth/logout")
        assert res.status_code == 200
        assert res.get_json()["message"] == "Logged out successfully"
        assert client.get("/api/auth/me").status_code == 401


# ═══════════════════════════════════════════════════════════════
# Token resolution
# ═══════════════════════════════════════════════════════════════

class TestTokenResolution:
    def test_missing_token(self, client):
        res = client.get("/api/auth/me")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Authentication required"

    def test_bearer_header(self, app, client):
        user = _signup(client).get_json()["user"]
        token = generate_session_token(user["id"], user["email"])
        res = app.test_client().get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json()["user"]["id"] == user["id"]

    def test_invalid_token(self, app):
        res = app.test_client().get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_expired_token(self, app, client):
        user = _signup(client).get_json()["user"]
        past = datetime.now(timezone.utc) - timedelta(days=8)
        token = pyjwt.encode(
            {"sub": user["id"], "email": user["email"], "type": "session",
             "iat": past, "exp": past + timedelta(days=7)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        res = app.test_client().get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token expired"

    def test_token_for_deleted_user(self, app, client):
        user = _signup(client).get_json()["user"]
        token = generate_session_token(user["id"], user["email"])
        assert client.delete("/api/auth/me").status_code == 200
        res = app.test_client().get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "User not found"


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════

class TestProfile:
    def test_update_profile_refreshes_identity(self, client):
        _signup(client)
        res = client.put("/api/auth/profile", json={"name": "Alice Cooper",
                                                    "avatarUrl": "https://cdn.acme.io/a.png"})
        assert res.status_code == 200
        user = res.get_json()["user"]
        assert user["name"] == "Alice Cooper"
        assert user["avatarUrl"] == "https://cdn.acme.io/a.png"
        assert client.get("/api/auth/me").get_json()["user"]["name"] == "Alice Cooper"

    def test_clear_avatar(self, client):
        _signup(client)
        client.put("/api/auth/profile", json={"avatarUrl": "https://cdn.acme.io/a.png"})
        res = client.put("/api/auth/profile", json={"avatarUrl": None})
        assert res.get_json()["user"]["avatarUrl"] is None

    def test_invalid_avatar(self, client):
        _signup(client)
        res = client.put("/api/auth/profile", json={"avatarUrl": "not a url"})
        assert res.status_code == 400
        assert res.get_json()["details"][0]["field"] == "avatarUrl"


# ═══════════════════════════════════════════════════════════════
# Platform
# ═══════════════════════════════════════════════════════════════

class TestPlatform:
    def test_health(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-Duration-Ms" in res.headers

    def test_readiness_checks_database(self, client):
        res = client.get("/api/health/ready")
        assert res.status_code == 200
        assert res.get_json()["database"]["status"] == "ok"

    def test_unknown_route_is_json(self, client):
        res = client.get("/api/does-not-exist")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Not found"

    def test_wrong_method_is_json(self, client):
        res = client.delete("/api/auth/login")
        assert res.status_code == 405
        assert res.get_json()["error"] == "Method not allowed"

    def test_request_id_echoed(self, client):
        res = client.get("/api/health", headers={"X-Request-ID": "edge-42.a"})
        assert res.headers["X-Request-ID"] == "edge-42.a"

    def test_malformed_request_id_replaced(self, client):
        res = client.get("/api/health", headers={"X-Request-ID": "bad id!"})
        rid = res.headers["X-Request-ID"]
        assert rid != "bad id!"
        assert len(rid) == 12

    def test_auth_responses_not_cached(self, client):
        res = _signup(client)
        assert res.headers["Cache-Control"] == "no-store"
        assert "Cache-Control" not in client.get("/api/health").headers

    def test_embed_script_cacheable_cross_origin(self, client):
        res = client.get("/api/widget/embed.js?token=abc")
        assert res.status_code == 200
        assert res.headers["Cache-Control"] == "public, max-age=300"
        assert res.headers["Cross-Origin-Resource-Policy"] == "cross-origin"
