"""
Integration tests for authentication endpoints
"""
import time
from datetime import datetime, timedelta, timezone

import jwt
import pyotp
import pytest

from conftest import register
from db.base import utcnow
from db.models.token import SingleUseToken
from db.models.user import User


def invalid_code(secret):
    totp = pyotp.TOTP(secret)
    now = int(time.time())
    accepted = {totp.at(now + offset) for offset in (-30, 0, 30)}
    return next(code for code in ("000000", "111111", "222222", "333333") if code not in accepted)


class TestRegisterAndLogin:
    """Test registration, login and the session token"""

    def test_register_success(self, client, outbox):
        """Test successful registration sends a verification link"""
        data = register(client, email="new@example.com")
        assert data["token"]
        assert data["user"]["email"] == "new@example.com"
        assert "id" in data["user"]

        assert len(outbox.sent) == 1
        assert outbox.sent[0]["to"] == "new@example.com"
        assert "http://frontend.test/verify-email?token=" in outbox.sent[0]["text"]

    def test_register_duplicate_email(self, client):
        """Test registering an existing email returns a conflict"""
        register(client, email="dup@example.com")
        response = client.post(
            "/auth/register",
            json={"email": "dup@example.com", "password": "anotherpassword1", "displayName": "Dup"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_register_weak_password(self, client):
        """Test registration with a short password"""
        response = client.post(
            "/auth/register",
            json={"email": "weak@example.com", "password": "weak", "displayName": "Weak"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_register_invalid_email(self, client):
        """Test registration with an invalid email"""
        response = client.post(
            "/auth/register",
            json={"email": "not-an-email", "password": "strongpassword123", "displayName": "X"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_login_success(self, client, registered_user, db_session):
        """Test successful login records the login time"""
        response = client.post(
            "/auth/login",
            json={"email": "agent@example.com", "password": "strongpassword123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["user"]["id"] == registered_user["user"]["id"]

        user = db_session.query(User).filter_by(email="agent@example.com").one()
        assert user.last_login_at is not None

    def test_login_wrong_password(self, client, registered_user):
        """Test login with a wrong password"""
        response = client.post(
            "/auth/login",
            json={"email": "agent@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_login_unknown_email(self, client):
        """Test login for an account that does not exist"""
        response = client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "strongpassword123"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_me(self, client, auth_headers):
        """Test the profile of the caller"""
        response = client.get("/auth/me", headers=auth_headers)
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "agent@example.com"
        assert user["displayName"] == "Agent"
        assert user["isEmailVerified"] is False
        assert user["mfaEnabled"] is False

    def test_me_without_token(self, client):
        """Test that a missing Authorization header is rejected"""
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_me_with_invalid_token(self, client):
        """Test that a forged token is rejected"""
        response = client.get("/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired token", "code": "UNAUTHENTICATED"}

    def test_me_with_expired_token(self, client, registered_user):
        """Test that a correctly signed but expired token is rejected"""
        user = registered_user["user"]
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": str(user["id"]), "email": user["email"], "iat": issued, "exp": issued + timedelta(hours=1)},
            "test-secret-key-for-testing-only",
            algorithm="HS256",
        )
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired token", "code": "UNAUTHENTICATED"}


class TestEmailVerification:
    """Test single-use email verification tokens"""

    def test_verify_email(self, client, auth_headers, outbox):
        """Test verifying the email marks the user as verified"""
        token = outbox.last_token("agent@example.com")
        response = client.post("/auth/verify-email", json={"token": token})
        assert response.status_code == 200
        assert response.json() == {"success": True}

        me = client.get("/auth/me", headers=auth_headers).json()["user"]
        assert me["isEmailVerified"] is True

    def test_verify_email_replay(self, client, registered_user, outbox):
        """Test a token can only be consumed once"""
        token = outbox.last_token()
        assert client.post("/auth/verify-email", json={"token": token}).status_code == 200

        response = client.post("/auth/verify-email", json={"token": token})
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_USED"

    def test_verify_email_unknown_token(self, client):
        """Test an unknown token is rejected"""
        response = client.post("/auth/verify-email", json={"token": "does-not-exist"})
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_INVALID"

    def test_verify_email_expired(self, client, registered_user, outbox, db_session):
        """Test an expired token is rejected and the user stays unverified"""
        token = outbox.last_token()
        record = db_session.query(SingleUseToken).filter_by(token=token).one()
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.post("/auth/verify-email", json={"token": token})
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_EXPIRED"

        db_session.expire_all()
        user = db_session.query(User).filter_by(email="agent@example.com").one()
        assert user.email_verified_at is None

    def test_resend_verification(self, client, registered_user, outbox):
        """Test resending issues a new token"""
        first = outbox.last_token()
        response = client.post("/auth/resend-verification", json={"email": "agent@example.com"})
        assert response.status_code == 200
        assert "message" in response.json()
        assert len(outbox.sent) == 2
        assert outbox.last_token() != first

    def test_resend_verification_unknown_email(self, client):
        """Test resending for an unknown account"""
        response = client.post("/auth/resend-verification", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_resend_verification_already_verified(self, client, registered_user, outbox):
        """Test resending after verification"""
        client.post("/auth/verify-email", json={"token": outbox.last_token()})
        response = client.post("/auth/resend-verification", json={"email": "agent@example.com"})
        assert response.status_code == 400
        assert response.json()["code"] == "ALREADY_VERIFIED"


class TestPasswordReset:
    """Test the forgot/reset password flow"""

    def test_forgot_password_unknown_email(self, client, outbox):
        """Test the response does not reveal whether the account exists"""
        response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert outbox.sent == []

    def test_reset_password(self, client, registered_user, outbox):
        """Test resetting the password replaces the old one"""
        response = client.post("/auth/forgot-password", json={"email": "agent@example.com"})
        assert response.status_code == 200
        assert "http://frontend.test/reset-password?token=" in outbox.sent[-1]["text"]
        token = outbox.last_token()

        response = client.post(
            "/auth/reset-password",
            json={"token": token, "newPassword": "brandnewpassword1"},
        )
        assert response.status_code == 200

        old = client.post("/auth/login", json={"email": "agent@example.com", "password": "strongpassword123"})
        assert old.status_code == 401
        new = client.post("/auth/login", json={"email": "agent@example.com", "password": "brandnewpassword1"})
        assert new.status_code == 200

        replay = client.post(
            "/auth/reset-password",
            json={"token": token, "newPassword": "anotherpassword1"},
        )
        assert replay.status_code == 400
        assert replay.json()["code"] == "TOKEN_USED"

    def test_verification_token_cannot_reset_password(self, client, registered_user, outbox):
        """Test tokens are bound to their purpose"""
        token = outbox.last_token()
        response = client.post(
            "/auth/reset-password",
            json={"token": token, "newPassword": "brandnewpassword1"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_INVALID"


class TestMfa:
    """Test TOTP setup, enable, login and disable"""

    def _enable(self, client, auth_headers):
        secret = client.post("/auth/mfa/setup", headers=auth_headers).json()["base32"]
        response = client.post(
            "/auth/mfa/enable",
            json={"code": pyotp.TOTP(secret).now()},
            headers=auth_headers,
        )
        assert response.status_code == 200
        return secret

    def test_setup_returns_secret(self, client, auth_headers):
        """Test setup returns a provisioning URI without enabling MFA"""
        response = client.post("/auth/mfa/setup", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["otpauthUrl"].startswith("otpauth://totp/")
        assert "issuer=AIPIX" in data["otpauthUrl"]
        assert data["base32"]

        me = client.get("/auth/me", headers=auth_headers).json()["user"]
        assert me["mfaEnabled"] is False

    def test_enable_without_setup(self, client, auth_headers):
        """Test enabling before a secret exists"""
        response = client.post("/auth/mfa/enable", json={"code": "123456"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "MFA_NOT_SETUP"

    def test_enable_with_wrong_code(self, client, auth_headers):
        """Test enabling with a wrong code"""
        secret = client.post("/auth/mfa/setup", headers=auth_headers).json()["base32"]
        response = client.post("/auth/mfa/enable", json={"code": invalid_code(secret)}, headers=auth_headers)
        assert response.status_code == 401
        assert response.json()["code"] == "MFA_INVALID"

    def test_login_requires_code(self, client, auth_headers):
        """Test login asks for the second factor once enabled"""
        secret = self._enable(client, auth_headers)
        credentials = {"email": "agent@example.com", "password": "strongpassword123"}

        response = client.post("/auth/login", json=credentials)
        assert response.status_code == 401
        assert response.json()["code"] == "MFA_REQUIRED"
        assert response.json()["mfaRequired"] is True

        response = client.post("/auth/login", json={**credentials, "mfaCode": invalid_code(secret)})
        assert response.status_code == 401
        assert response.json()["code"] == "MFA_INVALID"

        response = client.post("/auth/login", json={**credentials, "mfaCode": pyotp.TOTP(secret).now()})
        assert response.status_code == 200
        assert response.json()["token"]

    def test_disable(self, client, auth_headers):
        """Test disabling MFA clears the secret"""
        secret = self._enable(client, auth_headers)
        response = client.post(
            "/auth/mfa/disable",
            json={"code": pyotp.TOTP(secret).now()},
            headers=auth_headers,
        )
        assert response.status_code == 200

        me = client.get("/auth/me", headers=auth_headers).json()["user"]
        assert me["mfaEnabled"] is False
        response = client.post(
            "/auth/login",
            json={"email": "agent@example.com", "password": "strongpassword123"},
        )
        assert response.status_code == 200

        response = client.post("/auth/mfa/disable", json={"code": "123456"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "MFA_NOT_SETUP"

    def test_setup_while_enabled(self, client, auth_headers):
        """Test a session alone cannot swap the secret and turn MFA off"""
        self._enable(client, auth_headers)

        response = client.post("/auth/mfa/setup", headers=auth_headers)
        assert response.status_code == 409
        assert response.json() == {"detail": "MFA already enabled", "code": "CONFLICT"}

        foreign_secret = pyotp.random_base32()
        response = client.post(
            "/auth/mfa/disable",
            json={"code": pyotp.TOTP(foreign_secret).now()},
            headers=auth_headers,
        )
        assert response.status_code == 401
        assert response.json()["code"] == "MFA_INVALID"

        me = client.get("/auth/me", headers=auth_headers).json()["user"]
        assert me["mfaEnabled"] is True

    def test_login_accepts_previous_step(self, client, auth_headers):
        """Test a code from the previous 30 second step is still accepted"""
        secret = self._enable(client, auth_headers)
        code = pyotp.TOTP(secret).at(int(time.time()) - 30)
        response = client.post(
            "/auth/login",
            json={"email": "agent@example.com", "password": "strongpassword123", "mfaCode": code},
        )
        assert response.status_code == 200
        assert response.json()["token"]

    def test_login_rejects_stale_code(self, client, auth_headers):
        """Test a code three steps old falls outside the drift window"""
        secret = self._enable(client, auth_headers)
        totp = pyotp.TOTP(secret)
        now = int(time.time())
        accepted = {totp.at(now + offset) for offset in (-30, 0, 30)}
        stale = next(
            code for code in (totp.at(now - step * 30) for step in range(3, 10)) if code not in accepted
        )
        response = client.post(
            "/auth/login",
            json={"email": "agent@example.com", "password": "strongpassword123", "mfaCode": stale},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "MFA_INVALID"

    @pytest.mark.parametrize("path", ["/auth/mfa/setup", "/auth/mfa/enable", "/auth/mfa/disable"])
    def test_mfa_requires_auth(self, client, path):
        """Test MFA routes require a session"""
        response = client.post(path, json={"code": "123456"})
        assert response.status_code == 401
