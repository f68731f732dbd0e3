"""
Tests for credential checks, token issuance and refresh.
"""
from datetime import timedelta

import jwt
import pytest
from werkzeug.exceptions import Unauthorized

from auth import ACCESS, REFRESH, AuthService, TokenSettings, decode_token, encode_token
from models import db, utcnow


@pytest.fixture
def settings(app):
    return TokenSettings.from_config(app.config)


@pytest.fixture
def auth(app, settings):
    return AuthService(db.session, settings)


class TestValidateUser:

    def test_by_email_or_username(self, auth, customer):
        assert auth.validate_user("alice@example.com", "secret123").id == customer.id
        assert auth.validate_user("alice", "secret123").id == customer.id

    def test_wrong_password(self, auth, customer):
        assert auth.validate_user("alice@example.com", "nope") is None

    def test_unknown_user(self, auth):
        assert auth.validate_user("ghost@example.com", "secret123") is None

    def test_password_is_hashed(self, customer):
        assert customer.password_hash != "secret123"
        assert customer.check_password("secret123")


class TestTokens:

    def test_login_issues_pair_with_distinct_secrets(self, auth, settings, customer):
        tokens = auth.login(customer)
        assert set(tokens) == {"access_token", "refresh_token"}

        access = decode_token(tokens["access_token"], ACCESS, settings)
        assert access["sub"] == str(customer.id)
        assert access["email"] == "alice@example.com"
        assert access["role"] == "customer"

        refresh = decode_token(tokens["refresh_token"], REFRESH, settings)
        assert refresh["sub"] == str(customer.id)
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(tokens["refresh_token"], settings.access_secret, algorithms=["HS256"])

    def test_lifetimes(self, auth, settings, customer):
        tokens = auth.login(customer)
        access = decode_token(tokens["access_token"], ACCESS, settings)
        refresh = decode_token(tokens["refresh_token"], REFRESH, settings)
        assert access["exp"] - access["iat"] == 15 * 60
        assert refresh["exp"] - refresh["iat"] == 7 * 24 * 3600

    def test_expired_access_differs_from_invalid(self, settings, customer):
        stale = encode_token(customer, ACCESS, settings, now=utcnow() - timedelta(hours=1))
        with pytest.raises(Unauthorized) as expired:
            decode_token(stale, ACCESS, settings)
        with pytest.raises(Unauthorized) as invalid:
            decode_token("not-a-token", ACCESS, settings)
        assert "expired" in expired.value.description
        assert "expired" not in invalid.value.description

    def test_refresh_token_rejected_as_access(self, auth, settings, customer):
        with pytest.raises(Unauthorized):
            decode_token(auth.login(customer)["refresh_token"], ACCESS, settings)


class TestRefresh:

    def test_refresh_mints_access_only(self, auth, settings, customer):
        result = auth.refresh_token(auth.login(customer)["refresh_token"])
        assert set(result) == {"access_token"}
        assert decode_token(result["access_token"], ACCESS, settings)["sub"] == str(customer.id)

    def test_expired_refresh(self, auth, settings, customer):
        stale = encode_token(customer, REFRESH, settings, now=utcnow() - timedelta(days=8))
        with pytest.raises(Unauthorized) as exc:
            auth.refresh_token(stale)
        assert exc.value.description == "Refresh token has expired, please log in again"

    def test_invalid_refresh(self, auth, customer):
        with pytest.raises(Unauthorized) as exc:
            auth.refresh_token(auth.login(customer)["access_token"])
        assert exc.value.description == "Invalid refresh token"

    def test_refresh_for_deleted_user(self, auth, customer):
        token = auth.login(customer)["refresh_token"]
        db.session.delete(customer)
        db.session.commit()
        with pytest.raises(Unauthorized):
            auth.refresh_token(token)


class TestMe:

    def test_profile_has_no_password(self, auth, customer):
        me = auth.get_me(customer.id)
        assert me["email"] == "alice@example.com"
        assert "password_hash" not in me
        assert "password" not in me

    def test_missing_user(self, auth):
        with pytest.raises(Unauthorized):
            auth.get_me(999)
