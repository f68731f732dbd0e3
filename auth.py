"""Credential checks, JWT issuance/verification and the route guards."""
from dataclasses import dataclass
from datetime import timedelta
from functools import wraps

import jwt
from flask import current_app, g, request
from sqlalchemy import or_, select

from errors import Forbidden, Unauthorized, guarded
from models import User, UserRole, db, utcnow

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenSettings:
    access_secret: str
    refresh_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta

    @classmethod
    def from_config(cls, config):
        return cls(
            access_secret=config["JWT_ACCESS_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_ttl=timedelta(minutes=config["JWT_ACCESS_EXPIRES_MINUTES"]),
            refresh_ttl=timedelta(days=config["JWT_REFRESH_EXPIRES_DAYS"]),
        )

    def secret_for(self, kind):
        return self.access_secret if kind == ACCESS else self.refresh_secret

    def ttl_for(self, kind):
        return self.access_ttl if kind == ACCESS else self.refresh_ttl


# ---------- tokens ----------

def encode_token(user, kind, settings, now=None):
    now = now or utcnow()
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "type": kind,
        "iat": now,
        "exp": now + settings.ttl_for(kind),
    }
    return jwt.encode(payload, settings.secret_for(kind), algorithm=ALGORITHM)


def decode_token(token, kind, settings):
    """Verify ``token`` as a ``kind`` token and return its claims.

    Expiry and every other verification failure raise ``Unauthorized`` with
    different messages: an expired access token can be refreshed, anything
    else needs a new login.
    """
    if kind == ACCESS:
        expired_msg = "Access token has expired"
        invalid_msg = "Not authenticated or token is invalid"
    else:
        expired_msg = "Refresh token has expired, please log in again"
        invalid_msg = "Invalid refresh token"

    if not token:
        raise Unauthorized(invalid_msg)
    try:
        claims = jwt.decode(
            token, settings.secret_for(kind), algorithms=[ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        current_app.logger.info(f"Rejected expired {kind} token")
        raise Unauthorized(expired_msg)
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Rejected {kind} token: {e}")
        raise Unauthorized(invalid_msg)

    if claims.get("type") != kind:
        current_app.logger.warning(f"Rejected token of type {claims.get('type')!r} used as {kind}")
        raise Unauthorized(invalid_msg)
    return claims


def bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ---------- service ----------

class AuthService:
    def __init__(self, session, settings):
        self.session = session
        self.settings = settings

    @guarded("Error validating the user")
    def validate_user(self, identifier, password):
        user = self.session.scalar(
            select(User).where(or_(User.email == identifier, User.username == identifier))
        )
        if not user or not user.check_password(password):
            return None
        return user

    def login(self, user):
        return {
            "access_token": encode_token(user, ACCESS, self.settings),
            "refresh_token": encode_token(user, REFRESH, self.settings),
        }

    @guarded("Error refreshing the token")
    def refresh_token(self, token):
        claims = decode_token(token, REFRESH, self.settings)
        user = self.session.get(User, int(claims["sub"]))
        if not user:
            raise Unauthorized("Invalid refresh token")
        return {"access_token": encode_token(user, ACCESS, self.settings)}

    @guarded("Error loading the profile")
    def get_me(self, user_id):
        user = self.session.get(User, user_id)
        if not user:
            raise Unauthorized("User not found")
        return user.to_dict()


def get_auth_service():
    return AuthService(db.session, TokenSettings.from_config(current_app.config))


# ---------- guards ----------

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        settings = TokenSettings.from_config(current_app.config)
        claims = decode_token(bearer_token(), ACCESS, settings)
        g.current_user = {
            "user_id": int(claims["sub"]),
            "email": claims.get("email"),
            "role": claims.get("role"),
        }
        return fn(*args, **kwargs)
    return wrapper


def roles_required(*roles):
    def decorator(fn):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            if g.current_user["role"] not in roles:
                raise Forbidden("You do not have permission for this action")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def require_self_or_admin(user_id):
    me = g.current_user
    if me["user_id"] != user_id and me["role"] != UserRole.ADMIN:
        raise Forbidden("You can only manage your own account and orders")
