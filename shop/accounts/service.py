"""Account operations: register, login and token authentication."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import AuthenticationError, PermissionDeniedError, ValidationError
from .models import AccessToken, Role, User
from .schemas import LoginIn, RegisterIn
from .security import hash_password, new_token, token_digest, verify_password

logger = logging.getLogger("shop.accounts")


def _aware(dt: datetime) -> datetime:
    # SQLite returns naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def register(session: Session, data: RegisterIn) -> User:
    """Create a user with role ``User``.

    Raises:
        ValidationError: If the email or username is already taken.
    """
    errors = []
    if session.execute(select(User.id).where(User.email == data.email)).first():
        errors.append("email already registered")
    if session.execute(select(User.id).where(User.username == data.username)).first():
        errors.append("username already taken")
    if errors:
        raise ValidationError(errors)

    user = User(username=data.username, email=data.email, password_hash=hash_password(data.password), role=Role.USER.value)
    session.add(user)
    session.flush()
    logger.info("user registered", extra={"user_id": user.id})
    return user


def login(session: Session, data: LoginIn, ttl_secs: int) -> str:
    """Verify credentials and issue an opaque bearer token.

    Raises:
        AuthenticationError: Unknown email or wrong password.
    """
    user = session.execute(select(User).where(User.email == data.email)).scalars().first()
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError(["invalid credentials"], message="Invalid credentials")
    token = new_token()
    session.add(
        AccessToken(
            token_hash=token_digest(token),
            user_id=user.id,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_secs),
        )
    )
    logger.info("user logged in", extra={"user_id": user.id})
    return token


def authenticate(session: Session, token: str) -> User:
    """Resolve a bearer token to its user.

    Raises:
        AuthenticationError: Unknown or expired token.
    """
    rec = session.get(AccessToken, token_digest(token))
    if rec is None:
        raise AuthenticationError(["Invalid token"], message="Invalid token")
    if _aware(rec.expires_at) <= datetime.now(timezone.utc):
        raise AuthenticationError(["Token expired"], message="Invalid token")
    user = session.get(User, rec.user_id)
    if user is None:
        raise AuthenticationError(["Invalid token"], message="Invalid token")
    return user


def require_role(user: User, role: Role) -> None:
    if user.role != role.value:
        raise PermissionDeniedError(["insufficient permissions"])
