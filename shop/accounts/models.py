import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import mapped_column

from ..db import Base


class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"


class User(Base):
    __tablename__ = "users"

    id = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = mapped_column(String(64), unique=True, nullable=False)
    email = mapped_column(String(254), unique=True, nullable=False)
    password_hash = mapped_column(String(255), nullable=False)
    role = mapped_column(String(16), nullable=False, default=Role.USER.value)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class AccessToken(Base):
    """Issued bearer token, stored only as its SHA-256 digest."""

    __tablename__ = "access_tokens"

    token_hash = mapped_column(String(64), primary_key=True)
    user_id = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = mapped_column(DateTime(timezone=True), nullable=False)
