"""Auth endpoints and the FastAPI dependencies that guard other routes."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Request
from sqlalchemy.orm import Session

from .. import responses
from ..db import session_scope
from ..errors import AuthenticationError
from ..validation import parse
from . import service
from .models import Role, User
from .schemas import LoginIn, RegisterIn, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


def get_db(request: Request):
    """Yield a session that commits when the handler returns normally."""
    with session_scope(request.app.state.sessionmaker) as s:
        yield s


def current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError(["Missing token"])
    return service.authenticate(db, authorization.split(" ", 1)[1].strip())


def require_admin(user: User = Depends(current_user)) -> User:
    service.require_role(user, Role.ADMIN)
    return user


@router.post("/register")
def register(payload: Any = Body(default=None), db: Session = Depends(get_db)):
    data = parse(RegisterIn, payload)
    user = service.register(db, data)
    out = UserOut(id=user.id, username=user.username, email=user.email, created_at=user.created_at)
    body = out.model_dump(mode="json", by_alias=True)
    return responses.success(201, "User registered", body).to_response()


@router.post("/login")
def login(request: Request, payload: Any = Body(default=None), db: Session = Depends(get_db)):
    data = parse(LoginIn, payload)
    token = service.login(db, data, request.app.state.settings.token_ttl_secs)
    return responses.success(200, "Login successful", {"token": token}).to_response()
