import logging
from typing import Annotated, Optional

from fastapi import Cookie, Depends
from sqlmodel import Session

import config
import store
from db import SessionDep
from errors import Unauthenticated, Unauthorized
from models import Item, Role, User
from sessions import validate_session

logger = logging.getLogger(__name__)


def is_admin(user: User) -> bool:
    if user.role == Role.ADMIN:
        return True
    if user.role == Role.STUDENT:
        return False
    raise ValueError(f"Unhandled role: {user.role!r}")


def ensure_admin(user: User) -> User:
    if not is_admin(user):
        logger.warning("User %s denied admin access", user.id)
        raise Unauthorized()
    return user


def can_modify_item(user: User, item: Item) -> bool:
    return item.user_id == user.id or is_admin(user)


def ensure_can_modify(user: User, item: Item) -> None:
    if not can_modify_item(user, item):
        logger.warning("User %s denied write access to item %s", user.id, item.id)
        raise Unauthorized()


def require_auth(session: Session, token: Optional[str]) -> User:
    """
    Resolve the session token to its user.
    Raises Unauthenticated when the token is missing, unknown or expired.
    """
    user_id = validate_session(session, token)
    if user_id is None:
        raise Unauthenticated()

    user = store.find_user_by_id(session, user_id)
    if user is None:
        raise Unauthenticated()
    return user


def require_admin(session: Session, token: Optional[str]) -> User:
    return ensure_admin(require_auth(session, token))


# ---------- FastAPI dependencies ----------

def get_current_user(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
) -> User:
    return require_auth(session, session_token)


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_optional_user(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
) -> Optional[User]:
    """
    Like get_current_user, but returns None instead of raising.
    Used by public pages to render the navbar.
    """
    try:
        return require_auth(session, session_token)
    except Unauthenticated:
        return None


OptionalUserDep = Annotated[Optional[User], Depends(get_optional_user)]


def get_admin_user(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
) -> User:
    return require_admin(session, session_token)


AdminUserDep = Annotated[User, Depends(get_admin_user)]
