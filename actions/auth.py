import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import store
from errors import AppError, Conflict
from models import Role
from schemas import ActionResult, LoginData, SignUpData, UserRead
from security import dummy_verify, hash_password, verify_password
from sessions import create_session, destroy_session

logger = logging.getLogger(__name__)


def _signed_in(session: Session, user) -> ActionResult:
    token = create_session(session, user.id)
    return ActionResult.ok({"user": UserRead.model_validate(user), "token": token})


def sign_up(session: Session, data: SignUpData) -> ActionResult:
    """
    Register a new STUDENT account and open a session for it.
    On success ``data`` holds the new user and the cookie token.
    """
    try:
        if store.find_user_by_email(session, data.email):
            raise Conflict("Email already in use")

        user = store.create_user(
            session,
            email=data.email,
            password_hash=hash_password(data.password),
            name=data.name,
            role=Role.STUDENT,
        )
        logger.info("New account %s", user.id)
        return _signed_in(session, user)
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Signup failed")
        return ActionResult.fail("Failed to create account", 500)


def sign_in(session: Session, data: LoginData) -> ActionResult:
    try:
        user = store.find_user_by_email(session, data.email)
        if user is None:
            dummy_verify()
            return ActionResult.fail("Invalid email or password")

        if not verify_password(data.password, user.password_hash):
            logger.info("Failed sign-in for user %s", user.id)
            return ActionResult.fail("Invalid email or password")

        return _signed_in(session, user)
    except SQLAlchemyError:
        logger.exception("Signin failed")
        return ActionResult.fail("Failed to sign in", 500)


def sign_out(session: Session, token: Optional[str]) -> ActionResult:
    try:
        destroy_session(session, token)
    except SQLAlchemyError:
        # The cookie is cleared regardless; the row expires on its own.
        logger.exception("Signout failed")
        return ActionResult.fail("Failed to sign out", 500)
    return ActionResult.ok()
