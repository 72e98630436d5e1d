import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import store
from authz import ensure_admin
from errors import AppError, Conflict, NotFound
from models import Role, User
from schemas import ActionResult, SignUpData, UserRead, UserWithItemCount
from security import hash_password
from storage import delete_image

logger = logging.getLogger(__name__)


def get_all_users(session: Session, admin: User) -> List[UserWithItemCount]:
    """Newest users first, with how many items each has posted."""
    ensure_admin(admin)
    try:
        rows = store.find_many_users(session)
    except SQLAlchemyError:
        logger.exception("Error fetching users")
        return []
    return [
        UserWithItemCount(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            item_count=count,
        )
        for user, count in rows
    ]


def delete_user(session: Session, admin: User, user_id: int) -> ActionResult:
    admin_id = admin.id
    try:
        ensure_admin(admin)
        user = store.find_user_by_id(session, user_id)
        if user is None:
            raise NotFound("User not found")
        images = store.delete_user(session, user)
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Error deleting user %s", user_id)
        return ActionResult.fail("Failed to delete user", 500)

    for image in images:
        delete_image(image)
    logger.info("Admin %s deleted user %s and %d items", admin_id, user_id, len(images))
    return ActionResult.ok()


def _create_user(session: Session, admin: User, data: SignUpData, role: Role) -> ActionResult:
    try:
        ensure_admin(admin)
        if store.find_user_by_email(session, data.email):
            raise Conflict("User with this email already exists")
        user = store.create_user(
            session,
            email=data.email,
            password_hash=hash_password(data.password),
            name=data.name,
            role=role,
        )
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Error creating %s user", role.value.lower())
        return ActionResult.fail("Failed to create user", 500)

    logger.info("Admin %s created %s user %s", admin.id, role.value, user.id)
    return ActionResult.ok(UserRead.model_validate(user))


def create_admin_user(session: Session, admin: User, data: SignUpData) -> ActionResult:
    return _create_user(session, admin, data, Role.ADMIN)


def create_student_user(session: Session, admin: User, data: SignUpData) -> ActionResult:
    return _create_user(session, admin, data, Role.STUDENT)
