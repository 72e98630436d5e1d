"""
Item actions.

Every mutation takes the acting user explicitly, re-reads the item and
checks ownership before writing. Failures come back as ``ActionResult``.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import store
from authz import ensure_can_modify
from errors import AppError, NotFound
from filters import filter_items
from models import Item, User
from schemas import ActionResult, ItemCreate, ItemFilters, ItemUpdate
from storage import delete_image

logger = logging.getLogger(__name__)


def _load_for_write(session: Session, user: User, item_id: int) -> Item:
    item = store.find_item_by_id(session, item_id)
    if item is None:
        raise NotFound("Item not found")
    ensure_can_modify(user, item)
    return item


def create_item(
    session: Session, user: User, item_in: ItemCreate, image_url: Optional[str] = None
) -> ActionResult:
    """``image_url`` must come from ``storage.upload_image``, never from client input."""
    try:
        item = store.create_item(session, user.id, item_in, image_url)
    except SQLAlchemyError:
        logger.exception("Error creating item")
        return ActionResult.fail("Failed to create item", 500)
    logger.info("User %s posted item %s", user.id, item.id)
    return ActionResult.ok(item)


def update_item(
    session: Session,
    user: User,
    item_id: int,
    item_in: ItemUpdate,
    image_url: Optional[str] = None,
) -> ActionResult:
    try:
        item = _load_for_write(session, user, item_id)
        old_image = item.image_url
        item = store.update_item(session, item, item_in, image_url)
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Error updating item %s", item_id)
        return ActionResult.fail("Failed to update item", 500)

    if old_image and old_image != item.image_url:
        delete_image(old_image)
    return ActionResult.ok(item)


def delete_item(session: Session, user: User, item_id: int) -> ActionResult:
    try:
        item = _load_for_write(session, user, item_id)
        image = item.image_url
        store.delete_item(session, item)
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Error deleting item %s", item_id)
        return ActionResult.fail("Failed to delete item", 500)

    if image:
        delete_image(image)
    logger.info("User %s deleted item %s", user.id, item_id)
    return ActionResult.ok()


def mark_item_as_resolved(
    session: Session, user: User, item_id: int, resolved: bool
) -> ActionResult:
    try:
        item = _load_for_write(session, user, item_id)
        item = store.set_item_resolved(session, item, resolved)
    except AppError as exc:
        return ActionResult.fail(exc.message, exc.status_code)
    except SQLAlchemyError:
        logger.exception("Error updating item %s", item_id)
        return ActionResult.fail("Failed to update item", 500)
    return ActionResult.ok(item)


def get_items(
    session: Session,
    criteria: Optional[ItemFilters] = None,
    now: Optional[datetime] = None,
) -> List[Item]:
    """Public listing, newest first. A store error yields an empty list."""
    try:
        items = store.find_many_items(session, criteria)
    except SQLAlchemyError:
        logger.exception("Error fetching items")
        return []
    return filter_items(items, criteria, now=now)


def get_item_by_id(session: Session, item_id: int) -> Optional[Item]:
    try:
        return store.find_item_by_id(session, item_id)
    except SQLAlchemyError:
        logger.exception("Error fetching item %s", item_id)
        return None


def get_user_items(session: Session, user: User) -> List[Item]:
    try:
        return store.find_many_items(session, owner_id=user.id)
    except SQLAlchemyError:
        logger.exception("Error fetching items of user %s", user.id)
        return []
