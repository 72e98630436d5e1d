"""
Persistence for users, items and sessions.

Thin wrappers around SQLModel queries. Lookups return None for missing
rows; writes raise ``Conflict`` / ``NotFound`` for the two store errors that
callers are expected to recover from and let any other SQLAlchemy error
propagate after rolling back.
"""
from typing import List, Optional, Tuple

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import ObjectDeletedError, StaleDataError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from errors import Conflict, NotFound
from models import Item, Role, User, UserSession, utcnow
from schemas import ItemCreate, ItemFilters, ItemUpdate


# ---------- users ----------

def find_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == email)).first()


def find_user_by_id(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def create_user(
    session: Session,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    role: Role = Role.STUDENT,
) -> User:
    user = User(email=email, password_hash=password_hash, name=name, role=role)
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        # Lost the race against another sign-up with the same email.
        session.rollback()
        raise Conflict("Email already in use") from exc
    session.refresh(user)
    return user


def delete_user(session: Session, user: User) -> List[str]:
    """
    Delete a user together with their sessions and items in one transaction.
    Returns the image references of the deleted items so the caller can
    remove the files once the rows are gone.
    """
    images: List[str] = []
    try:
        # 1) Sessions held by the user
        for row in session.exec(
            select(UserSession).where(UserSession.user_id == user.id)
        ).all():
            session.delete(row)

        # 2) Items they posted
        for item in session.exec(select(Item).where(Item.user_id == user.id)).all():
            if item.image_url:
                images.append(item.image_url)
            session.delete(item)
        session.flush()

        # 3) Finally the user record itself
        session.delete(user)
        session.commit()
    except (StaleDataError, ObjectDeletedError) as exc:
        session.rollback()
        raise NotFound("User not found") from exc
    except SQLAlchemyError:
        session.rollback()
        raise
    return images


def find_many_users(session: Session) -> List[Tuple[User, int]]:
    """All users, newest first, each paired with the number of items they posted."""
    stmt = (
        select(User, func.count(Item.id))
        .outerjoin(Item, Item.user_id == User.id)
        .group_by(User.id)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return [(user, count) for user, count in session.exec(stmt).all()]


# ---------- items ----------

def find_item_by_id(session: Session, item_id: int) -> Optional[Item]:
    return session.get(Item, item_id, options=[selectinload(Item.user)])


def create_item(
    session: Session, owner_id: int, item_in: ItemCreate, image_url: Optional[str] = None
) -> Item:
    item = Item(user_id=owner_id, image_url=image_url, **item_in.model_dump())
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def update_item(
    session: Session, item: Item, item_in: ItemUpdate, image_url: Optional[str] = None
) -> Item:
    """A missing ``image_url`` keeps the current image."""
    for field, value in item_in.model_dump().items():
        setattr(item, field, value)
    if image_url:
        item.image_url = image_url
    item.updated_at = utcnow()
    return _save_item(session, item)


def set_item_resolved(session: Session, item: Item, resolved: bool) -> Item:
    item.is_resolved = resolved
    item.updated_at = utcnow()
    return _save_item(session, item)


def _save_item(session: Session, item: Item) -> Item:
    session.add(item)
    try:
        session.commit()
        session.refresh(item)
    except (StaleDataError, ObjectDeletedError) as exc:
        # Deleted by someone else between the ownership check and the write.
        session.rollback()
        raise NotFound("Item not found") from exc
    except SQLAlchemyError:
        session.rollback()
        raise
    return item


def delete_item(session: Session, item: Item) -> None:
    # No matching row means the item was deleted concurrently.
    try:
        result = session.exec(delete(Item).where(Item.id == item.id))
        if result.rowcount == 0:
            session.rollback()
            raise NotFound("Item not found")
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise


def find_many_items(
    session: Session,
    criteria: Optional[ItemFilters] = None,
    owner_id: Optional[int] = None,
) -> List[Item]:
    """
    Items newest first. The exact-match criteria are pushed into the query;
    text search and recency are left to ``filters.filter_items``.
    """
    query = select(Item).options(selectinload(Item.user))

    if owner_id is not None:
        query = query.where(Item.user_id == owner_id)

    if criteria is not None:
        if criteria.category is not None:
            query = query.where(Item.category == criteria.category)
        if criteria.status is not None:
            query = query.where(Item.status == criteria.status)
        if criteria.resolved is not None:
            query = query.where(Item.is_resolved == criteria.resolved)

    query = query.order_by(Item.created_at.desc(), Item.id.desc())
    return list(session.exec(query).all())
