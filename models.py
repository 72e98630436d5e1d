from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _timestamp(**kwargs):
    return Field(sa_type=DateTime(timezone=True), **kwargs)


class Role(str, Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class Category(str, Enum):
    ELECTRONICS = "ELECTRONICS"
    BOOKS = "BOOKS"
    CLOTHING = "CLOTHING"
    ACCESSORIES = "ACCESSORIES"
    DOCUMENTS = "DOCUMENTS"
    KEYS = "KEYS"
    BAGS = "BAGS"
    SPORTS = "SPORTS"
    OTHER = "OTHER"


class ItemStatus(str, Enum):
    LOST = "LOST"
    FOUND = "FOUND"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: Optional[str] = None
    password_hash: str
    role: Role = Role.STUDENT
    created_at: datetime = _timestamp(default_factory=utcnow, index=True)


class UserSession(SQLModel, table=True):
    __tablename__ = "session"

    token: str = Field(primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    expires_at: datetime = _timestamp()
    created_at: datetime = _timestamp(default_factory=utcnow)


class Item(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    title: str
    description: str
    category: Category
    status: ItemStatus
    location: str
    contact_number: str
    image_url: Optional[str] = None
    is_resolved: bool = False

    created_at: datetime = _timestamp(default_factory=utcnow, index=True)
    updated_at: datetime = _timestamp(default_factory=utcnow)

    user: Optional[User] = Relationship()
