from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import Category, ItemStatus, Role


class Recency(str, Enum):
    """Posting-age buckets; the value is the max number of whole days elapsed."""

    TODAY = "today"
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    ANY = "any"

    @property
    def max_days(self) -> Optional[int]:
        return {
            Recency.TODAY: 0,
            Recency.WEEK: 7,
            Recency.MONTH: 30,
            Recency.QUARTER: 90,
            Recency.ANY: None,
        }[self]


class ItemFilters(BaseModel):
    search: Optional[str] = None
    category: Optional[Category] = None
    status: Optional[ItemStatus] = None
    resolved: Optional[bool] = None
    posted_within: Recency = Recency.ANY

    @field_validator("category", "status", "resolved", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        # The browse form sends "" or "ALL" for "no filter".
        if isinstance(value, str) and value.strip().upper() in {"", "ALL"}:
            return None
        return value

    @field_validator("posted_within", mode="before")
    @classmethod
    def _blank_is_any(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return Recency.ANY
        return value


class ItemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: Category
    status: ItemStatus
    location: str = Field(min_length=1, max_length=200)
    contact_number: str = Field(min_length=1, max_length=50)


class ItemUpdate(ItemCreate):
    """Full replacement of the editable fields. The image is handled separately."""


class SignUpData(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class LoginData(BaseModel):
    email: EmailStr
    password: str


class UserCreate(SignUpData):
    role: Role = Role.STUDENT


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str] = None
    role: Role

    model_config = ConfigDict(from_attributes=True)


class UserWithItemCount(UserRead):
    item_count: int = 0


class ItemPoster(BaseModel):
    name: Optional[str] = None
    email: str

    model_config = ConfigDict(from_attributes=True)


class ItemRead(BaseModel):
    """An item as shown to other users, with who posted it."""

    id: int
    user_id: int
    title: str
    description: str
    category: Category
    status: ItemStatus
    location: str
    contact_number: str
    image_url: Optional[str] = None
    is_resolved: bool
    created_at: datetime
    updated_at: datetime
    user: Optional[ItemPoster] = None

    model_config = ConfigDict(from_attributes=True)


class ActionResult(BaseModel):
    """Uniform outcome of a mutating action: a payload or a readable error."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = Field(default=200, exclude=True)

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status_code: int = 400) -> "ActionResult":
        return cls(success=False, error=error, status_code=status_code)
