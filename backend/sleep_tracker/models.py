from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, computed_field
from pydantic.alias_generators import to_camel

from .timeutils import ensure_utc, now_utc


def new_id() -> str:
    return uuid.uuid4().hex


NonEmptyName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class CamelModel(BaseModel):
    """Base for models that speak camelCase on the wire but snake_case in storage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: EmailStr
    password_hash: str = Field(default="", repr=False)
    is_active: bool = True
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class PublicUser(CamelModel):
    id: str
    name: str
    email: EmailStr


class UserProfile(CamelModel):
    id: str
    name: str
    email: EmailStr
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RegisterRequest(BaseModel):
    name: NonEmptyName
    email: EmailStr
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SleepEntry(CamelModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    start_time: datetime
    end_time: datetime
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @computed_field
    @property
    def duration(self) -> int:
        minutes = (ensure_utc(self.end_time) - ensure_utc(self.start_time)).total_seconds() / 60
        # half-up, so 90.5 minutes reads as 91
        return math.floor(minutes + 0.5)


class SleepEntryCreate(CamelModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class SleepEntryUpdate(CamelModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class LogRecord(CamelModel):
    id: str = Field(default_factory=new_id)
    method: str
    url: str
    ip: str
    status_code: int
    duration: float
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)
