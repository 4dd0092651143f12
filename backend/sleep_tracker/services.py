from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

import bcrypt

from .errors import BadRequest, Conflict, NotFound, Unauthorized
from .models import (
    LoginRequest,
    RegisterRequest,
    SleepEntry,
    SleepEntryCreate,
    SleepEntryUpdate,
    User,
    UserProfile,
)
from .storage import DocumentStore, InvalidIdentifier
from .timeutils import ensure_utc, newest_first, now_utc

_logger = logging.getLogger(__name__)

USERS = "users"
SLEEP_ENTRIES = "sleep_entries"

# bcrypt only looks at the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


def _secret_bytes(secret: str) -> bytes:
    return secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(secret: str) -> str:
    return bcrypt.hashpw(_secret_bytes(secret), bcrypt.gensalt()).decode("utf-8")


def password_matches(expected_hash: str, candidate: str) -> bool:
    if not expected_hash:
        return False
    try:
        return bcrypt.checkpw(_secret_bytes(candidate), expected_hash.encode("utf-8"))
    except ValueError:
        _logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


@lru_cache(maxsize=1)
def _unknown_user_hash() -> str:
    """Stand-in hash that a login for an unknown email is checked against."""

    return hash_password("unknown-user-placeholder")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def register(self, payload: RegisterRequest) -> User:
        email = normalize_email(payload.email)
        if self.get_user_by_email(email) is not None:
            raise Conflict("User already exists with this email")

        user = User(name=payload.name, email=email, password_hash=hash_password(payload.password))
        self._store.insert(USERS, user.model_dump(mode="json"))
        _logger.info("Registered user %s", user.id)
        return user

    def login(self, payload: LoginRequest) -> User:
        if not payload.email or not payload.password:
            raise BadRequest("Please provide email and password")

        user = self.get_user_by_email(payload.email)
        # same answer for unknown email and wrong password
        if user is None:
            password_matches(_unknown_user_hash(), payload.password)
            raise Unauthorized("Invalid credentials")
        if not password_matches(user.password_hash, payload.password):
            raise Unauthorized("Invalid credentials")
        if not user.is_active:
            raise Unauthorized("Account is deactivated")
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        raw = self._store.find_one(USERS, {"email": normalize_email(email)})
        return User.model_validate(raw) if raw is not None else None

    def get_user(self, user_id: str) -> Optional[User]:
        try:
            raw = self._store.find_by_id(USERS, user_id)
        except InvalidIdentifier:
            return None
        if raw is None:
            return None
        return User.model_validate(raw)

    def set_active(self, user_id: str, active: bool) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        user.is_active = active
        user.updated_at = now_utc()
        self._store.replace(USERS, user.model_dump(mode="json"))
        return user

    @staticmethod
    def get_profile(user: User) -> UserProfile:
        return UserProfile(
            id=user.id,
            name=user.name,
            email=user.email,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


def _check_interval(start: datetime, end: datetime) -> None:
    if ensure_utc(end) <= ensure_utc(start):
        raise BadRequest("End time must be after start time")


class SleepService:
    """Sleep entries, always scoped to the owning user.

    Another user's entry is reported as missing rather than forbidden.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _load(self, user_id: str, entry_id: str) -> SleepEntry:
        raw = self._store.find_by_id(SLEEP_ENTRIES, entry_id, {"user_id": user_id})
        if raw is None:
            raise NotFound("Sleep entry not found")
        return SleepEntry.model_validate(raw)

    def create(self, user_id: str, payload: SleepEntryCreate) -> SleepEntry:
        if payload.start_time is None or payload.end_time is None:
            raise BadRequest("Start time and end time are required")
        start = ensure_utc(payload.start_time)
        end = ensure_utc(payload.end_time)
        _check_interval(start, end)

        entry = SleepEntry(user_id=user_id, start_time=start, end_time=end)
        self._store.insert(SLEEP_ENTRIES, entry.model_dump(mode="json"))
        return entry

    def list(self, user_id: str) -> List[SleepEntry]:
        entries = [SleepEntry.model_validate(raw) for raw in self._store.find(SLEEP_ENTRIES, {"user_id": user_id})]
        return newest_first(entries, lambda entry: entry.created_at)

    def get(self, user_id: str, entry_id: str) -> SleepEntry:
        return self._load(user_id, entry_id)

    def update(self, user_id: str, entry_id: str, payload: SleepEntryUpdate) -> SleepEntry:
        entry = self._load(user_id, entry_id)
        if payload.start_time is not None:
            entry.start_time = ensure_utc(payload.start_time)
        if payload.end_time is not None:
            entry.end_time = ensure_utc(payload.end_time)
        _check_interval(entry.start_time, entry.end_time)

        entry.updated_at = now_utc()
        self._store.replace(SLEEP_ENTRIES, entry.model_dump(mode="json"))
        return entry

    def delete(self, user_id: str, entry_id: str) -> None:
        if not self._store.delete(SLEEP_ENTRIES, entry_id, {"user_id": user_id}):
            raise NotFound("Sleep entry not found")
