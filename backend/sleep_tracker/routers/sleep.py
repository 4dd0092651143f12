from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..deps import current_user, get_sleep_service
from ..models import SleepEntry, SleepEntryCreate, SleepEntryUpdate, User
from ..responses import send_success
from ..services import SleepService

router = APIRouter(prefix="/sleep", tags=["sleep"])


def _public(entry: SleepEntry) -> dict:
    return entry.model_dump(mode="json", by_alias=True)


@router.get("")
def list_entries(
    user: User = Depends(current_user),
    sleep: SleepService = Depends(get_sleep_service),
) -> JSONResponse:
    entries = sleep.list(user.id)
    return send_success("Sleep entries retrieved successfully", [_public(entry) for entry in entries])


@router.post("")
def create_entry(
    payload: Optional[SleepEntryCreate] = None,
    user: User = Depends(current_user),
    sleep: SleepService = Depends(get_sleep_service),
) -> JSONResponse:
    entry = sleep.create(user.id, payload or SleepEntryCreate())
    return send_success("Sleep entry created successfully", _public(entry), status.HTTP_201_CREATED)


@router.get("/{entry_id}")
def get_entry(
    entry_id: str,
    user: User = Depends(current_user),
    sleep: SleepService = Depends(get_sleep_service),
) -> JSONResponse:
    entry = sleep.get(user.id, entry_id)
    return send_success("Sleep entry retrieved successfully", _public(entry))


@router.put("/{entry_id}")
def update_entry(
    entry_id: str,
    payload: Optional[SleepEntryUpdate] = None,
    user: User = Depends(current_user),
    sleep: SleepService = Depends(get_sleep_service),
) -> JSONResponse:
    entry = sleep.update(user.id, entry_id, payload or SleepEntryUpdate())
    return send_success("Sleep entry updated successfully", _public(entry))


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: str,
    user: User = Depends(current_user),
    sleep: SleepService = Depends(get_sleep_service),
) -> JSONResponse:
    sleep.delete(user.id, entry_id)
    return send_success("Sleep entry deleted successfully")
