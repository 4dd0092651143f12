from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..deps import current_user, get_tokens, get_user_service
from ..models import LoginRequest, RegisterRequest, User
from ..responses import send_success
from ..services import UserService
from ..tokens import TokenService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register")
def register(
    payload: RegisterRequest,
    users: UserService = Depends(get_user_service),
    tokens: TokenService = Depends(get_tokens),
) -> JSONResponse:
    user = users.register(payload)
    return tokens.attach_to_response(user, status.HTTP_201_CREATED, "User registered successfully")


@router.post("/login")
def login(
    payload: Optional[LoginRequest] = None,
    users: UserService = Depends(get_user_service),
    tokens: TokenService = Depends(get_tokens),
) -> JSONResponse:
    user = users.login(payload or LoginRequest())
    return tokens.attach_to_response(user, status.HTTP_200_OK, "Login successful")


@router.get("/me")
def me(user: User = Depends(current_user)) -> JSONResponse:
    profile = UserService.get_profile(user)
    return send_success("User profile retrieved successfully", profile.model_dump(mode="json", by_alias=True))


@router.post("/logout")
def logout(
    user: User = Depends(current_user),
    tokens: TokenService = Depends(get_tokens),
) -> JSONResponse:
    response = send_success("User logged out successfully")
    tokens.clear_cookie(response)
    return response
