from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from app.adapters.rate_limit.base import RateLimitDecision
from app.core.dependencies import get_user_service
from app.core.rate_limit import enforce_rate_limit
from app.core.responses import success
from app.schemas.envelope import ApiResponse
from app.schemas.user import CreateUserRequest, UserRecord
from app.services.user_service import UserService, parse_user_id

router = APIRouter(tags=["Users"])


def valid_user_id(user_id: str) -> int:
    """Path dependency turning the raw ``{user_id}`` segment into a positive int."""
    return parse_user_id(user_id)


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserRecord],
    response_model_exclude_none=True,
)
async def get_user(
    request: Request,
    user_id: int = Depends(valid_user_id),
    _admission: RateLimitDecision | None = Depends(enforce_rate_limit),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserRecord]:
    """Retrieve a user by id.

    The id is validated before the rate limiter is consulted. Cached records
    are returned directly; misses are fetched from the store, with concurrent
    misses for the same id sharing one lookup.

    Raises:
        ValidationAppError: 400 if the id is not a positive integer.
        RateLimitedAppError: 429 if the client exceeded its budget.
        UserNotFoundError: 404 if the store has no such user.
    """
    user = await service.get_user(user_id)
    return success(request, user)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[UserRecord],
    response_model_exclude_none=True,
)
async def create_user(
    request: Request,
    payload: CreateUserRequest,
    _admission: RateLimitDecision | None = Depends(enforce_rate_limit),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserRecord]:
    """Create a user with the next free id and cache it."""
    user = await service.create_user(name=payload.name, email=payload.email)
    return success(request, user)


@router.get(
    "",
    response_model=ApiResponse[list[UserRecord]],
    response_model_exclude_none=True,
)
async def list_users(
    request: Request,
    _admission: RateLimitDecision | None = Depends(enforce_rate_limit),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[list[UserRecord]]:
    users = await service.list_users()
    return success(request, users)
