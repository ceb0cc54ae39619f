"""API router for user profiles and account administration."""

from fastapi import APIRouter, Depends, Query

from ....core.dependencies import get_user_service
from ....domain.models import ADMIN_ROLE, User
from ....services.user_service import UserService
from ..dependencies import require_role, require_user
from ..schemas.auth import MessageResponse
from ..schemas.user_schemas import (
    AdminUserResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    UserListResponse,
    UserProfileEnvelope,
)

router = APIRouter(prefix="/api/v1/user", tags=["users"])

require_admin = require_role(ADMIN_ROLE)


@router.get("/profile", response_model=UserProfileEnvelope)
def get_profile(user: User = Depends(require_user)) -> UserProfileEnvelope:
    """Get current user profile."""
    return UserProfileEnvelope(user_profile=ProfileResponse(**user.public_profile()))


@router.patch("/profile", response_model=UserProfileEnvelope)
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(require_user),
    user_service: UserService = Depends(get_user_service),
) -> UserProfileEnvelope:
    updated = user_service.update_profile(user, payload.changes())
    return UserProfileEnvelope(
        message=f"{updated.first_name}, your profile was successfully updated!",
        user_profile=ProfileResponse(**updated.public_profile()),
    )


@router.delete("/profile", response_model=MessageResponse)
def delete_my_account(
    user: User = Depends(require_user),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    user_service.delete_account(user.id)
    return MessageResponse(message="Your user account has been deleted!")


@router.get("/all", response_model=UserListResponse)
def list_users(
    page_number: int = Query(default=1, alias="pageNumber", ge=1),
    _: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> UserListResponse:
    users, count, pages = user_service.list_users(page_number)
    return UserListResponse(
        count=count,
        number_of_pages=pages,
        users=[_admin_view(user) for user in users],
    )


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user_account(
    user_id: int,
    _: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    user = user_service.delete_account(user_id)
    return MessageResponse(message=f"User {user.first_name} deleted successfully!")


@router.patch("/{user_id}/deactivate", response_model=AdminUserResponse)
def deactivate_user(
    user_id: int,
    _: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> AdminUserResponse:
    return _admin_view(user_service.deactivate_user(user_id))


def _admin_view(user: User) -> AdminUserResponse:
    return AdminUserResponse(id=user.id, roles=user.roles, **user.public_profile())
