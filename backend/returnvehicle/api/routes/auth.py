"""
Identity endpoints: who am I, and the one-time user/driver role choice.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.core.security import get_current_user
from returnvehicle.db.session import get_db
from returnvehicle.models.user import User
from returnvehicle.schemas.user import SetRoleRequest, UserEnvelope, UserResponse
from returnvehicle.services.user_service import set_role

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/whoami", response_model=UserEnvelope)
async def whoami(user: User = Depends(get_current_user)):
    """Current user, created on first sight with the default role."""
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/set-role", response_model=UserEnvelope)
async def set_role_endpoint(
    payload: SetRoleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await set_role(db, user, payload.role, payload.display_name, payload.photo_url)
    return UserEnvelope(user=UserResponse.model_validate(user))
