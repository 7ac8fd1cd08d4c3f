from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.database import get_async_session
from content_hub.schemas.user import LoginRequest, LoginResponse, UserBrief
from content_hub.core.security import create_access_token
from content_hub.core.deps import get_current_identity
from content_hub.core.identity import Identity
from content_hub.services import users as user_service

router = APIRouter(
    tags=["Auth"]
)

@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_async_session)):
    user = await user_service.authenticate(session, payload.username, payload.password)
    token = create_access_token(user.id, user.role)
    return LoginResponse(token=token, user=UserBrief.model_validate(user))


@router.get("/me", response_model=UserBrief)
async def read_me(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_async_session),
):
    user = await user_service.get_user_or_404(session, identity.user_id)
    return user
