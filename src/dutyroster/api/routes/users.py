"""User lookup routes used when choosing whom to offer a duty to."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.api.deps import get_current_user
from dutyroster.database import get_db
from dutyroster.models.user import User
from dutyroster.schemas.user import UserRead

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.get("", response_model=list[UserRead])
async def list_other_users(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[User]:
    """List every user except the current one, by email."""
    result = await session.execute(select(User).where(User.id != user.id).order_by(User.email))
    return list(result.scalars().all())
