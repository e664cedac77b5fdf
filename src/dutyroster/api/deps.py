"""Shared FastAPI dependencies: acting user, clock and notifier."""

from datetime import datetime

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.config import get_settings
from dutyroster.database import get_db
from dutyroster.duties.notifier import LogNotifier, Notifier
from dutyroster.duties.timing import now_local
from dutyroster.models.user import User


async def get_current_user(
    x_user_id: int | None = Header(default=None),
    session: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the acting user from the X-User-Id header set by the auth proxy."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = await session.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_now() -> datetime:
    return now_local(get_settings().timezone)


def get_notifier() -> Notifier:
    return LogNotifier()
