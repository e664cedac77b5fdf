"""Availability API routes: a user's weekly willingness per time range."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.api.deps import get_current_user
from dutyroster.database import get_db
from dutyroster.models.availability import Availability
from dutyroster.models.time_range import TimeRange, Weekday
from dutyroster.models.user import User
from dutyroster.schemas.availability import AvailabilityRead, AvailabilityUpdate

router = APIRouter(prefix="/api/availability", tags=["availability"])


async def _load_grid(session: AsyncSession, user_id: int) -> list[Availability]:
    """Return one row per (weekday, time range), creating missing rows as unavailable."""
    result = await session.execute(select(Availability).where(Availability.user_id == user_id))
    existing = {(a.weekday, a.time_range_id): a for a in result.scalars().all()}

    ranges = await session.execute(select(TimeRange).order_by(TimeRange.start_time))
    time_ranges = list(ranges.scalars().all())

    grid = []
    created = False
    for weekday in Weekday:
        for time_range in time_ranges:
            row = existing.get((weekday, time_range.id))
            if row is None:
                row = Availability(
                    user_id=user_id,
                    weekday=weekday,
                    time_range_id=time_range.id,
                    status=False,
                )
                session.add(row)
                created = True
            grid.append(row)

    if created:
        await session.commit()
    return grid


@router.get("", response_model=list[AvailabilityRead])
async def get_availability(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[Availability]:
    """Get the current user's availability grid, Sunday first, by time range start."""
    return await _load_grid(session, user.id)


@router.put("", response_model=list[AvailabilityRead])
async def set_availability(
    body: AvailabilityUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[Availability]:
    """Mark the listed availability rows available and every other row unavailable."""
    selected = set(body.availability_ids)
    grid = await _load_grid(session, user.id)
    for row in grid:
        row.status = row.id in selected
    await session.commit()
    return grid
