"""Template assignment routes: admins pick default users per place timeslot."""

import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.api.deps import get_current_user
from dutyroster.database import get_db
from dutyroster.duties.permissions import Action, can
from dutyroster.models.availability import Availability
from dutyroster.models.place import Place
from dutyroster.models.time_range import Weekday
from dutyroster.models.timeslot import Timeslot
from dutyroster.models.user import User
from dutyroster.schemas.roster import TimeslotAssignmentRead, TimeslotAssignmentUpdate

router = APIRouter(prefix="/api/places", tags=["places"])
logger = logging.getLogger(__name__)


def _require_admin(user: User) -> None:
    if not can(user, Action.ASSIGN_TEMPLATES):
        raise HTTPException(status_code=403, detail="You are not authorized to access this page.")


async def _get_place(session: AsyncSession, place_id: int) -> Place:
    place = await session.get(Place, place_id)
    if place is None:
        raise HTTPException(status_code=404, detail=f"Place {place_id} not found")
    return place


async def _assignments(session: AsyncSession, place_id: int) -> list[TimeslotAssignmentRead]:
    available: dict[tuple[Weekday, int], list[int]] = defaultdict(list)
    rows = await session.execute(
        select(Availability).where(Availability.status.is_(True)).order_by(Availability.user_id)
    )
    for a in rows.scalars().all():
        available[(a.weekday, a.time_range_id)].append(a.user_id)

    result = await session.execute(
        select(Timeslot)
        .where(Timeslot.place_id == place_id)
        .execution_options(populate_existing=True)
    )
    # weekday is stored by name, so order in Python
    timeslots = sorted(
        result.scalars().all(), key=lambda t: (t.weekday, t.time_range.start_time)
    )
    out = []
    for timeslot in timeslots:
        read = TimeslotAssignmentRead.model_validate(timeslot)
        read.available_user_ids = available[(timeslot.weekday, timeslot.time_range_id)]
        out.append(read)
    return out


@router.get("/{place_id}/timeslots", response_model=list[TimeslotAssignmentRead])
async def get_place_timeslots(
    place_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[TimeslotAssignmentRead]:
    """Get a place's timeslot templates with the users available for each."""
    _require_admin(user)
    await _get_place(session, place_id)
    return await _assignments(session, place_id)


@router.put("/{place_id}/timeslots", response_model=list[TimeslotAssignmentRead])
async def update_place_timeslots(
    place_id: int,
    body: TimeslotAssignmentUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[TimeslotAssignmentRead]:
    """Set the default user of each listed timeslot. Already-matching rows are untouched.

    Only future generation runs pick up the new defaults; existing duties keep
    their owners.
    """
    _require_admin(user)
    await _get_place(session, place_id)

    result = await session.execute(select(Timeslot).where(Timeslot.place_id == place_id))
    timeslots = {t.id: t for t in result.scalars().all()}

    changed = 0
    for assignment in body.assignments:
        timeslot = timeslots.get(assignment.timeslot_id)
        if timeslot is None:
            raise HTTPException(
                status_code=404,
                detail=f"Timeslot {assignment.timeslot_id} not found at place {place_id}",
            )
        if timeslot.default_user_id == assignment.default_user_id:
            continue
        if assignment.default_user_id is not None:
            if await session.get(User, assignment.default_user_id) is None:
                raise HTTPException(
                    status_code=404, detail=f"User {assignment.default_user_id} not found"
                )
        timeslot.default_user_id = assignment.default_user_id
        changed += 1

    await session.commit()
    logger.info("Updated %d timeslot defaults at place %d", changed, place_id)
    return await _assignments(session, place_id)
