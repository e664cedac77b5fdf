"""Duty lifecycle: grab, drop and transfer of generated duties.

A duty is in one of three states:

- owned: ``user_id`` set, ``free`` False, no ``request_user_id``
- free: ``free`` True, owner cleared, open to any eligible user
- pending transfer: owner kept, ``request_user_id`` names the proposed owner

Grab and drop act on batches and are all-or-nothing. Every duty in the batch
is validated first; each write is then a conditional UPDATE that re-checks the
state it was validated against, so a concurrent change makes the UPDATE match
no rows and the whole batch is rolled back.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import ColumnElement, Select, and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.duties.errors import (
    AuthorizationError,
    NotFoundError,
    RosterError,
    TimingError,
    ValidationError,
)
from dutyroster.duties.permissions import Action, can, grab_condition
from dutyroster.duties.timing import drop_lead_message, has_started, within_drop_lead
from dutyroster.models.duty import Duty
from dutyroster.models.time_range import TimeRange
from dutyroster.models.timeslot import Timeslot
from dutyroster.models.user import User

logger = logging.getLogger(__name__)

GRAB_ERROR = "Invalid duties to grab"
DROP_ERROR = "Invalid duties to drop"

# user_id sentinel for "drop to anyone"
ANYONE = 0


@dataclass
class DropOutcome:
    """Duties changed by a drop and the users to tell about it."""

    duties: list[Duty]
    recipients: list[int] = field(default_factory=list)


def _ordered(stmt: Select[tuple[Duty]]) -> Select[tuple[Duty]]:
    return (
        stmt.join(Duty.timeslot)
        .join(Timeslot.time_range)
        .order_by(Duty.date, TimeRange.start_time, Duty.id)
    )


async def _load_batch(
    session: AsyncSession, duty_ids: Iterable[int] | None, error_message: str
) -> list[Duty]:
    ids = set(duty_ids or ())
    if not ids:
        raise ValidationError(error_message)

    stmt = _ordered(select(Duty).where(Duty.id.in_(ids))).execution_options(
        populate_existing=True
    )
    result = await session.execute(stmt)
    duties = list(result.scalars().all())

    missing = ids - {d.id for d in duties}
    if missing:
        logger.warning("Unknown duty ids %s", sorted(missing))
        raise NotFoundError(error_message)
    return duties


async def _reload(session: AsyncSession, duties: list[Duty]) -> list[Duty]:
    stmt = _ordered(select(Duty).where(Duty.id.in_([d.id for d in duties]))).execution_options(
        populate_existing=True
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _apply(
    session: AsyncSession,
    duties: list[Duty],
    guard: ColumnElement[bool],
    values: dict[str, object],
    error: RosterError,
) -> None:
    """Write `values` to every duty whose row still satisfies `guard`.

    Commits only if every row was updated; otherwise rolls back and raises.
    """
    try:
        for duty in duties:
            result = await session.execute(
                update(Duty)
                .where(Duty.id == duty.id, guard)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning("Duty %d changed concurrently, aborting batch", duty.id)
                raise error
    except Exception:
        await session.rollback()
        raise
    await session.commit()


async def grab(
    session: AsyncSession,
    duty_ids: Iterable[int] | None,
    actor: User,
    now: datetime,
) -> list[Duty]:
    """Take ownership of every duty in `duty_ids`.

    Each duty must be free, ownerless, offered to the actor, or the actor's
    own duty with a pending offer (a reclaim). Duties of an mc_only timeslot
    need an mc actor, and duties that have already started cannot be grabbed.

    Raises:
        ValidationError: no duty ids given.
        NotFoundError: an id does not exist.
        AuthorizationError: any duty is not grabable by the actor.
    """
    duties = await _load_batch(session, duty_ids, GRAB_ERROR)

    for duty in duties:
        if not can(actor, Action.GRAB, duty) or has_started(duty, now):
            logger.warning("User %d may not grab duty %d", actor.id, duty.id)
            await session.rollback()
            raise AuthorizationError(GRAB_ERROR)

    await _apply(
        session,
        duties,
        grab_condition(actor),
        {"user_id": actor.id, "free": False, "request_user_id": None},
        AuthorizationError(GRAB_ERROR),
    )
    logger.info("User %d grabbed duties %s", actor.id, [d.id for d in duties])
    return await _reload(session, duties)


async def drop(
    session: AsyncSession,
    duty_ids: Iterable[int] | None,
    actor: User,
    target_user_id: int | None,
    now: datetime,
    lead: timedelta,
) -> DropOutcome:
    """Give up every duty in `duty_ids`.

    With no target (``None`` or 0) the duties become free for anyone; with a
    target they stay with the actor until the target grabs them.

    Raises:
        ValidationError: no duty ids given, or the actor targets themself.
        NotFoundError: a duty or the target user does not exist.
        AuthorizationError: the actor does not own every duty.
        TimingError: a duty starts within `lead` of `now`.
    """
    duties = await _load_batch(session, duty_ids, DROP_ERROR)

    if not all(can(actor, Action.DROP, duty) for duty in duties):
        logger.warning("User %d does not own every duty in %s", actor.id, [d.id for d in duties])
        await session.rollback()
        raise AuthorizationError(DROP_ERROR)

    if any(within_drop_lead(duty, now, lead) for duty in duties):
        await session.rollback()
        raise TimingError(drop_lead_message(lead))

    target: User | None = None
    if target_user_id and target_user_id != ANYONE:
        if target_user_id == actor.id:
            await session.rollback()
            raise ValidationError(DROP_ERROR)
        target = await session.get(User, target_user_id)
        if target is None:
            await session.rollback()
            raise NotFoundError(f"User {target_user_id} not found")

    if target is None:
        values: dict[str, object] = {"free": True, "user_id": None, "request_user_id": None}
    else:
        values = {"request_user_id": target.id}

    await _apply(
        session,
        duties,
        and_(Duty.user_id == actor.id, Duty.free.is_(False)),
        values,
        AuthorizationError(DROP_ERROR),
    )

    if target is None:
        rows = await session.execute(select(User.id).order_by(User.id))
        recipients = list(rows.scalars().all())
    else:
        recipients = [target.id]

    logger.info(
        "User %d dropped duties %s to %s",
        actor.id,
        [d.id for d in duties],
        "anyone" if target is None else f"user {target.id}",
    )
    return DropOutcome(
        duties=await _reload(session, duties),
        recipients=recipients,
    )


async def grabable_duties(session: AsyncSession, actor: User, now: datetime) -> list[Duty]:
    """Duties the actor could grab right now.

    Free and ownerless duties, duties offered to the actor, and the actor's
    own duties with a pending offer. Duties that have started are excluded,
    as are mc_only duties for non-mc actors.
    """
    stmt = _ordered(
        select(Duty).where(
            Duty.date >= now.date(),
            grab_condition(actor),
        )
    )
    result = await session.execute(stmt)
    return [
        duty
        for duty in result.scalars().all()
        if not has_started(duty, now) and can(actor, Action.GRAB, duty)
    ]


async def my_duties(
    session: AsyncSession, actor: User, start_date: date, end_date: date
) -> list[Duty]:
    """Duties owned by the actor between start_date and end_date inclusive."""
    stmt = _ordered(
        select(Duty).where(
            Duty.user_id == actor.id,
            Duty.free.is_(False),
            Duty.date >= start_date,
            Duty.date <= end_date,
        )
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_duties(session: AsyncSession, start_date: date, end_date: date) -> list[Duty]:
    """All duties between start_date and end_date inclusive, in roster order."""
    stmt = _ordered(select(Duty).where(Duty.date >= start_date, Duty.date <= end_date))
    result = await session.execute(stmt)
    return list(result.scalars().all())
