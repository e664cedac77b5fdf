"""Duty generation: materialize timeslot templates into dated duties.

For every date in the requested range, every template whose weekday matches
gets exactly one Duty for that date. Existing duties are never touched, so
re-running over an overlapping range is a no-op for dates already covered.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dutyroster.duties.errors import ValidationError
from dutyroster.duties.timing import weekday_of
from dutyroster.models.duty import Duty
from dutyroster.models.time_range import Weekday
from dutyroster.models.timeslot import Timeslot

logger = logging.getLogger(__name__)

# A concurrent run may insert the same (timeslot, date) between our read and
# our commit; the unique constraint rejects it and we retry against fresh state.
MAX_ATTEMPTS = 3


@dataclass
class GenerationResult:
    """Result of a generation run."""

    start_date: date
    end_date: date
    created: int = 0
    skipped: int = 0


async def generate(session: AsyncSession, start_date: date, end_date: date) -> GenerationResult:
    """Ensure one Duty per (template, date) for every date in [start_date, end_date].

    New duties copy the template's default user as owner, with free=False and
    no pending transfer. A template without a default user yields an
    ownerless duty.

    Raises:
        ValidationError: end_date is before start_date. Nothing is written.
    """
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    for attempt in range(1, MAX_ATTEMPTS + 1):
        result = GenerationResult(start_date=start_date, end_date=end_date)
        try:
            await _generate_once(session, result)
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if attempt == MAX_ATTEMPTS:
                raise
            logger.warning(
                "Duty generation %s..%s collided with a concurrent run, retrying",
                start_date,
                end_date,
            )
            continue
        break

    logger.info(
        "Generated duties %s..%s: %d created, %d already present",
        start_date,
        end_date,
        result.created,
        result.skipped,
    )
    return result


async def _generate_once(session: AsyncSession, result: GenerationResult) -> None:
    templates = await session.execute(select(Timeslot))
    by_weekday: dict[Weekday, list[Timeslot]] = defaultdict(list)
    for timeslot in templates.scalars().all():
        by_weekday[timeslot.weekday].append(timeslot)

    if not by_weekday:
        return

    rows = await session.execute(
        select(Duty.timeslot_id, Duty.date).where(
            Duty.date >= result.start_date,
            Duty.date <= result.end_date,
        )
    )
    existing = {(timeslot_id, day) for timeslot_id, day in rows.all()}

    day = result.start_date
    while day <= result.end_date:
        for timeslot in by_weekday.get(weekday_of(day), []):
            if (timeslot.id, day) in existing:
                result.skipped += 1
                continue
            session.add(
                Duty(
                    timeslot_id=timeslot.id,
                    date=day,
                    user_id=timeslot.default_user_id,
                    free=False,
                    request_user_id=None,
                )
            )
            result.created += 1
        day += timedelta(days=1)

    await session.flush()
