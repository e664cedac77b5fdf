"""Date and wall-clock helpers shared by generation and the duty lifecycle."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from dutyroster.duties.errors import ValidationError
from dutyroster.models.duty import Duty
from dutyroster.models.time_range import Weekday


def weekday_of(d: date) -> Weekday:
    # date.weekday(): 0=Mon; Weekday: 0=Sun
    return Weekday((d.weekday() + 1) % 7)


def week_start(ref: date) -> date:
    """Return the Monday of the week containing `ref`."""
    return ref - timedelta(days=ref.weekday())


def generation_window(start: date, num_weeks: int) -> tuple[date, date]:
    """Return the inclusive `(start, end)` dates covering `num_weeks` weeks from `start`."""
    if num_weeks < 1:
        raise ValidationError("num_weeks must be a positive integer")
    try:
        end = start + timedelta(days=num_weeks * 7 - 1)
    except OverflowError:
        raise ValidationError("Date range is out of bounds") from None
    return start, end


def now_local(tz_name: str) -> datetime:
    """Current wall-clock time in `tz_name`, as a naive datetime."""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def duty_start(duty: Duty) -> datetime:
    return datetime.combine(duty.date, duty.timeslot.time_range.start_time)


def has_started(duty: Duty, now: datetime) -> bool:
    return duty_start(duty) <= now


def within_drop_lead(duty: Duty, now: datetime, lead: timedelta) -> bool:
    """True when the duty starts less than `lead` from `now` (or already has)."""
    return duty_start(duty) - now < lead


def drop_lead_message(lead: timedelta) -> str:
    hours = int(lead.total_seconds() // 3600)
    unit = "hour" if hours == 1 else "hours"
    return (
        "Error in dropping duty! "
        f"You can only drop your duty at most {hours} {unit} before it starts"
    )
