"""Notification port for duty ownership changes.

The lifecycle manager never sends anything itself; the API hands the
duties and recipients of a successful drop to a `Notifier` as a background
task. `DropNotice` is the message contract every implementation renders.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from dutyroster.config import Settings, get_settings
from dutyroster.models.duty import Duty

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "DUTY DUTY DUTY"


@dataclass
class DropNotice:
    subject: str
    body: str
    recipients: list[int]


def _describe(duty: Duty) -> str:
    time_range = duty.timeslot.time_range
    return (
        f"{time_range.start_time.strftime('%H%M')}-{time_range.end_time.strftime('%H%M')} "
        f"on {duty.date.strftime('%a, %d %b %Y')} at {duty.timeslot.place.name}"
    )


def build_drop_notice(duties: list[Duty], recipients: list[int]) -> DropNotice:
    """Build the notice for dropped duties.

    The subject spans the first duty's start to the last duty's end, on the
    first duty's date and place. Duties are expected in start-time order.
    """
    if not duties:
        raise ValueError("Cannot build a drop notice without duties")

    first, last = duties[0], duties[-1]
    first_range = first.timeslot.time_range
    last_range = last.timeslot.time_range
    subject = (
        f"{SUBJECT_PREFIX} "
        f"{first_range.start_time.strftime('%H%M')}-{last_range.end_time.strftime('%H%M')} "
        f"on {first.date.strftime('%a, %d %b %Y')} at {first.timeslot.place.name}"
    )
    lines = ["The following duties are up for grabs:", ""]
    lines.extend(f"- {_describe(duty)}" for duty in duties)
    lines.extend(["", "Log in to grab them before someone else does."])
    return DropNotice(subject=subject, body="\n".join(lines), recipients=list(recipients))


class Notifier(ABC):
    """Receives ownership changes. Fire-and-forget: return values are ignored."""

    @abstractmethod
    async def notify(self, duties: list[Duty], recipients: list[int]) -> None: ...


class LogNotifier(Notifier):
    """Writes drop notices to the log."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def notify(self, duties: list[Duty], recipients: list[int]) -> None:
        if not duties or not recipients:
            return
        notice = build_drop_notice(duties, recipients)
        if not self._settings.email_enabled:
            logger.info(
                "Email disabled; drop notice '%s' for users %s not sent",
                notice.subject,
                notice.recipients,
            )
            return
        logger.info(
            "Drop notice '%s' from %s to users %s",
            notice.subject,
            self._settings.email_from,
            notice.recipients,
        )
