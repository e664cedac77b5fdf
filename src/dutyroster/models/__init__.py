from dutyroster.models.availability import Availability
from dutyroster.models.duty import Duty
from dutyroster.models.place import Place
from dutyroster.models.time_range import TimeRange, Weekday
from dutyroster.models.timeslot import Timeslot
from dutyroster.models.user import Role, User

__all__ = [
    "Availability",
    "Duty",
    "Place",
    "Role",
    "TimeRange",
    "Timeslot",
    "User",
    "Weekday",
]
