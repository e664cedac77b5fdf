from dutyroster.schemas.availability import AvailabilityRead, AvailabilityUpdate
from dutyroster.schemas.duty import (
    DropRequest,
    DutyActionResponse,
    DutyRead,
    GenerateRequest,
    GenerateResponse,
    GrabRequest,
)
from dutyroster.schemas.roster import (
    PlaceRead,
    TimeRangeRead,
    TimeslotAssignment,
    TimeslotAssignmentRead,
    TimeslotAssignmentUpdate,
    TimeslotRead,
)
from dutyroster.schemas.system import StatusResponse
from dutyroster.schemas.user import UserRead

__all__ = [
    "AvailabilityRead",
    "AvailabilityUpdate",
    "DropRequest",
    "DutyActionResponse",
    "DutyRead",
    "GenerateRequest",
    "GenerateResponse",
    "GrabRequest",
    "PlaceRead",
    "StatusResponse",
    "TimeRangeRead",
    "TimeslotAssignment",
    "TimeslotAssignmentRead",
    "TimeslotAssignmentUpdate",
    "TimeslotRead",
    "UserRead",
]
