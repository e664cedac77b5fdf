from datetime import time

from pydantic import BaseModel

from dutyroster.models.time_range import Weekday


class PlaceRead(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class TimeRangeRead(BaseModel):
    id: int
    start_time: time
    end_time: time

    model_config = {"from_attributes": True}


class TimeslotRead(BaseModel):
    id: int
    place_id: int
    weekday: Weekday
    time_range_id: int
    default_user_id: int | None
    mc_only: bool
    place: PlaceRead
    time_range: TimeRangeRead

    model_config = {"from_attributes": True}


class TimeslotAssignmentRead(TimeslotRead):
    available_user_ids: list[int] = []


class TimeslotAssignment(BaseModel):
    timeslot_id: int
    default_user_id: int | None = None


class TimeslotAssignmentUpdate(BaseModel):
    assignments: list[TimeslotAssignment]
