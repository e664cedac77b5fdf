from pydantic import BaseModel

from dutyroster.models.time_range import Weekday


class AvailabilityRead(BaseModel):
    id: int
    user_id: int
    weekday: Weekday
    time_range_id: int
    status: bool

    model_config = {"from_attributes": True}


class AvailabilityUpdate(BaseModel):
    availability_ids: list[int] = []
