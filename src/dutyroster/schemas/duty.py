from datetime import date

from pydantic import BaseModel, Field

from dutyroster.schemas.roster import TimeslotRead

# upper bound on weeks covered by one generation or listing request
MAX_WEEKS = 52


class DutyRead(BaseModel):
    id: int
    timeslot_id: int
    date: date
    user_id: int | None
    free: bool
    request_user_id: int | None
    timeslot: TimeslotRead

    model_config = {"from_attributes": True}


class GenerateRequest(BaseModel):
    start_date: date | None = None  # defaults to the current week's Monday
    num_weeks: int | None = Field(default=None, ge=1, le=MAX_WEEKS)


class GenerateResponse(BaseModel):
    message: str
    start_date: date
    end_date: date
    created: int
    skipped: int


class GrabRequest(BaseModel):
    duty_ids: list[int] | None = None


class DropRequest(BaseModel):
    duty_ids: list[int] | None = None
    user_id: int = Field(default=0, ge=0)  # 0 = anyone


class DutyActionResponse(BaseModel):
    message: str
    start_date: date | None = None  # week of the first affected duty
    duties: list[DutyRead]
