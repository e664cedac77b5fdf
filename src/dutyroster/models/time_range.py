import enum
from datetime import time

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dutyroster.database import Base


class Weekday(enum.IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class TimeRange(Base):
    __tablename__ = "time_ranges"
    __table_args__ = (CheckConstraint("start_time < end_time", name="ck_time_range_order"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    start_time: Mapped[time]
    end_time: Mapped[time]

