from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dutyroster.database import Base
from dutyroster.models.time_range import Weekday


class Availability(Base):
    __tablename__ = "availabilities"
    __table_args__ = (
        UniqueConstraint("user_id", "weekday", "time_range_id", name="uq_availability_slot"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    weekday: Mapped[Weekday]
    time_range_id: Mapped[int] = mapped_column(ForeignKey("time_ranges.id"))
    status: Mapped[bool] = mapped_column(default=False)
