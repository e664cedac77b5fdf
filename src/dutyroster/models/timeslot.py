from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dutyroster.database import Base
from dutyroster.models.place import Place
from dutyroster.models.time_range import TimeRange, Weekday


class Timeslot(Base):
    """Weekly default assignment for one place, weekday and time range."""

    __tablename__ = "timeslots"
    __table_args__ = (
        UniqueConstraint("place_id", "weekday", "time_range_id", name="uq_timeslot_slot"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    place_id: Mapped[int] = mapped_column(ForeignKey("places.id"))
    weekday: Mapped[Weekday]
    time_range_id: Mapped[int] = mapped_column(ForeignKey("time_ranges.id"))
    default_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), default=None)
    mc_only: Mapped[bool] = mapped_column(default=False)

    place: Mapped[Place] = relationship(lazy="joined")
    time_range: Mapped[TimeRange] = relationship(lazy="joined")
