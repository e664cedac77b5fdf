from datetime import date, datetime

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dutyroster.database import Base
from dutyroster.models.timeslot import Timeslot


class Duty(Base):
    """A dated duty materialized from a timeslot template.

    State is carried by three columns:
    owned (user_id set), free (free=True, user_id cleared) and pending
    transfer (request_user_id set, user_id still the current owner).
    """

    __tablename__ = "duties"
    __table_args__ = (UniqueConstraint("timeslot_id", "date", name="uq_duty_timeslot_date"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    timeslot_id: Mapped[int] = mapped_column(ForeignKey("timeslots.id"), index=True)
    date: Mapped[date]
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), default=None, index=True)
    free: Mapped[bool] = mapped_column(default=False)
    request_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    timeslot: Mapped[Timeslot] = relationship(lazy="joined")
