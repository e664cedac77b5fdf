from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from dutyroster.database import Base


class Place(Base):
    __tablename__ = "places"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
