from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserRead(BaseModel):
    id: int
    email: EmailStr
    username: str | None = Field(default=None, max_length=100)
    mc: bool
    created_at: datetime

    model_config = {"from_attributes": True}
