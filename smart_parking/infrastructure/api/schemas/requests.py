from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


class OwnerBody(BaseModel):
    owner_id: str = Field(..., min_length=1)


class UserBody(BaseModel):
    user_id: str = Field(..., min_length=1)

    @field_validator('user_id')
    def strip_user_id(cls, v):  # pylint: disable=no-self-argument
        return v.strip()


class FacilityUpdateBody(OwnerBody):
    hourly_rate: Optional[float] = None
    total_spaces: Optional[int] = None
    opening_hours: Optional[Dict[int, Dict[str, str]]] = None


class RateUpdateBody(OwnerBody):
    hourly_rate: float


class ExitBody(BaseModel):
    exit_time: Optional[datetime] = None
