from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CounterBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)


class CounterCreate(CounterBase):
    start_value: int = Field(default=0, ge=0)


class CounterRead(CounterBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    current_value: int
    created_at: datetime
    updated_at: datetime


class CounterAllocation(BaseModel):
    name: str
    value: int
