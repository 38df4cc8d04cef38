from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import Optional


class EmployeeUpsert(BaseModel):
    """Employee record pushed from the employee directory."""
    id: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    department: Optional[str] = None
    hire_date: date


class EmployeeResponse(EmployeeUpsert):
    model_config = ConfigDict(from_attributes=True)


class HolidayCreate(BaseModel):
    date: date
    name: str = Field(..., min_length=1)


class HolidayResponse(HolidayCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)
