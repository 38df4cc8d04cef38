from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

from leave_engine.models.leave_policy import AccrualRate, ALL_DEPARTMENTS
from leave_engine.models.leave_type import LeaveCategory


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: LeaveCategory = LeaveCategory.PAID


class LeaveTypeResponse(BaseModel):
    id: int
    name: str
    category: str

    model_config = ConfigDict(from_attributes=True)


class LeavePolicyBase(BaseModel):
    """Field-level checks only; cross-field rules live in the policy store."""
    description: Optional[str] = None
    days_allowed: float = Field(..., ge=0)
    accrual_rate: AccrualRate = AccrualRate.ANNUALLY
    carry_forward: bool = False
    max_carry_forward: Optional[float] = Field(None, ge=0)
    pro_rated: bool = True
    fractional_accrual: bool = False
    applicable_after_days: int = Field(0, ge=0)
    requires_approval: bool = True
    requires_documents: bool = False
    allow_retroactive: bool = False
    is_active: bool = True
    department: str = ALL_DEPARTMENTS


class LeavePolicyCreate(LeavePolicyBase):
    leave_type_id: int


class LeavePolicyUpdate(BaseModel):
    description: Optional[str] = None
    days_allowed: Optional[float] = Field(None, ge=0)
    accrual_rate: Optional[AccrualRate] = None
    carry_forward: Optional[bool] = None
    max_carry_forward: Optional[float] = Field(None, ge=0)
    pro_rated: Optional[bool] = None
    fractional_accrual: Optional[bool] = None
    applicable_after_days: Optional[int] = Field(None, ge=0)
    requires_approval: Optional[bool] = None
    requires_documents: Optional[bool] = None
    allow_retroactive: Optional[bool] = None
    is_active: Optional[bool] = None
    department: Optional[str] = None


class LeavePolicyResponse(LeavePolicyBase):
    id: int
    leave_type_id: int
    accrual_rate: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
