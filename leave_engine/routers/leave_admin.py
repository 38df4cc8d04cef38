"""
Leave administration: leave types, policies, holidays and the employee
records mirrored from the directory.
"""
from typing import List

from fastapi import APIRouter, Depends

from leave_engine.core.exceptions import NotFoundError
from leave_engine.dependencies import get_policy_store, get_holiday_service, get_directory
from leave_engine.schemas.directory import EmployeeUpsert, EmployeeResponse, HolidayCreate, HolidayResponse
from leave_engine.schemas.policy import (
    LeaveTypeCreate, LeaveTypeResponse, LeavePolicyCreate, LeavePolicyUpdate, LeavePolicyResponse,
)
from leave_engine.services.employee_directory import EmployeeDirectory
from leave_engine.services.holiday_service import HolidayService
from leave_engine.services.policy_store import LeavePolicyStore

router = APIRouter(prefix="/leaves", tags=["leave-admin"])


# --- Leave types ---

@router.get("/types", response_model=List[LeaveTypeResponse])
def list_leave_types(store: LeavePolicyStore = Depends(get_policy_store)):
    return store.list_leave_types()


@router.post("/types", response_model=LeaveTypeResponse, status_code=201)
def create_leave_type(payload: LeaveTypeCreate, store: LeavePolicyStore = Depends(get_policy_store)):
    return store.create_leave_type(payload.name, payload.category)


# --- Policies ---

@router.get("/policies", response_model=List[LeavePolicyResponse])
def list_policies(active_only: bool = False, store: LeavePolicyStore = Depends(get_policy_store)):
    return store.list_policies(active_only=active_only)


@router.post("/policies", response_model=LeavePolicyResponse, status_code=201)
def create_policy(payload: LeavePolicyCreate, store: LeavePolicyStore = Depends(get_policy_store)):
    return store.create_policy(payload)


@router.get("/policies/{leave_type_id}", response_model=LeavePolicyResponse)
def get_policy(leave_type_id: int, store: LeavePolicyStore = Depends(get_policy_store)):
    return store.require_policy(leave_type_id)


@router.put("/policies/{leave_type_id}", response_model=LeavePolicyResponse)
def update_policy(leave_type_id: int, payload: LeavePolicyUpdate,
                  store: LeavePolicyStore = Depends(get_policy_store)):
    return store.update_policy(leave_type_id, payload)


@router.delete("/policies/{leave_type_id}", response_model=LeavePolicyResponse)
def deactivate_policy(leave_type_id: int, store: LeavePolicyStore = Depends(get_policy_store)):
    return store.deactivate_policy(leave_type_id)


# --- Holidays ---

@router.get("/holidays", response_model=List[HolidayResponse])
def list_holidays(year: int, holidays: HolidayService = Depends(get_holiday_service)):
    return holidays.list_for_year(year)


@router.post("/holidays", response_model=HolidayResponse, status_code=201)
def create_holiday(payload: HolidayCreate, holidays: HolidayService = Depends(get_holiday_service)):
    return holidays.add_holiday(payload.date, payload.name)


# --- Employees ---

@router.post("/employees", response_model=EmployeeResponse)
def upsert_employee(payload: EmployeeUpsert, directory: EmployeeDirectory = Depends(get_directory)):
    return directory.upsert(payload.id, payload.hire_date, payload.department, payload.full_name)


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: str, directory: EmployeeDirectory = Depends(get_directory)):
    employee = directory.get(employee_id)
    if employee is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    return employee
