"""
Leave Policy Store

Read surface for per-leave-type policy plus the administrative operations
that create and edit policies. Every mutation is validated against the
policy invariants before it reaches the database:

- days_allowed and applicable_after_days are non-negative
- max_carry_forward is only set when carry_forward is on, and then lies in
  [0, days_allowed]
"""
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import NotFoundError, PolicyValidationError, AppException
from leave_engine.models.leave_policy import LeavePolicy, AccrualRate, ALL_DEPARTMENTS
from leave_engine.models.leave_type import LeaveType, LeaveCategory
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.base import BaseService, Clock


def is_eligible(hire_date: date, policy: LeavePolicy, today: date) -> bool:
    """True once the employee has served the policy's applicability window."""
    return (today - hire_date).days >= (policy.applicable_after_days or 0)


def applies_to_department(policy: LeavePolicy, department: Optional[str]) -> bool:
    scope = policy.department or ALL_DEPARTMENTS
    return scope == ALL_DEPARTMENTS or scope == department


def validate_policy_fields(fields: Dict[str, Any]) -> None:
    """Check the cross-field policy invariants on a complete set of values."""
    days_allowed = fields.get("days_allowed")
    if days_allowed is None or days_allowed < 0:
        raise PolicyValidationError("days_allowed must be zero or more", field="days_allowed")

    if (fields.get("applicable_after_days") or 0) < 0:
        raise PolicyValidationError("applicable_after_days must be zero or more", field="applicable_after_days")

    rate = fields.get("accrual_rate", AccrualRate.ANNUALLY.value)
    if rate not in {r.value for r in AccrualRate}:
        raise PolicyValidationError(f"Unknown accrual rate '{rate}'", field="accrual_rate")

    max_cf = fields.get("max_carry_forward")
    if fields.get("carry_forward"):
        if max_cf is None:
            raise PolicyValidationError("max_carry_forward is required when carry_forward is enabled",
                                        field="max_carry_forward")
        if max_cf < 0 or max_cf > days_allowed:
            raise PolicyValidationError("max_carry_forward must be between 0 and days_allowed",
                                        field="max_carry_forward")
    elif max_cf is not None:
        raise PolicyValidationError("max_carry_forward can only be set when carry_forward is enabled",
                                    field="max_carry_forward")


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


# Columns an update may leave out but never blank
REQUIRED_POLICY_FIELDS = frozenset(
    column.name for column in LeavePolicy.__table__.columns if not column.nullable
)


class LeavePolicyStore(BaseService):

    def __init__(self, db: Session, clock: Optional[Clock] = None, cache: Optional[BalanceCache] = None):
        super().__init__(db, clock)
        self.cache = cache

    # --- Leave types ---

    def get_leave_type(self, leave_type_id: int) -> Optional[LeaveType]:
        return self.db.get(LeaveType, leave_type_id)

    def list_leave_types(self) -> List[LeaveType]:
        return self.db.query(LeaveType).order_by(LeaveType.name).all()

    def create_leave_type(self, name: str, category: str = LeaveCategory.PAID.value) -> LeaveType:
        existing = self.db.query(LeaveType).filter(LeaveType.name == name).first()
        if existing:
            raise AppException(f"Leave type '{name}' already exists", status_code=409,
                               error_code="DUPLICATE_LEAVE_TYPE")
        leave_type = LeaveType(name=name, category=_enum_value(category))
        self.db.add(leave_type)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(leave_type)
        self.log_info("Leave type created", leave_type_id=leave_type.id)
        return leave_type

    # --- Policies ---

    def get_policy(self, leave_type_id: int) -> Optional[LeavePolicy]:
        return self.db.query(LeavePolicy).filter(LeavePolicy.leave_type_id == leave_type_id).first()

    def require_policy(self, leave_type_id: int) -> LeavePolicy:
        policy = self.get_policy(leave_type_id)
        if policy is None:
            raise NotFoundError(f"No policy configured for leave type {leave_type_id}")
        return policy

    def list_policies(self, active_only: bool = False) -> List[LeavePolicy]:
        query = self.db.query(LeavePolicy)
        if active_only:
            query = query.filter(LeavePolicy.is_active.is_(True))
        return query.order_by(LeavePolicy.leave_type_id).all()

    def create_policy(self, data) -> LeavePolicy:
        fields = {k: _enum_value(v) for k, v in data.model_dump().items()}
        if self.get_leave_type(fields["leave_type_id"]) is None:
            raise NotFoundError(f"Leave type {fields['leave_type_id']} does not exist")
        if self.get_policy(fields["leave_type_id"]) is not None:
            raise AppException("A policy already exists for this leave type", status_code=409,
                               error_code="DUPLICATE_POLICY")
        validate_policy_fields(fields)

        policy = LeavePolicy(**fields)
        self.db.add(policy)
        self._commit()
        self.db.refresh(policy)
        self.log_info("Leave policy created", leave_type_id=policy.leave_type_id)
        return policy

    def update_policy(self, leave_type_id: int, data) -> LeavePolicy:
        policy = self.require_policy(leave_type_id)
        changes = {k: _enum_value(v) for k, v in data.model_dump(exclude_unset=True).items()}
        for name, value in changes.items():
            if value is None and name in REQUIRED_POLICY_FIELDS:
                raise PolicyValidationError(f"{name} cannot be null", field=name)

        merged = {column.name: getattr(policy, column.name) for column in LeavePolicy.__table__.columns}
        merged.update(changes)
        # Switching carry-forward off drops the cap unless the caller set one
        if changes.get("carry_forward") is False and "max_carry_forward" not in changes:
            merged["max_carry_forward"] = None
        validate_policy_fields(merged)

        for name in changes.keys() | {"max_carry_forward"}:
            setattr(policy, name, merged[name])
        self._commit()
        self.db.refresh(policy)
        self.log_info("Leave policy updated", leave_type_id=leave_type_id, fields=sorted(changes))
        return policy

    def deactivate_policy(self, leave_type_id: int) -> LeavePolicy:
        policy = self.require_policy(leave_type_id)
        policy.is_active = False
        self._commit()
        self.db.refresh(policy)
        self.log_info("Leave policy deactivated", leave_type_id=leave_type_id)
        return policy

    def _commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if self.cache is not None:
            self.cache.clear()
