import logging
from leave_engine.core.config import settings
from leave_engine.database import SessionLocal
from leave_engine.models.leave_policy import LeavePolicy, AccrualRate
from leave_engine.models.leave_type import LeaveType, LeaveCategory

logger = logging.getLogger(__name__)

# name -> (category, days allowed, accrual rate, documents required)
DEFAULT_LEAVE_TYPES = {
    "Casual Leave": (LeaveCategory.PAID, 12, AccrualRate.MONTHLY, False),
    "Sick Leave": (LeaveCategory.PAID, 12, AccrualRate.MONTHLY, False),
    "Earned Leave": (LeaveCategory.PAID, 15, AccrualRate.ANNUALLY, False),
    "Maternity Leave": (LeaveCategory.STATUTORY, 180, AccrualRate.ONE_TIME, True),
    "Paternity Leave": (LeaveCategory.STATUTORY, 15, AccrualRate.ONE_TIME, True),
    "Loss of Pay": (LeaveCategory.UNPAID, 365, AccrualRate.ANNUALLY, False),
    "Compensatory Off": (LeaveCategory.OTHER, 0, AccrualRate.ANNUALLY, False),
    "Work From Home": (LeaveCategory.OTHER, 0, AccrualRate.ANNUALLY, False),
}

def init_system_data():
    """
    Seeds the default leave types and their policies on an empty database.
    """
    if not settings.seed_default_leave_types:
        return
    db = SessionLocal()
    try:
        type_count = db.query(LeaveType).count()
        if type_count == 0:
            logger.info("Seeding default leave types...")
            for name, (category, days, rate, documents) in DEFAULT_LEAVE_TYPES.items():
                leave_type = LeaveType(name=name, category=category.value)
                db.add(leave_type)
                db.flush()
                db.add(LeavePolicy(
                    leave_type_id=leave_type.id,
                    days_allowed=float(days),
                    accrual_rate=rate.value,
                    # Earned leave rolls over, capped at half the entitlement
                    carry_forward=name == "Earned Leave",
                    max_carry_forward=days / 2 if name == "Earned Leave" else None,
                    pro_rated=rate != AccrualRate.ONE_TIME,
                    requires_documents=documents,
                    is_active=days > 0,
                ))
            db.commit()
            logger.info(f"✓ Seeded {len(DEFAULT_LEAVE_TYPES)} leave types.")
        else:
            logger.info(f"System initialization check: {type_count} leave type(s) found.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
    finally:
        db.close()
