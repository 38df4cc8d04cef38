from datetime import date
from typing import List, Set

from leave_engine.core.exceptions import AppException
from leave_engine.models.holiday import Holiday
from leave_engine.services.base import BaseService


class HolidayService(BaseService):
    """Public holiday calendar, loaded per calendar year."""

    def list_for_year(self, year: int) -> List[Holiday]:
        return self.db.query(Holiday).filter(
            Holiday.date >= date(year, 1, 1),
            Holiday.date <= date(year, 12, 31)
        ).order_by(Holiday.date).all()

    def between(self, start: date, end: date) -> List[Holiday]:
        return self.db.query(Holiday).filter(
            Holiday.date >= start,
            Holiday.date <= end
        ).order_by(Holiday.date).all()

    def dates_between(self, start: date, end: date) -> Set[date]:
        return {h.date for h in self.between(start, end)}

    def add_holiday(self, day: date, name: str) -> Holiday:
        if self.db.query(Holiday).filter(Holiday.date == day).first():
            raise AppException(f"A holiday is already defined on {day.isoformat()}", status_code=409,
                               error_code="DUPLICATE_HOLIDAY")
        holiday = Holiday(date=day, name=name)
        self.db.add(holiday)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(holiday)
        return holiday
