import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

Clock = Callable[[], date]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseService:
    """
    Common plumbing for session-bound services.

    `clock` returns the business "today" used by date rules (eligibility,
    backdating, accrual); tests inject a fixed date through it.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock: Clock = clock or date.today
        self._logger = logging.getLogger(self.__class__.__module__)

    def today(self) -> date:
        return self.clock()

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)
