import logging
import math
from datetime import datetime
from typing import Callable, Dict, Any, Iterable, Optional

from lib.database import Database
from lib.error_handler import DatabaseError

logger = logging.getLogger(__name__)

NO_PLAN = {
    'can_start': False,
    'minutes_remaining': 0,
    'minutes_used': 0,
    'monthly_limit': 0,
    'plan_type': 'none'
}

def local_now() -> datetime:
    return datetime.now()

def month_start(now: datetime) -> datetime:
    """First instant of the calendar month containing `now`.

    A naive `now` is server local time; the result then gets the local
    offset in effect on the 1st, so it serializes unambiguously.
    """
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start if start.tzinfo else start.astimezone()

def minutes_used(durations: Iterable[Optional[int]]) -> int:
    """Whole minutes consumed; a started minute counts as a full one"""
    total_seconds = sum(d or 0 for d in durations)
    return math.ceil(total_seconds / 60)

class QuotaService:
    def __init__(self, database: Database, clock: Callable[[], datetime] = local_now):
        self.db = database
        self.clock = clock

    def check_availability(self, user_id: str, plan_errors_as_no_plan: bool = True) -> Dict[str, Any]:
        """Minutes left this month against the user's active plan.

        A failed plan lookup reads as "no plan" unless `plan_errors_as_no_plan`
        is off, in which case the DatabaseError propagates.
        """
        try:
            plan = self.db.get_active_plan(user_id)
        except DatabaseError as e:
            if not plan_errors_as_no_plan:
                raise
            logger.warning(f"Plan lookup failed for {user_id}, treating as no plan: {e.message}")
            plan = None

        if not plan:
            logger.info(f"No active plan for user {user_id}")
            return dict(NO_PLAN)

        monthly_limit = plan.get('voice_minutes') or 0
        since = month_start(self.clock())
        used = minutes_used(self.db.get_session_durations(user_id, since))
        remaining = max(0, monthly_limit - used)

        return {
            'can_start': remaining > 0,
            'minutes_remaining': remaining,
            'minutes_used': used,
            'monthly_limit': monthly_limit,
            'plan_type': plan.get('plan_name')
        }
