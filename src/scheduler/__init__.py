"""Alert scheduling — recurrence, time windows, ledger, and the activity/reminder passes."""

from src.scheduler.activities import run_activity_scheduler
from src.scheduler.engine import AlertEngine, AlertStrategy
from src.scheduler.ledger import ExecutionLedger
from src.scheduler.reminders import run_reminder_scheduler
from src.scheduler.store import SchedulerStore

__all__ = [
    "AlertEngine",
    "AlertStrategy",
    "ExecutionLedger",
    "SchedulerStore",
    "run_activity_scheduler",
    "run_reminder_scheduler",
]
