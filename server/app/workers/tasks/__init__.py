# Import all tasks for Celery autodiscovery
from .overdue_terminations import check_overdue_terminations

__all__ = [
    "check_overdue_terminations",
]
