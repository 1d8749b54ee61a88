from celery import Task
from sqlalchemy.orm import Session

from installment_recon.tasks.celery_app import celery_app
from installment_recon.core.database import SessionLocal
from installment_recon.core.logging import get_logger
from installment_recon.services.overdue_service import OverdueService

logger = get_logger(__name__)


class DatabaseTask(Task):
    """Base task with database session"""
    _db = None
    
    @property
    def db(self) -> Session:
        if self._db is None:
            self._db = SessionLocal()
        return self._db
    
    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


@celery_app.task(base=DatabaseTask, bind=True)
def check_overdue_transactions_task(self):
    """Recompute overdue status asynchronously"""
    return OverdueService.check_overdue_transactions(self.db)


def trigger_overdue_check() -> None:
    check_overdue_transactions_task.delay()
    logger.info("Queued overdue recomputation")
