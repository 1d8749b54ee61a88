from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, Dict, Any

from installment_recon.core.logging import get_logger
from installment_recon.models.audit_log import AuditLog

logger = get_logger(__name__)


class AuditService:
    @staticmethod
    def log_action(
        db: Session,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditLog]:
        """Log an audit action; a failed write is logged and never raised"""
        log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes
        )
        db.add(log)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Could not write audit entry '{action}' for {entity_type}")
            return None
        return log
