from sqlalchemy.orm import Session, joinedload
from typing import Optional

from installment_recon.models.reconciliation import MatchConfidence, ReconciliationLog


class ReconciliationService:
    @staticmethod
    def list_logs(
        db: Session,
        confidence: Optional[MatchConfidence] = None,
        skip: int = 0,
        limit: int = 20
    ):
        """List reconciliation log rows for manual review, newest first"""
        query = db.query(ReconciliationLog).options(
            joinedload(ReconciliationLog.transaction),
            joinedload(ReconciliationLog.customer)
        )
        
        if confidence:
            query = query.filter(ReconciliationLog.status == confidence)
        
        logs = query.order_by(ReconciliationLog.created_at.desc()).offset(skip).limit(limit).all()
        return logs
