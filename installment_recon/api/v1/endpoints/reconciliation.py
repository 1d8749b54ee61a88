from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from installment_recon.core.database import get_db
from installment_recon.models.reconciliation import MatchConfidence
from installment_recon.schemas.reconciliation import ReconciliationLogResponse
from installment_recon.services.reconciliation_service import ReconciliationService

router = APIRouter()


@router.get("/logs", response_model=List[ReconciliationLogResponse])
def list_reconciliation_logs(
    confidence: Optional[MatchConfidence] = None,
    skip: int = 0,
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """List webhook reconciliation results awaiting review"""
    return ReconciliationService.list_logs(
        db=db,
        confidence=confidence,
        skip=skip,
        limit=limit
    )
