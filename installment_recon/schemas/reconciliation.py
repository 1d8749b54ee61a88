from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime
from decimal import Decimal

from installment_recon.models.reconciliation import MatchConfidence


class MatchedTransaction(BaseModel):
    sequence_number: Optional[str] = None
    remaining_balance: Decimal
    
    class Config:
        from_attributes = True


class MatchedCustomer(BaseModel):
    full_name: str
    mobile_number: Optional[str] = None
    
    class Config:
        from_attributes = True


class ReconciliationLogResponse(BaseModel):
    id: str
    charge_id: str
    status: MatchConfidence
    gateway_status: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    reference_no: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    matched_customer_id: Optional[str] = None
    matched_transaction_id: Optional[str] = None
    transaction: Optional[MatchedTransaction] = None
    customer: Optional[MatchedCustomer] = None
    payload: Optional[Dict[str, Any]] = None
    processed_at: Optional[datetime] = None
    created_at: datetime
    
    class Config:
        from_attributes = True
