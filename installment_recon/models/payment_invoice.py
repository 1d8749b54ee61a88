from sqlalchemy import Column, String, DateTime, Numeric, JSON
from datetime import datetime
import uuid

from installment_recon.core.database import Base


class PaymentInvoice(Base):
    """Local mirror of a verified gateway charge or invoice"""
    __tablename__ = "payment_invoices"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tap_id = Column(String(100), unique=True, nullable=False, index=True)
    
    amount = Column(Numeric(12, 3), nullable=True)
    currency = Column(String(10), nullable=True)
    status = Column(String(50), nullable=True, index=True)
    
    # Copied from the gateway metadata, never used for matching
    customer_id = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True)
    
    metadata_payload = Column("metadata", JSON, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
