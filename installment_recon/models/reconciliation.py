from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from installment_recon.core.database import Base
from installment_recon.models.customer import Customer
from installment_recon.models.transaction import Transaction


class MatchConfidence(str, enum.Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    UNMATCHED = "unmatched"


class ReconciliationLog(Base):
    __tablename__ = "tap_webhook_logs"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    charge_id = Column(String(100), unique=True, nullable=False, index=True)
    
    status = Column(SQLEnum(MatchConfidence), nullable=False, default=MatchConfidence.UNMATCHED, index=True)
    gateway_status = Column(String(50), nullable=True)
    
    amount = Column(Numeric(12, 3), nullable=True)
    currency = Column(String(10), nullable=True)
    reference_no = Column(String(100), nullable=True, index=True)
    
    # Payer as reported by the gateway
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    
    matched_customer_id = Column(String, ForeignKey("customers.id"), nullable=True)
    matched_transaction_id = Column(String, ForeignKey("transactions.id"), nullable=True)
    
    # Full verified gateway record for audit
    payload = Column(JSON, nullable=True)
    
    processed_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    customer = relationship(Customer)
    transaction = relationship(Transaction)
