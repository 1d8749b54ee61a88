from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer, Numeric, ForeignKey, Text, Enum as SQLEnum
from datetime import datetime
import uuid
import enum

from installment_recon.core.database import Base


class TransactionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    LEGAL = "legal"


class Transaction(Base):
    __tablename__ = "transactions"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # NULL when the sheet carries no sale number; unique otherwise
    sequence_number = Column(String(50), unique=True, nullable=True, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    
    cost_price = Column(Numeric(12, 3), nullable=False, default=0)
    extra_price = Column(Numeric(12, 3), nullable=False, default=0)
    amount = Column(Numeric(12, 3), nullable=False)
    installment_amount = Column(Numeric(12, 3), nullable=False)
    number_of_installments = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    
    remaining_balance = Column(Numeric(12, 3), nullable=False)
    status = Column(SQLEnum(TransactionStatus), nullable=False, default=TransactionStatus.ACTIVE)
    
    overdue_amount = Column(Numeric(12, 3), nullable=False, default=0)
    overdue_installments = Column(Integer, nullable=False, default=0)
    
    has_legal_case = Column(Boolean, default=False)
    notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
