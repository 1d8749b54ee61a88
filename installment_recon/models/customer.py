from sqlalchemy import Column, String, DateTime
from datetime import datetime
import uuid

from installment_recon.core.database import Base


class Customer(Base):
    __tablename__ = "customers"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sequence_number = Column(String(50), nullable=True, index=True)
    full_name = Column(String(255), nullable=False)
    
    mobile_number = Column(String(30), nullable=True, index=True)
    alternate_phone = Column(String(30), nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
