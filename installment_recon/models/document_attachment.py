from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from datetime import datetime
import uuid

from installment_recon.core.database import Base


class DocumentAttachment(Base):
    __tablename__ = "document_attachments"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=True, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=True, index=True)
    
    # Legacy imports carry a bare URL, so path and url are the same value
    file_path = Column(String(1000), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    
    created_at = Column(DateTime, default=datetime.utcnow)
