from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime
import uuid

from installment_recon.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String, nullable=True, index=True)
    
    # Changes made (JSON)
    changes = Column(JSON, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
