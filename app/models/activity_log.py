# app/models/activity_log.py
from sqlalchemy import Column, Integer, String, JSON, TIMESTAMP, text
from sqlalchemy.dialects.postgresql import JSONB
from app.database import Base

class ActivityLog(Base):
    """
    Audit trail for the listing sync engine.

    This includes:
    - Cross-list attempts and removals
    - Sales and cascade closes
    - Reconciliation runs
    - Platform link / unlink
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'crosslist', 'remove', 'sale', 'sync', 'link'
    entity_type = Column(String(50), nullable=False, index=True)  # 'product', 'platform_listing', 'platform'
    entity_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(50), nullable=True, index=True)

    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    created_at = Column(TIMESTAMP(timezone=False), server_default=text("CURRENT_TIMESTAMP"), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id}>"
