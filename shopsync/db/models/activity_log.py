from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, JSON, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from shopsync.db.base import Base


class ActivityLog(Base):
    """Append-only audit record of a proxied operation or received webhook."""
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(Uuid(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    api_key_id = Column(Uuid(as_uuid=True), ForeignKey("api_keys.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False)
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    store = relationship("Store", back_populates="activity_logs")
