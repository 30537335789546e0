from sqlalchemy import BigInteger, Column, String, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship
from shopsync.db.base import Base


class Webhook(Base):
    __tablename__ = "webhooks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(Uuid(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    webhook_id = Column(BigInteger, nullable=False)
    topic = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    store = relationship("Store", back_populates="webhooks")

    __table_args__ = (UniqueConstraint('store_id', 'topic', name='uq_store_webhook_topic'),)
