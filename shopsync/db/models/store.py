import uuid
from typing import List
from sqlalchemy import Column, String, DateTime, Boolean, Text, Uuid, func
from sqlalchemy.orm import relationship
from shopsync.core.security import encrypt_token, decrypt_token
from shopsync.core.scopes import parse_scopes
from shopsync.db.base import Base

class Store(Base):
    """One installed instance of the app on a Shopify store (a tenant)."""
    __tablename__ = "stores"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_domain = Column(String(255), nullable=False, unique=True, index=True)
    _access_token = Column('access_token', Text, nullable=False)
    scopes = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    installed_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    api_keys = relationship("ApiKey", back_populates="store", cascade="all, delete-orphan")
    webhooks = relationship("Webhook", back_populates="store", cascade="all, delete-orphan")
    activity_logs = relationship("ActivityLog", back_populates="store", cascade="all, delete-orphan")

    @property
    def access_token(self) -> str:
        """
        Decrypt and return the Shopify access token.
        Raises DecryptionError rather than returning unusable data.
        """
        return decrypt_token(self._access_token)

    @access_token.setter
    def access_token(self, token: str) -> None:
        self._access_token = encrypt_token(token)

    @property
    def scope_list(self) -> List[str]:
        return parse_scopes(self.scopes)

