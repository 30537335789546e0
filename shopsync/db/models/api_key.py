import uuid
from typing import List
from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from shopsync.core.security import encrypt_token, decrypt_token
from shopsync.core.scopes import parse_scopes
from shopsync.db.base import Base

class ApiKey(Base):
    """A credential issued to an external portal, limited to a scope subset."""
    __tablename__ = "api_keys"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    store_id = Column(Uuid(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    # HMAC of the public key; the key itself is never stored
    key_hash = Column(String(64), nullable=False, unique=True, index=True)
    key_prefix = Column(String(16), nullable=False)
    _api_secret = Column('api_secret', Text, nullable=False)
    name = Column(String(255), nullable=False)
    scopes = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    store = relationship("Store", back_populates="api_keys")

    @property
    def api_secret(self) -> str:
        return decrypt_token(self._api_secret)

    @api_secret.setter
    def api_secret(self, secret: str) -> None:
        self._api_secret = encrypt_token(secret)

    @property
    def scope_list(self) -> List[str]:
        return parse_scopes(self.scopes)

    @property
    def masked_key(self) -> str:
        return f"{self.key_prefix}..."
