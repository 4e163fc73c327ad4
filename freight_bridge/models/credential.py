"""
Distributor credential models

One row per shop per distributor. Secrets are Fernet-encrypted
(see services/encryption.py); the cached Ingram OAuth token lives on the
same row so refreshes survive restarts.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Text

from freight_bridge.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class IngramCredential(Base):
    """Ingram Micro reseller API credentials and cached access token."""
    __tablename__ = "ingram_credentials"

    shop_domain = Column(String(255), primary_key=True)

    client_id = Column(String(255), nullable=False)
    client_secret_encrypted = Column(Text, nullable=False)
    customer_number = Column(String(64), nullable=False)
    country_code = Column(String(2), nullable=False, default="US")
    contact_email = Column(String(255), nullable=True)
    sender_id = Column(String(64), nullable=True)
    bill_to_address_id = Column(String(64), nullable=True)
    ship_to_address_id = Column(String(64), nullable=True)
    sandbox = Column(Boolean, nullable=False, default=True)

    access_token_encrypted = Column(Text, nullable=True)
    access_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_validated_at = Column(DateTime(timezone=True), nullable=True)
    last_validation_status = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<IngramCredential(shop={self.shop_domain}, customer={self.customer_number}, sandbox={self.sandbox})>"


class TdSynnexCredential(Base):
    """TD SYNNEX XML gateway credentials."""
    __tablename__ = "tdsynnex_credentials"

    shop_domain = Column(String(255), primary_key=True)

    user_name = Column(String(255), nullable=False)
    password_encrypted = Column(Text, nullable=False)
    customer_number = Column(String(64), nullable=False)
    customer_name = Column(String(255), nullable=True)
    sandbox = Column(Boolean, nullable=False, default=True)

    last_validated_at = Column(DateTime(timezone=True), nullable=True)
    last_validation_status = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<TdSynnexCredential(shop={self.shop_domain}, customer={self.customer_number})>"
