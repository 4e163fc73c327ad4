"""
Fallback rate settings model

The single rate shown at checkout when live freight quoting fails.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Text

from freight_bridge.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class FallbackRateSetting(Base):
    __tablename__ = "fallback_rate_settings"

    shop_domain = Column(String(255), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(10, 2), nullable=False, default=999)
    title = Column(String(255), nullable=False, default="Shipping Unavailable")
    description = Column(Text, nullable=False, default="Please contact support before placing this order")

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<FallbackRateSetting(shop={self.shop_domain}, enabled={self.enabled}, price={self.price})>"
