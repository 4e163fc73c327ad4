"""
Carrier configuration model

Per-shop list of Ingram carrier codes seen in freight responses, with the
merchant's enable/disable choice and optional checkout label override.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, UniqueConstraint

from freight_bridge.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CarrierConfiguration(Base):
    __tablename__ = "carrier_configurations"
    __table_args__ = (
        UniqueConstraint("shop_domain", "carrier_code", name="uq_carrier_configurations_shop_code"),
        Index("ix_carrier_configurations_shop", "shop_domain"),
    )

    id = Column(Integer, primary_key=True)
    shop_domain = Column(String(255), nullable=False)
    carrier_code = Column(String(32), nullable=False)
    carrier_name = Column(String(255), nullable=False)  # Ingram shipVia
    carrier_mode = Column(String(32), nullable=False, default="")
    display_name = Column(String(255), nullable=True)  # Checkout label override
    enabled = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<CarrierConfiguration(shop={self.shop_domain}, code={self.carrier_code}, enabled={self.enabled})>"
