"""
Product mapping models

Local copy of the storefront SKU -> Ingram part number catalog, refreshed
from the remote catalog by the product sync job and written through on
remote lookups.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, UniqueConstraint

from freight_bridge.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class ProductMapping(Base):
    __tablename__ = "product_mappings"
    __table_args__ = (
        UniqueConstraint("shop_domain", "sku", name="uq_product_mappings_shop_sku"),
        Index("ix_product_mappings_shop", "shop_domain"),
    )

    id = Column(Integer, primary_key=True)
    shop_domain = Column(String(255), nullable=False)
    sku = Column(String(255), nullable=False)
    ingram_part_number = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ProductMapping(shop={self.shop_domain}, sku={self.sku}, part={self.ingram_part_number})>"


class ProductSyncJob(Base):
    """
    One catalog sync run for a shop.

    Status moves queued -> running -> success | failed.
    """
    __tablename__ = "product_sync_jobs"
    __table_args__ = (
        Index("ix_product_sync_jobs_shop_created", "shop_domain", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    shop_domain = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, default="queued")
    processed = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "shopDomain": self.shop_domain,
            "status": self.status,
            "processed": self.processed,
            "total": self.total,
            "error": self.error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }

    def __repr__(self):
        return f"<ProductSyncJob(id={self.id}, shop={self.shop_domain}, status={self.status})>"
