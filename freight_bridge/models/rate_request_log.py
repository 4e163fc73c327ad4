"""
Rate request audit log model

Append-only record of every checkout/cart rate request outcome, for
troubleshooting from the admin API.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Integer, String, DateTime, Text, Index

from freight_bridge.core.database import Base


class RateRequestLog(Base):
    __tablename__ = "rate_request_logs"
    __table_args__ = (
        Index("ix_rate_request_logs_shop", "shop_domain"),
        Index("ix_rate_request_logs_created", "created_at"),
        Index("ix_rate_request_logs_status", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    shop_domain = Column(String(255), nullable=False)
    correlation_id = Column(String(64), nullable=False, unique=True)
    request_type = Column(String(32), nullable=False)  # carrier_service | cart_estimate

    # Cart
    cart_item_count = Column(Integer, nullable=False)
    cart_skus = Column(Text, nullable=False)  # JSON array
    ingram_part_nums = Column(Text, nullable=True)  # JSON array

    # Destination
    ship_to_city = Column(String(255), nullable=True)
    ship_to_state = Column(String(64), nullable=True)
    ship_to_zip = Column(String(32), nullable=True)
    ship_to_country = Column(String(8), nullable=True)

    # Outcome
    status = Column(String(16), nullable=False)  # success | error | no_rates | no_mapping | api_error
    distribution_count = Column(Integer, nullable=True)
    rates_returned = Column(Integer, nullable=True)
    rates_data = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    error_details = Column(Text, nullable=True)
    ingram_raw_response = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "correlationId": self.correlation_id,
            "requestType": self.request_type,
            "cartItemCount": self.cart_item_count,
            "cartSkus": self.cart_skus,
            "ingramPartNums": self.ingram_part_nums,
            "shipToCity": self.ship_to_city,
            "shipToState": self.ship_to_state,
            "shipToZip": self.ship_to_zip,
            "shipToCountry": self.ship_to_country,
            "status": self.status,
            "distributionCount": self.distribution_count,
            "ratesReturned": self.rates_returned,
            "ratesData": self.rates_data,
            "errorMessage": self.error_message,
            "errorDetails": self.error_details,
            "ingramRawResponse": self.ingram_raw_response,
            "durationMs": self.duration_ms,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<RateRequestLog(correlation_id={self.correlation_id}, status={self.status})>"
