"""
Database Migration Script for Freight Bridge

Creates the tables behind the freight quoting flow:
- ingram_credentials / tdsynnex_credentials: per-shop distributor credentials
- product_mappings / product_sync_jobs: local SKU catalog and its sync history
- carrier_configurations: per-shop carrier enable/relabel settings
- fallback_rate_settings: per-shop fallback checkout rate
- rate_request_logs: audit trail of checkout rate requests

Idempotent - safe to run multiple times.
"""
import asyncio
import logging

from sqlalchemy import text

logger = logging.getLogger(__name__)

TABLES = {
    "ingram_credentials": """
        CREATE TABLE IF NOT EXISTS ingram_credentials (
            shop_domain VARCHAR(255) PRIMARY KEY,
            client_id VARCHAR(255) NOT NULL,
            client_secret_encrypted TEXT NOT NULL,
            customer_number VARCHAR(64) NOT NULL,
            country_code VARCHAR(2) NOT NULL DEFAULT 'US',
            contact_email VARCHAR(255),
            sender_id VARCHAR(64),
            bill_to_address_id VARCHAR(64),
            ship_to_address_id VARCHAR(64),
            sandbox BOOLEAN NOT NULL DEFAULT TRUE,
            access_token_encrypted TEXT,
            access_token_expires_at TIMESTAMP WITH TIME ZONE,
            last_validated_at TIMESTAMP WITH TIME ZONE,
            last_validation_status VARCHAR(32),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """,
    "tdsynnex_credentials": """
        CREATE TABLE IF NOT EXISTS tdsynnex_credentials (
            shop_domain VARCHAR(255) PRIMARY KEY,
            user_name VARCHAR(255) NOT NULL,
            password_encrypted TEXT NOT NULL,
            customer_number VARCHAR(64) NOT NULL,
            customer_name VARCHAR(255),
            sandbox BOOLEAN NOT NULL DEFAULT TRUE,
            last_validated_at TIMESTAMP WITH TIME ZONE,
            last_validation_status VARCHAR(32),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """,
    "product_mappings": """
        CREATE TABLE IF NOT EXISTS product_mappings (
            id SERIAL PRIMARY KEY,
            shop_domain VARCHAR(255) NOT NULL,
            sku VARCHAR(255) NOT NULL,
            ingram_part_number VARCHAR(64) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            CONSTRAINT uq_product_mappings_shop_sku UNIQUE (shop_domain, sku)
        )
    """,
    "product_sync_jobs": """
        CREATE TABLE IF NOT EXISTS product_sync_jobs (
            id VARCHAR(36) PRIMARY KEY,
            shop_domain VARCHAR(255) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'queued',
            processed INTEGER NOT NULL DEFAULT 0,
            total INTEGER NOT NULL DEFAULT 0,
            error TEXT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            finished_at TIMESTAMP WITH TIME ZONE
        )
    """,
    "carrier_configurations": """
        CREATE TABLE IF NOT EXISTS carrier_configurations (
            id SERIAL PRIMARY KEY,
            shop_domain VARCHAR(255) NOT NULL,
            carrier_code VARCHAR(32) NOT NULL,
            carrier_name VARCHAR(255) NOT NULL,
            carrier_mode VARCHAR(32) NOT NULL DEFAULT '',
            display_name VARCHAR(255),
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            CONSTRAINT uq_carrier_configurations_shop_code UNIQUE (shop_domain, carrier_code)
        )
    """,
    "fallback_rate_settings": """
        CREATE TABLE IF NOT EXISTS fallback_rate_settings (
            shop_domain VARCHAR(255) PRIMARY KEY,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            price NUMERIC(10, 2) NOT NULL DEFAULT 999,
            title VARCHAR(255) NOT NULL DEFAULT 'Shipping Unavailable',
            description TEXT NOT NULL DEFAULT 'Please contact support before placing this order',
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """,
    "rate_request_logs": """
        CREATE TABLE IF NOT EXISTS rate_request_logs (
            id VARCHAR(36) PRIMARY KEY,
            shop_domain VARCHAR(255) NOT NULL,
            correlation_id VARCHAR(64) NOT NULL UNIQUE,
            request_type VARCHAR(32) NOT NULL,
            cart_item_count INTEGER NOT NULL,
            cart_skus TEXT NOT NULL,
            ingram_part_nums TEXT,
            ship_to_city VARCHAR(255),
            ship_to_state VARCHAR(64),
            ship_to_zip VARCHAR(32),
            ship_to_country VARCHAR(8),
            status VARCHAR(16) NOT NULL,
            distribution_count INTEGER,
            rates_returned INTEGER,
            rates_data TEXT,
            error_message TEXT,
            error_details TEXT,
            ingram_raw_response TEXT,
            duration_ms INTEGER,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """,
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_product_mappings_shop ON product_mappings(shop_domain)",
    "CREATE INDEX IF NOT EXISTS ix_product_sync_jobs_shop_created ON product_sync_jobs(shop_domain, created_at)",
    "CREATE INDEX IF NOT EXISTS ix_carrier_configurations_shop ON carrier_configurations(shop_domain)",
    "CREATE INDEX IF NOT EXISTS ix_rate_request_logs_shop ON rate_request_logs(shop_domain)",
    "CREATE INDEX IF NOT EXISTS ix_rate_request_logs_created ON rate_request_logs(created_at)",
    "CREATE INDEX IF NOT EXISTS ix_rate_request_logs_status ON rate_request_logs(status)",
]


async def migrate_freight_tables(engine):
    """Create all freight tables and indexes if they don't exist."""
    logger.info("Starting freight tables migration...")

    async with engine.begin() as conn:
        for name, ddl in TABLES.items():
            await conn.execute(text(ddl))
            logger.info(f"Created/verified {name} table")

        for ddl in INDEXES:
            await conn.execute(text(ddl))

    logger.info("Freight tables migration complete!")


async def run_migration():
    """Run the migration using the app's database engine."""
    from freight_bridge.core.database import engine

    await migrate_freight_tables(engine)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    asyncio.run(run_migration())
