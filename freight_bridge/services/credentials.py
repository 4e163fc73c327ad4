"""
Distributor credential store

Reads and writes the per-shop Ingram Micro and TD SYNNEX credentials.
Rows hold encrypted secrets; callers only ever see the decrypted dataclasses
below. Every method opens its own session so the store can be shared by
process-wide services and fire-and-forget tasks.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update

from freight_bridge.core.database import get_db_session
from freight_bridge.models.credential import IngramCredential, TdSynnexCredential
from freight_bridge.schemas.freight import IngramCredentialInput, TdSynnexCredentialInput
from freight_bridge.services.encryption import decrypt_secret, encrypt_secret, mask_secret

logger = logging.getLogger(__name__)

VALIDATION_NEVER_RUN = "Never run"
VALIDATION_SUCCESS = "Success"
VALIDATION_FAILED = "Failed"


@dataclass
class IngramCredentials:
    """Decrypted Ingram Micro credentials for one shop."""
    shop_domain: str
    client_id: str
    client_secret: str
    customer_number: str
    country_code: str = "US"
    contact_email: Optional[str] = None
    sender_id: Optional[str] = None
    bill_to_address_id: Optional[str] = None
    ship_to_address_id: Optional[str] = None
    sandbox: bool = True
    access_token: Optional[str] = None
    access_token_expires_at: Optional[datetime] = None
    last_validated_at: Optional[datetime] = None
    last_validation_status: Optional[str] = None

    @classmethod
    def from_model(cls, row: IngramCredential) -> "IngramCredentials":
        return cls(
            shop_domain=row.shop_domain,
            client_id=row.client_id,
            client_secret=decrypt_secret(row.client_secret_encrypted),
            customer_number=row.customer_number,
            country_code=row.country_code or "US",
            contact_email=row.contact_email,
            sender_id=row.sender_id,
            bill_to_address_id=row.bill_to_address_id,
            ship_to_address_id=row.ship_to_address_id,
            sandbox=bool(row.sandbox),
            access_token=decrypt_secret(row.access_token_encrypted) or None,
            access_token_expires_at=row.access_token_expires_at,
            last_validated_at=row.last_validated_at,
            last_validation_status=row.last_validation_status,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Admin view with secrets masked."""
        return {
            "shopDomain": self.shop_domain,
            "clientId": self.client_id,
            "clientSecret": mask_secret(self.client_secret),
            "customerNumber": self.customer_number,
            "countryCode": self.country_code,
            "contactEmail": self.contact_email,
            "senderId": self.sender_id,
            "billToAddressId": self.bill_to_address_id,
            "shipToAddressId": self.ship_to_address_id,
            "sandbox": self.sandbox,
            "hasAccessToken": bool(self.access_token),
            "accessTokenExpiresAt": _iso(self.access_token_expires_at),
            "lastValidatedAt": _iso(self.last_validated_at),
            "lastValidationStatus": self.last_validation_status,
        }


@dataclass
class TdSynnexCredentials:
    """Decrypted TD SYNNEX credentials for one shop."""
    shop_domain: str
    user_name: str
    password: str
    customer_number: str
    customer_name: str = ""
    sandbox: bool = True
    last_validated_at: Optional[datetime] = None
    last_validation_status: Optional[str] = None

    @classmethod
    def from_model(cls, row: TdSynnexCredential) -> "TdSynnexCredentials":
        return cls(
            shop_domain=row.shop_domain,
            user_name=row.user_name,
            password=decrypt_secret(row.password_encrypted),
            customer_number=row.customer_number,
            customer_name=row.customer_name or "",
            sandbox=bool(row.sandbox),
            last_validated_at=row.last_validated_at,
            last_validation_status=row.last_validation_status,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "shopDomain": self.shop_domain,
            "userName": self.user_name,
            "password": mask_secret(self.password),
            "customerNumber": self.customer_number,
            "customerName": self.customer_name,
            "sandbox": self.sandbox,
            "lastValidatedAt": _iso(self.last_validated_at),
            "lastValidationStatus": self.last_validation_status,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class CredentialStore:
    """Persistence for distributor credentials and token state."""

    def __init__(self, session_factory: Callable = get_db_session):
        self._session_factory = session_factory

    # ==================== Ingram Micro ====================

    async def get_ingram(self, shop_domain: str) -> Optional[IngramCredentials]:
        async with self._session_factory() as db:
            row = await db.get(IngramCredential, shop_domain)
            return IngramCredentials.from_model(row) if row else None

    async def save_ingram(self, shop_domain: str, data: IngramCredentialInput) -> IngramCredentials:
        """
        Create or update a shop's Ingram credentials.

        New rows start with validation status "Never run". Updates leave the
        cached token and validation state untouched.
        """
        async with self._session_factory() as db:
            row = await db.get(IngramCredential, shop_domain)
            if row is None:
                row = IngramCredential(
                    shop_domain=shop_domain,
                    last_validation_status=VALIDATION_NEVER_RUN,
                )
                db.add(row)

            row.client_id = data.client_id
            row.client_secret_encrypted = encrypt_secret(data.client_secret)
            row.customer_number = data.customer_number
            row.country_code = data.country_code.upper()
            row.contact_email = str(data.contact_email)
            row.sender_id = data.sender_id
            row.bill_to_address_id = data.bill_to_address_id
            row.ship_to_address_id = data.ship_to_address_id
            row.sandbox = data.sandbox

            await db.flush()
            logger.info(f"[CREDENTIALS] Saved Ingram credentials for {shop_domain} (sandbox={data.sandbox})")
            return IngramCredentials.from_model(row)

    async def record_ingram_token(
        self,
        shop_domain: str,
        access_token: str,
        expires_at: datetime,
    ) -> None:
        """Persist a freshly issued token and mark validation successful."""
        async with self._session_factory() as db:
            await db.execute(
                update(IngramCredential)
                .where(IngramCredential.shop_domain == shop_domain)
                .values(
                    access_token_encrypted=encrypt_secret(access_token),
                    access_token_expires_at=expires_at,
                    last_validated_at=datetime.now(timezone.utc),
                    last_validation_status=VALIDATION_SUCCESS,
                )
            )

    async def record_ingram_validation(self, shop_domain: str, status: str) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(IngramCredential)
                .where(IngramCredential.shop_domain == shop_domain)
                .values(
                    last_validated_at=datetime.now(timezone.utc),
                    last_validation_status=status,
                )
            )

    async def list_ingram_shops(self) -> List[str]:
        """Shops with Ingram credentials on file (cron sync targets)."""
        async with self._session_factory() as db:
            result = await db.execute(select(IngramCredential.shop_domain))
            return [shop for shop in result.scalars().all()]

    # ==================== TD SYNNEX ====================

    async def get_tdsynnex(self, shop_domain: str) -> Optional[TdSynnexCredentials]:
        async with self._session_factory() as db:
            row = await db.get(TdSynnexCredential, shop_domain)
            return TdSynnexCredentials.from_model(row) if row else None

    async def save_tdsynnex(self, shop_domain: str, data: TdSynnexCredentialInput) -> TdSynnexCredentials:
        async with self._session_factory() as db:
            row = await db.get(TdSynnexCredential, shop_domain)
            if row is None:
                row = TdSynnexCredential(
                    shop_domain=shop_domain,
                    customer_name=data.customer_name or "",
                    last_validation_status=VALIDATION_NEVER_RUN,
                )
                db.add(row)
            elif data.customer_name is not None:
                row.customer_name = data.customer_name

            row.user_name = data.user_name
            row.password_encrypted = encrypt_secret(data.password)
            row.customer_number = data.customer_number
            row.sandbox = data.sandbox

            await db.flush()
            logger.info(f"[CREDENTIALS] Saved TD SYNNEX credentials for {shop_domain} (sandbox={data.sandbox})")
            return TdSynnexCredentials.from_model(row)


# Singleton
_store: Optional[CredentialStore] = None


def get_credential_store() -> CredentialStore:
    global _store
    if _store is None:
        _store = CredentialStore()
    return _store
