"""
Paypack API client for mobile-money cash-in.

Provides async methods for:
- Authorizing the agent (access token)
- Initiating a cash-in (customer pays the merchant)
- Looking up a transaction by reference
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.marketplace_service.models import PaymentStatus

logger = get_logger(__name__)

PROVIDER_NAME = "paypack"


@dataclass
class PaymentInitiation:
    """Result of initiating a cash-in."""

    transaction_id: str
    status: str  # pending, successful, failed
    amount: Decimal
    provider: str = PROVIDER_NAME


@dataclass
class TransactionStatus:
    """Current state of a transaction at Paypack."""

    reference: str
    status: str
    amount: Optional[Decimal] = None


class PaypackError(Exception):
    """Base exception for Paypack API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class PaymentGateway(Protocol):
    async def authenticate(self) -> str: ...

    async def create_payment(
        self, amount: Decimal, phone: str, callback_url: str
    ) -> PaymentInitiation: ...

    async def find_transaction(self, reference: str) -> Optional[TransactionStatus]: ...


class PaypackClient:
    """Async client for the Paypack merchant API."""

    def __init__(
        self,
        client_id: str = None,
        client_secret: str = None,
        base_url: str = None,
        environment: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        settings = get_settings()
        self.client_id = client_id or settings.PAYPACK_CLIENT_ID
        self.client_secret = client_secret or settings.PAYPACK_CLIENT_SECRET
        if not self.client_id or not self.client_secret:
            raise ValueError("PAYPACK_CLIENT_ID and PAYPACK_CLIENT_SECRET are required")
        self.base_url = (base_url or settings.paypack_base_url).rstrip("/")
        self.environment = environment or settings.PAYPACK_ENVIRONMENT
        self._transport = transport
        self._timeout = timeout

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        token: str = None,
    ) -> dict:
        """Make an async request to the Paypack API."""
        url = f"{self.base_url}{endpoint}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method=method, url=url, headers=headers, json=json_data
            )

            try:
                data = response.json()
            except ValueError:
                data = {"message": response.text}

            if not response.is_success:
                logger.error(f"Paypack API error: {response.status_code} - {data}")
                raise PaypackError(
                    message=data.get("message", "Unknown Paypack error"),
                    status_code=response.status_code,
                    response_data=data,
                )

            return data

    async def authenticate(self) -> str:
        """Exchange client credentials for a short-lived access token."""
        data = await self._request(
            "POST",
            "/auth/agents/authorize",
            json_data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        token = data.get("access_token") or data.get("access")
        if not token:
            raise PaypackError("Paypack did not return an access token", response_data=data)
        return token

    async def create_payment(
        self, amount: Decimal, phone: str, callback_url: str
    ) -> PaymentInitiation:
        """
        Initiate a cash-in from the customer's mobile-money wallet.

        The final outcome arrives later via webhook (or the pending poller).

        Raises:
            PaypackError: If Paypack rejects the request
        """
        token = await self.authenticate()
        data = await self._request(
            "POST",
            "/transactions/cashin",
            json_data={
                "amount": float(amount),
                "phone": phone,
                "environment": self.environment,
                "callbackUrl": callback_url,
            },
            token=token,
        )

        transaction_id = (
            data.get("ref") or data.get("transactionId") or data.get("transaction_id")
        )
        if not transaction_id:
            raise PaypackError(
                "Paypack response is missing a transaction reference",
                response_data=data,
            )
        return PaymentInitiation(
            transaction_id=str(transaction_id),
            status=str(data.get("status", "pending")).lower(),
            amount=Decimal(str(data.get("amount", amount))),
        )

    async def find_transaction(self, reference: str) -> Optional[TransactionStatus]:
        """Look up a transaction; None when Paypack has no record of it."""
        token = await self.authenticate()
        try:
            data = await self._request(
                "GET", f"/transactions/find/{reference}", token=token
            )
        except PaypackError as e:
            if e.status_code == 404:
                return None
            raise

        amount = data.get("amount")
        return TransactionStatus(
            reference=str(data.get("ref", reference)),
            status=str(data.get("status", "pending")).lower(),
            amount=Decimal(str(amount)) if amount is not None else None,
        )


def get_paypack_client() -> PaypackClient:
    """Get a PaypackClient instance."""
    return PaypackClient()


def outcome_for_status(status: Optional[str]) -> Optional[PaymentStatus]:
    """Map a Paypack transaction status to a settled payment outcome.

    Returns None while the transaction is still in flight.
    """
    normalized = (status or "").lower()
    if normalized in ("successful", "success"):
        return PaymentStatus.PAID
    if normalized == "failed":
        return PaymentStatus.FAILED
    return None
