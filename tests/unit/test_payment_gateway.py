"""Unit tests for the Paypack client against a mocked transport."""

import json
from decimal import Decimal

import httpx
import pytest
from services.marketplace_service.models import PaymentStatus
from services.marketplace_service.payment_gateway import (
    PaypackClient,
    PaypackError,
    outcome_for_status,
)

BASE_URL = "https://payments.example.test/api"


def _client(handler) -> PaypackClient:
    return PaypackClient(
        client_id="client-id",
        client_secret="client-secret",
        base_url=BASE_URL + "/",
        environment="development",
        transport=httpx.MockTransport(handler),
    )


class Recorder:
    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes[(request.method, request.url.path)]
        return httpx.Response(status, json=body)


AUTH = ("POST", "/api/auth/agents/authorize")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_payment_authorizes_then_posts_cashin():
    recorder = Recorder(
        {
            AUTH: (200, {"access": "token-123"}),
            ("POST", "/api/transactions/cashin"): (
                200,
                {"ref": "abc-1", "status": "PENDING", "amount": 2500},
            ),
        }
    )

    payment = await _client(recorder).create_payment(
        Decimal("2500.00"), "250781234567", "https://shop.test/payments/webhook"
    )

    assert payment.transaction_id == "abc-1"
    assert payment.status == "pending"
    assert payment.amount == Decimal("2500")
    assert payment.provider == "paypack"

    auth, cashin = recorder.requests
    assert json.loads(auth.content) == {
        "client_id": "client-id",
        "client_secret": "client-secret",
    }
    assert cashin.headers["Authorization"] == "Bearer token-123"
    assert json.loads(cashin.content) == {
        "amount": 2500.0,
        "phone": "250781234567",
        "environment": "development",
        "callbackUrl": "https://shop.test/payments/webhook",
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_rejection_raises_paypack_error():
    recorder = Recorder(
        {
            AUTH: (200, {"access_token": "token"}),
            ("POST", "/api/transactions/cashin"): (400, {"message": "Invalid phone"}),
        }
    )

    with pytest.raises(PaypackError) as exc_info:
        await _client(recorder).create_payment(Decimal("100"), "0000", "cb")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid phone"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_reference_is_an_error():
    recorder = Recorder(
        {
            AUTH: (200, {"access": "token"}),
            ("POST", "/api/transactions/cashin"): (200, {"status": "pending"}),
        }
    )

    with pytest.raises(PaypackError):
        await _client(recorder).create_payment(Decimal("100"), "250781234567", "cb")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_token_is_an_error():
    recorder = Recorder({AUTH: (200, {})})

    with pytest.raises(PaypackError):
        await _client(recorder).authenticate()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_find_transaction_maps_status_and_amount():
    recorder = Recorder(
        {
            AUTH: (200, {"access": "token"}),
            ("GET", "/api/transactions/find/abc-1"): (
                200,
                {"ref": "abc-1", "status": "successful", "amount": 2500},
            ),
        }
    )

    transaction = await _client(recorder).find_transaction("abc-1")

    assert transaction.reference == "abc-1"
    assert transaction.status == "successful"
    assert transaction.amount == Decimal("2500")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_find_unknown_transaction_returns_none():
    recorder = Recorder(
        {
            AUTH: (200, {"access": "token"}),
            ("GET", "/api/transactions/find/missing"): (404, {"message": "not found"}),
        }
    )

    assert await _client(recorder).find_transaction("missing") is None


def test_client_requires_credentials(monkeypatch):
    from libs.common.config import get_settings

    monkeypatch.setattr(get_settings(), "PAYPACK_CLIENT_ID", "")

    with pytest.raises(ValueError):
        PaypackClient(client_secret="secret")


@pytest.mark.parametrize(
    "status,expected",
    [
        ("successful", PaymentStatus.PAID),
        ("SUCCESS", PaymentStatus.PAID),
        ("failed", PaymentStatus.FAILED),
        ("pending", None),
        (None, None),
    ],
)
def test_outcome_for_status(status, expected):
    assert outcome_for_status(status) == expected
