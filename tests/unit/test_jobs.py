"""Unit tests for the job envelope, retry policy and dispatcher."""

import json
import uuid

import pytest
from arq import Retry
from services.marketplace_service.jobs import (
    DEAD_LETTER_KEY,
    JOB_FUNCTION,
    ArqJobQueue,
    JobDispatcher,
    JobEnvelope,
    ProcessOrderJob,
    ReconcilePaymentJob,
    RedisDeadLetters,
    RetryPolicy,
)
from services.marketplace_service.models import OrderStatus, PaymentStatus
from services.marketplace_service.schemas import OrderItemRequest
from services.marketplace_service.tasks import build_dispatcher


class RecordingDeadLetters:
    def __init__(self):
        self.entries = []

    async def push(self, entry):
        self.entries.append(json.loads(entry))


class FakeArqPool:
    def __init__(self):
        self.calls = []

    async def enqueue_job(self, function, *args, **kwargs):
        self.calls.append((function, args, kwargs))


class FakeRedisList:
    def __init__(self):
        self.lists = {}

    async def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)


def _envelope(job, policy=None) -> dict:
    return JobEnvelope(job=job, policy=policy or RetryPolicy()).model_dump(mode="json")


def test_retry_policy_backs_off_exponentially():
    policy = RetryPolicy(attempts=3, initial_delay_ms=1000)

    assert policy.delay_for(1) == 1.0
    assert policy.delay_for(2) == 2.0
    assert policy.delay_for(3) == 4.0


def test_envelope_selects_job_by_kind():
    order_id = uuid.uuid4()
    envelope = JobEnvelope.model_validate(
        {
            "job": {"kind": "process-order", "order_id": str(order_id), "user_id": "u1"},
            "policy": {"attempts": 5, "initial_delay_ms": 200},
        }
    )
    assert isinstance(envelope.job, ProcessOrderJob)
    assert envelope.job.order_id == order_id
    assert envelope.policy.attempts == 5

    reconcile = JobEnvelope.model_validate(
        {"job": {"kind": "reconcile-payment", "reference": "pp-1", "outcome": "paid"}}
    )
    assert isinstance(reconcile.job, ReconcilePaymentJob)
    assert reconcile.job.outcome == PaymentStatus.PAID
    assert reconcile.policy == RetryPolicy()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_arq_queue_enqueues_envelope_on_single_function():
    pool = FakeArqPool()
    job = ReconcilePaymentJob(reference="pp-9", outcome=PaymentStatus.FAILED)

    await ArqJobQueue(pool).enqueue(job, RetryPolicy(attempts=2, initial_delay_ms=500))

    function, args, _ = pool.calls[0]
    assert function == JOB_FUNCTION
    assert args[0] == {
        "job": {"kind": "reconcile-payment", "reference": "pp-9", "outcome": "failed"},
        "policy": {"attempts": 2, "initial_delay_ms": 500},
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatcher_runs_matching_handler():
    seen = []

    async def handle(job):
        seen.append(job)

    dispatcher = JobDispatcher({"process-order": handle})
    job = ProcessOrderJob(order_id=uuid.uuid4(), user_id="u1")

    await dispatcher.run(_envelope(job), attempt=1)

    assert seen == [job]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatcher_retries_with_backoff_then_dead_letters():
    dead_letters = RecordingDeadLetters()

    async def always_fails(job):
        raise RuntimeError("store unavailable")

    dispatcher = JobDispatcher({"process-order": always_fails}, dead_letters)
    payload = _envelope(ProcessOrderJob(order_id=uuid.uuid4(), user_id="u1"))

    with pytest.raises(Retry) as first:
        await dispatcher.run(payload, attempt=1)
    assert first.value.defer_score == 1000

    with pytest.raises(Retry) as second:
        await dispatcher.run(payload, attempt=2)
    assert second.value.defer_score == 2000
    assert dead_letters.entries == []

    with pytest.raises(RuntimeError):
        await dispatcher.run(payload, attempt=3)

    assert len(dead_letters.entries) == 1
    entry = dead_letters.entries[0]
    assert entry["payload"] == payload
    assert entry["attempts"] == 3
    assert "store unavailable" in entry["error"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatcher_dead_letters_malformed_payload_without_retry():
    dead_letters = RecordingDeadLetters()
    dispatcher = JobDispatcher({}, dead_letters)

    await dispatcher.run({"job": {"kind": "unknown"}}, attempt=1)

    assert dead_letters.entries[0]["payload"] == {"job": {"kind": "unknown"}}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redis_dead_letters_append_to_failed_list():
    redis = FakeRedisList()

    await RedisDeadLetters(redis).push('{"error": "boom"}')

    assert redis.lists[DEAD_LETTER_KEY] == ['{"error": "boom"}']


@pytest.mark.asyncio
@pytest.mark.unit
async def test_worker_dispatcher_handles_both_job_kinds(services, db, store, gateway):
    product = db.add_product(store)
    order = await services.orders.create_order(
        "buyer-1", [OrderItemRequest(product_id=product.id, quantity=1)]
    )
    payment = await services.payments.process_payment("buyer-1", order.id, "250781234567")
    dispatcher = build_dispatcher(services)

    await dispatcher.run(
        _envelope(
            ReconcilePaymentJob(reference=payment.transaction_id, outcome=PaymentStatus.PAID)
        )
    )
    await dispatcher.run(_envelope(ProcessOrderJob(order_id=order.id, user_id="buyer-1")))

    stored = db.order(order.id)
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.status == OrderStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_run_marketplace_job_passes_job_try(services):
    from services.marketplace_service.worker import run_marketplace_job

    attempts = []

    async def handle(job):
        attempts.append(job)
        raise RuntimeError("flaky")

    ctx = {"dispatcher": JobDispatcher({"process-order": handle}), "job_try": 1}
    payload = _envelope(ProcessOrderJob(order_id=uuid.uuid4(), user_id="u1"))

    with pytest.raises(Retry):
        await run_marketplace_job(ctx, payload)

    ctx["job_try"] = 3
    with pytest.raises(RuntimeError):
        await run_marketplace_job(ctx, payload)

    assert len(attempts) == 2
