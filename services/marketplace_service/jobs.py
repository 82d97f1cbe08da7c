"""Background job protocol for the marketplace worker.

Jobs travel through arq as a JSON envelope ``{"job": {...}, "policy": {...}}``.
One arq function (``run_marketplace_job``) receives every envelope and hands
it to :class:`JobDispatcher`, which picks the handler by ``job.kind`` and
applies the retry policy carried in the envelope.
"""

import json
import uuid
from typing import Annotated, Awaitable, Callable, Literal, Optional, Protocol, Union

from arq import Retry
from arq.connections import ArqRedis
from libs.common.arq_config import create_queue_pool
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from pydantic import BaseModel, Field, ValidationError
from services.marketplace_service.models import PaymentStatus

logger = get_logger(__name__)

JOB_FUNCTION = "run_marketplace_job"
DEAD_LETTER_KEY = "queue:marketplace:failed"


class RetryPolicy(BaseModel):
    attempts: int = Field(3, ge=1)
    initial_delay_ms: int = Field(1000, ge=0)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            attempts=settings.ORDER_JOB_ATTEMPTS,
            initial_delay_ms=settings.ORDER_JOB_INITIAL_DELAY_MS,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        return self.initial_delay_ms * 2 ** (attempt - 1) / 1000


class ProcessOrderJob(BaseModel):
    kind: Literal["process-order"] = "process-order"
    order_id: uuid.UUID
    user_id: str


class ReconcilePaymentJob(BaseModel):
    kind: Literal["reconcile-payment"] = "reconcile-payment"
    reference: str
    outcome: PaymentStatus


Job = Annotated[
    Union[ProcessOrderJob, ReconcilePaymentJob], Field(discriminator="kind")
]


class JobEnvelope(BaseModel):
    job: Job
    policy: RetryPolicy = Field(default_factory=RetryPolicy)


class JobQueue(Protocol):
    async def enqueue(self, job: Job, policy: Optional[RetryPolicy] = None) -> None: ...


class ArqJobQueue:
    """JobQueue that enqueues envelopes onto the arq Redis queue."""

    def __init__(self, pool: Optional[ArqRedis] = None):
        self._pool = pool

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_queue_pool()
        return self._pool

    async def enqueue(self, job: Job, policy: Optional[RetryPolicy] = None) -> None:
        envelope = JobEnvelope(job=job, policy=policy or RetryPolicy.from_settings())
        pool = await self._get_pool()
        await pool.enqueue_job(JOB_FUNCTION, envelope.model_dump(mode="json"))
        logger.info(f"Enqueued {job.kind} job")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None


class DeadLetterSink(Protocol):
    async def push(self, entry: str) -> None: ...


class RedisDeadLetters:
    """Appends exhausted jobs to a Redis list for manual inspection."""

    def __init__(self, redis, key: str = DEAD_LETTER_KEY):
        self.redis = redis
        self.key = key

    async def push(self, entry: str) -> None:
        await self.redis.rpush(self.key, entry)


JobHandler = Callable[[BaseModel], Awaitable[None]]


class JobDispatcher:
    def __init__(
        self,
        handlers: dict[str, JobHandler],
        dead_letters: Optional[DeadLetterSink] = None,
    ):
        self.handlers = handlers
        self.dead_letters = dead_letters

    async def run(self, payload: dict, attempt: int = 1) -> None:
        """Run one delivery of ``payload``.

        Raises ``arq.Retry`` while attempts remain; once they are exhausted the
        payload is dead-lettered and the handler's exception propagates.
        """
        try:
            envelope = JobEnvelope.model_validate(payload)
        except ValidationError as exc:
            logger.error(f"Dropping malformed job payload: {exc}")
            await self._dead_letter(payload, exc, attempt)
            return

        job = envelope.job
        handler = self.handlers.get(job.kind)
        if handler is None:
            logger.error(f"No handler registered for job kind {job.kind}")
            await self._dead_letter(payload, LookupError(job.kind), attempt)
            return

        try:
            await handler(job)
        except Exception as exc:
            if attempt < envelope.policy.attempts:
                delay = envelope.policy.delay_for(attempt)
                logger.warning(
                    f"Job {job.kind} failed on attempt {attempt}/"
                    f"{envelope.policy.attempts}, retrying in {delay}s: {exc}"
                )
                raise Retry(defer=delay) from exc
            logger.error(
                f"Job {job.kind} failed after {attempt} attempts: {exc}",
                extra={"extra_fields": {"job": envelope.model_dump(mode="json")}},
            )
            await self._dead_letter(payload, exc, attempt)
            raise

    async def _dead_letter(self, payload: dict, exc: Exception, attempt: int) -> None:
        if self.dead_letters is None:
            return
        entry = json.dumps(
            {
                "payload": payload,
                "error": str(exc),
                "attempts": attempt,
                "failed_at": utc_now().isoformat(),
            },
            default=str,
        )
        try:
            await self.dead_letters.push(entry)
        except Exception as e:
            logger.warning(f"Failed to dead-letter job: {e}")
