"""ARQ worker for marketplace background jobs.

Runs queued order/payment jobs and polls for stale pending payments.
Run with: arq services.marketplace_service.worker.WorkerSettings
"""

from arq import cron, func
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger
from libs.common.redis import close_redis
from services.marketplace_service.jobs import JOB_FUNCTION, ArqJobQueue, RedisDeadLetters

logger = get_logger(__name__)


async def startup(ctx: dict):
    from services.marketplace_service.container import build_services
    from services.marketplace_service.tasks import build_dispatcher

    configure_logging()
    services = build_services(queue=ArqJobQueue(ctx["redis"]))
    ctx["services"] = services
    ctx["dispatcher"] = build_dispatcher(services, RedisDeadLetters(ctx["redis"]))
    logger.info("Marketplace worker started")


async def shutdown(ctx: dict):
    await close_redis()


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def run_marketplace_job(ctx: dict, payload: dict):
    """Dispatch one queued job envelope."""
    await ctx["dispatcher"].run(payload, attempt=ctx.get("job_try", 1))


async def task_reconcile_pending_payments(ctx: dict):
    """Settle Paypack payments still pending after the webhook window."""
    from services.marketplace_service.tasks import reconcile_pending_payments

    logger.info("Running: reconcile_pending_payments")
    await reconcile_pending_payments(ctx["services"])


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings with cron job schedules."""

    redis_settings = get_redis_settings()

    on_startup = startup
    on_shutdown = shutdown

    # Retries are driven by the policy in each envelope; max_tries is a ceiling
    functions = [
        func(run_marketplace_job, name=JOB_FUNCTION, max_tries=10, keep_result=0),
        task_reconcile_pending_payments,
    ]

    cron_jobs = [
        # Poll pending payments every 5 minutes
        cron(
            task_reconcile_pending_payments,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
            run_at_startup=True,
        ),
    ]
