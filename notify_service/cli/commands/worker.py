"""Delivery worker commands.

Example:bash
    # Poll the outbox until interrupted
    notify-service worker run

    # Deliver everything that is due right now, then exit
    notify-service worker drain
"""

import asyncio
import sys

import click

from notify_service.cli.utils import coro, error, header, info, success, warning
from notify_service.core.settings import get_notification_settings


@click.group(name="worker")
def worker() -> None:
    """Outbox delivery worker."""


@worker.command()
@coro
async def run() -> None:
    """Run the delivery worker until interrupted."""
    from notify_service.features.notifications.worker import DeliveryWorker
    from notify_service.infra.database import close_database, init_database

    settings = get_notification_settings()
    if not settings.enabled:
        warning("Notification delivery is disabled (NOTIFY_ENABLED=false)")
        return

    header("Delivery Worker")
    info(f"Worker id: {settings.worker_id}")
    info(f"Batch size: {settings.batch_size}, poll interval: {settings.poll_interval_seconds}s")

    try:
        await init_database()
        await DeliveryWorker(settings).run_forever()
    except asyncio.CancelledError:
        info("Worker stopped")
    finally:
        await close_database()


@worker.command()
@click.option(
    "--max-batches",
    type=int,
    default=100,
    show_default=True,
    help="Stop after this many batches even if entries remain due",
)
@coro
async def drain(max_batches: int) -> None:
    """Process due entries batch by batch until none are left."""
    from notify_service.features.notifications.exceptions import DeliveryContractError
    from notify_service.features.notifications.worker import DeliveryWorker
    from notify_service.infra.database import close_database

    settings = get_notification_settings()
    if not settings.enabled:
        warning("Notification delivery is disabled (NOTIFY_ENABLED=false)")
        return

    delivery_worker = DeliveryWorker(settings)
    total = 0
    failed_contract = False
    try:
        for _ in range(max_batches):
            try:
                processed = await delivery_worker.process_batch()
            except DeliveryContractError as e:
                error(f"Adapter contract violated: {e}")
                failed_contract = True
                continue
            if processed == 0:
                break
            total += processed
    finally:
        await close_database()

    success(f"Processed {total} outbox entries")
    if failed_contract:
        sys.exit(1)
