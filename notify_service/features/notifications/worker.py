"""Background delivery worker for the notification outbox.

Each pass:
1. Releases PROCESSING entries whose lease expired
2. Atomically claims due entries (PENDING/FAILED -> PROCESSING, attempts + 1)
3. Renews the lease on each entry and dispatches it to its channel adapter
4. Records DELIVERED or FAILED with exponential backoff, one commit per entry

Multiple workers may run against the same outbox. The claim guarantees an
entry is held by at most one of them per attempt; outcomes are only recorded
by the worker still holding the claim.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.channels import DeliveryResult, build_dispatcher
from notify_service.features.notifications.exceptions import DeliveryContractError
from notify_service.features.notifications.metrics import (
    delivery_attempts_total,
    delivery_duration_seconds,
    delivery_exhausted_total,
    outbox_leases_expired_total,
    outbox_leases_lost_total,
    worker_batch_size,
)
from notify_service.features.notifications.repository import (
    OutboxRepository,
    get_outbox_repository,
)
from notify_service.infra.database import get_async_session
from notify_service.infra.logging import get_logger, remove_from_log_context, set_log_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.channels import ChannelDispatcher
    from notify_service.features.notifications.models import NotificationOutbox

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
    DispatcherFactory = Callable[[AsyncSession], ChannelDispatcher]

logger = get_logger(__name__)


class DeliveryWorker:
    """Poll the outbox and deliver claimed entries.

    Attributes:
        settings: Batch size, polling, retry and lease configuration
    """

    def __init__(
        self,
        settings: NotificationSettings | None = None,
        *,
        session_factory: SessionFactory | None = None,
        dispatcher_factory: DispatcherFactory | None = None,
        repository: OutboxRepository | None = None,
    ) -> None:
        self.settings = settings or get_notification_settings()
        self._session_factory = session_factory or get_async_session
        self._dispatcher_factory = dispatcher_factory or build_dispatcher
        self._repository = repository or get_outbox_repository()

        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def worker_id(self) -> str:
        return self.settings.worker_id

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start polling in a background task."""
        if self._running:
            logger.warning("Delivery worker already running")
            return
        if not self.settings.enabled:
            logger.info("Notification delivery disabled, worker not started")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Delivery worker started",
            extra={
                "worker_id": self.worker_id,
                "batch_size": self.settings.batch_size,
                "poll_interval": self.settings.poll_interval_seconds,
                "max_attempts": self.settings.max_attempts,
            },
        )

    async def stop(self) -> None:
        """Stop gracefully, letting the current batch finish."""
        if not self._running:
            return

        self._running = False

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=30.0)
            except TimeoutError:
                logger.warning("Delivery worker shutdown timed out, cancelling")
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None

        logger.info("Delivery worker stopped", extra={"worker_id": self.worker_id})

    async def run_forever(self) -> None:
        """Run the poll loop in the current task until cancelled."""
        self._running = True
        try:
            await self._run_loop()
        finally:
            self._running = False

    async def _run_loop(self) -> None:
        set_log_context(worker_id=self.worker_id)
        while self._running:
            try:
                processed = await self.process_batch()

                if processed == 0:
                    await asyncio.sleep(self.settings.poll_interval_seconds)
                else:
                    # More entries may be due; yield and continue
                    await asyncio.sleep(0)

            except asyncio.CancelledError:
                logger.info("Delivery worker loop cancelled")
                break
            except DeliveryContractError:
                logger.exception("Channel adapter contract violated during delivery")
            except Exception:
                logger.exception("Error in delivery worker loop")
                await asyncio.sleep(self.settings.poll_interval_seconds * 2)

    async def process_batch(self) -> int:
        """Run one pass over due entries.

        Returns:
            Number of entries claimed and attempted.

        Raises:
            DeliveryContractError: After the whole batch has been processed,
                if an adapter reported a contract violation.
        """
        async with self._session_factory() as session:
            released = await self._repository.release_expired_leases(
                session, timeout_seconds=self.settings.processing_timeout_seconds
            )
            entries = await self._repository.claim_due(
                session,
                batch_size=self.settings.batch_size,
                worker_id=self.worker_id,
            )
            await session.commit()
            # Detached entries stay readable after a per-entry rollback
            session.expunge_all()

            if released:
                outbox_leases_expired_total.inc(released)
                logger.warning(
                    "Released outbox entries with expired leases",
                    extra={"released": released, "operation": "worker.release_stale"},
                )
            worker_batch_size.observe(len(entries))

            if not entries:
                return 0

            logger.debug(
                "Processing outbox batch",
                extra={"batch_size": len(entries), "operation": "worker.process_batch"},
            )

            dispatcher = self._dispatcher_factory(session)
            contract_errors: list[DeliveryContractError] = []
            delivered = 0
            for entry in entries:
                try:
                    if await self._process_entry(session, dispatcher, entry):
                        delivered += 1
                except DeliveryContractError as e:
                    contract_errors.append(e)

        logger.info(
            "Outbox batch processed",
            extra={
                "claimed": len(entries),
                "delivered": delivered,
                "operation": "worker.process_batch",
            },
        )
        if contract_errors:
            raise contract_errors[0]
        return len(entries)

    async def _process_entry(
        self,
        session: AsyncSession,
        dispatcher: ChannelDispatcher,
        entry: NotificationOutbox,
    ) -> bool:
        """Deliver one claimed entry and commit its outcome.

        The lease is renewed before dispatch; an entry whose claim was lost
        meanwhile is skipped. Returns True when the entry was delivered.
        """
        entry_id = entry.id
        channel = entry.channel
        attempts = entry.attempts
        max_attempts = entry.max_attempts
        claim = {"worker_id": self.worker_id, "attempts": attempts}
        set_log_context(outbox_id=str(entry_id), channel=channel, event_type=entry.event_type)

        try:
            renewed = await self._repository.renew_lease(session, entry_id, **claim)
            await session.commit()
            if not renewed:
                outbox_leases_lost_total.labels(channel=channel).inc()
                logger.warning(
                    "Outbox lease lost before delivery, skipping entry",
                    extra={"attempts": attempts, "operation": "worker.deliver"},
                )
                return False

            start = time.perf_counter()
            contract_error: DeliveryContractError | None = None
            try:
                result = await dispatcher.dispatch(entry)
            except DeliveryContractError as e:
                await session.rollback()
                logger.exception(
                    "In-app delivery invoked with invalid arguments",
                    extra={"operation": "worker.deliver"},
                )
                contract_error = e
                result = DeliveryResult.failed(str(e), "contract")
            except Exception as e:
                await session.rollback()
                logger.exception(
                    "Unexpected error delivering outbox entry",
                    extra={"operation": "worker.deliver"},
                )
                result = DeliveryResult.failed(f"{type(e).__name__}: {e}", "exception")
            finally:
                delivery_duration_seconds.labels(channel=channel).observe(time.perf_counter() - start)

            if result.success:
                delivered = await self._repository.mark_delivered(session, entry_id, **claim)
                await session.commit()
                if not delivered:
                    self._outcome_discarded(channel, attempts)
                    return False
                delivery_attempts_total.labels(channel=channel, outcome="delivered").inc()
                logger.info(
                    "Notification delivered",
                    extra={"attempts": attempts, "operation": "worker.deliver"},
                )
                return True

            error = result.error_message or "delivery failed"
            next_attempt_at = await self._repository.mark_failed(
                session,
                entry_id,
                **claim,
                error=error,
                backoff_base_seconds=self.settings.backoff_base_seconds,
                backoff_max_seconds=self.settings.backoff_max_seconds,
            )
            await session.commit()
            if next_attempt_at is None:
                self._outcome_discarded(channel, attempts)
            else:
                outcome = "error" if result.error_category in ("exception", "contract") else "failed"
                delivery_attempts_total.labels(channel=channel, outcome=outcome).inc()
                self._log_failure(channel, result, error, attempts, max_attempts, next_attempt_at)
        finally:
            remove_from_log_context("outbox_id", "channel", "event_type")

        if contract_error is not None:
            raise contract_error
        return False

    def _outcome_discarded(self, channel: str, attempts: int) -> None:
        outbox_leases_lost_total.labels(channel=channel).inc()
        logger.warning(
            "Outbox lease lost during delivery, outcome not recorded",
            extra={"attempts": attempts, "operation": "worker.deliver"},
        )

    def _log_failure(
        self,
        channel: str,
        result: DeliveryResult,
        error: str,
        attempts: int,
        max_attempts: int,
        next_attempt_at: datetime,
    ) -> None:
        extra = {
            "attempts": attempts,
            "error": error,
            "error_category": result.error_category,
            "operation": "worker.deliver",
        }
        if attempts >= max_attempts:
            delivery_exhausted_total.labels(channel=channel).inc()
            logger.error("Notification delivery exhausted", extra=extra)
        else:
            logger.warning(
                "Notification delivery failed, scheduled for retry",
                extra={**extra, "next_attempt_at": next_attempt_at.isoformat()},
            )


__all__ = ["DeliveryWorker"]
