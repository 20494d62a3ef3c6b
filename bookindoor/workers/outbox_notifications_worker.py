"""Polls the booking outbox and turns events into customer/owner e-mails.

Run ``python -m bookindoor.workers.outbox_notifications_worker --loop`` next to
the API. Every cycle commits on its own so one bad batch never blocks the next.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass

from bookindoor.core.config import get_settings
from bookindoor.core.database import SessionLocal
from bookindoor.modules.audit.repository import AuditRepository
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.notifications.outbox_worker import NotificationsOutboxWorker
from bookindoor.modules.notifications.repository import NotificationsRepository

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkerOptions:
    batch_size: int
    max_retries: int
    base_backoff_seconds: int
    max_backoff_seconds: int
    poll_seconds: int

    @classmethod
    def from_env(cls) -> "WorkerOptions":
        return cls(
            batch_size=int(os.getenv("OUTBOX_WORKER_BATCH_SIZE", "100")),
            max_retries=int(os.getenv("OUTBOX_WORKER_MAX_RETRIES", "5")),
            base_backoff_seconds=int(os.getenv("OUTBOX_WORKER_BASE_BACKOFF_SECONDS", "30")),
            max_backoff_seconds=int(os.getenv("OUTBOX_WORKER_MAX_BACKOFF_SECONDS", "300")),
            poll_seconds=int(os.getenv("OUTBOX_WORKER_POLL_SECONDS", "10")),
        )


async def run_cycle(options: WorkerOptions) -> dict[str, int]:
    """Process one batch of booking events inside a single transaction."""
    async with SessionLocal() as session:
        worker = NotificationsOutboxWorker(
            audit_repository=AuditRepository(session),
            notifications_repository=NotificationsRepository(session),
            booking_repository=BookingRepository(session),
            batch_size=options.batch_size,
            max_retries=options.max_retries,
            base_backoff_seconds=options.base_backoff_seconds,
            max_backoff_seconds=options.max_backoff_seconds,
            session=session,
        )
        try:
            stats = await worker.run_once()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        return stats


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch booking notification events.")
    parser.add_argument(
        "--loop",
        action="store_true",
        default=os.getenv("OUTBOX_WORKER_MODE", "once").strip().lower() == "loop",
        help="Keep polling instead of running a single cycle.",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    options = WorkerOptions.from_env()

    if not args.loop:
        stats = await run_cycle(options)
        logger.info("Booking notifications worker stats: %s", stats)
        return

    logger.info("Booking notifications worker polling every %ss", options.poll_seconds)
    while True:
        try:
            stats = await run_cycle(options)
            if stats["processed"] or stats["failed"]:
                logger.info("Booking notifications worker stats: %s", stats)
        except Exception:
            logger.exception("Booking notifications worker cycle failed")
        await asyncio.sleep(options.poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())
