"""
SMS → ledger ingestion loop.

Event callbacks only enqueue. One consumer task takes messages in arrival
order (so per-sender order is kept) and runs filter → classify →
normalize. Each delivery then runs in its own task, so a slow ledger call
for message N never holds up classification of message N+1.
"""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Literal, Optional, Set

from loguru import logger

from smsledger.config import settings
from smsledger.core.dedup import RecentBodyGuard
from smsledger.core.feedback_coordinator import FeedbackCoordinator
from smsledger.core.pending_queue import PendingQueue
from smsledger.errors import DeliveryError
from smsledger.models.raw_message import RawMessage
from smsledger.models.transaction import Transaction
from smsledger.pipelines.classifier import classify
from smsledger.pipelines.normalizer import MessageContext, normalize
from smsledger.pipelines.sender_filter import SenderFilter
from smsledger.services.event_source import InProcessEventSource
from smsledger.services.ledger_client import LedgerClient
from smsledger.services.session import SessionProvider


Status = Literal["rejected_sender", "duplicate", "noise", "delivered", "queued", "failed"]


@dataclass
class ProcessOutcome:
    status: Status
    transaction: Optional[Transaction] = None
    error: Optional[str] = None


class IngestionPipeline:
    def __init__(
        self,
        sender_filter: SenderFilter,
        client: LedgerClient,
        coordinator: FeedbackCoordinator,
        session: SessionProvider,
        pending: Optional[PendingQueue] = None,
        dedup: Optional[RecentBodyGuard] = None,
        queue_size: Optional[int] = None,
    ) -> None:
        self.sender_filter = sender_filter
        self.client = client
        self.coordinator = coordinator
        self.session = session
        self.pending = pending
        self.dedup = dedup
        self._queue_size = queue_size or settings.INGEST_QUEUE_SIZE
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._deliveries: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []
        self.outcomes: Deque[ProcessOutcome] = deque(maxlen=500)

    # ── lifecycle ───────────────────────────────────────
    async def start(self, source: InProcessEventSource) -> None:
        if self._consumer is not None:
            return
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._consumer = asyncio.create_task(self._consume())
        self._unsubscribers = [
            source.subscribe_messages(self.on_message),
            source.subscribe_actions(self.on_action),
        ]
        logger.info("Ingestion pipeline started queue_size={}", self._queue_size)

    async def stop(self) -> None:
        """
        Stop receiving events. Messages already queued are still processed
        and in-flight deliveries run to completion.
        """
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._queue is not None and self._consumer is not None:
            await self._queue.join()
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None
        self._queue = None
        await self.drain()
        logger.info("Ingestion pipeline stopped")

    async def drain(self) -> None:
        """Wait for every delivery task started so far."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # ── event callbacks ─────────────────────────────────
    def on_message(self, message: RawMessage) -> None:
        if self._queue is None:
            logger.warning("SMS dropped: pipeline not running sender={}", message.source_address)
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("SMS dropped: ingest queue full sender={}", message.source_address)

    def on_action(self, action_id: Optional[str], transaction_id: str) -> None:
        self._track(asyncio.create_task(self._handle_action(action_id, transaction_id)))

    # ── processing ──────────────────────────────────────
    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            message = await self._queue.get()
            try:
                transaction = self.prepare(message)
                if transaction is not None:
                    self._track(asyncio.create_task(self.deliver(transaction, message)))
            except Exception:
                logger.exception("SMS processing failed sender={}", message.source_address)
            finally:
                self._queue.task_done()

    def prepare(self, message: RawMessage) -> Optional[Transaction]:
        """Filter, classify and normalize one message. Pure apart from logging."""
        if not self.sender_filter.accept(message.source_address):
            logger.debug("Sender not accepted sender={}", message.source_address)
            self.outcomes.append(ProcessOutcome(status="rejected_sender"))
            return None
        if self.dedup is not None and self.dedup.is_duplicate(message.body):
            logger.info("Duplicate SMS event skipped sender={}", message.source_address)
            self.outcomes.append(ProcessOutcome(status="duplicate"))
            return None

        result = classify(message.body)
        transaction = normalize(
            result,
            MessageContext(received_at=message.received_at, source_address=message.source_address),
            raw_text=message.body,
        )
        if transaction is None:
            logger.debug("Not a transaction sender={} body={!r}", message.source_address, message.body[:40])
            self.outcomes.append(ProcessOutcome(status="noise"))
            return None
        logger.info(
            "Transaction detected sender={} amount={} direction={} confidence={}",
            message.source_address, transaction.amount, transaction.direction, transaction.confidence,
        )
        return transaction

    async def deliver(self, transaction: Transaction, message: RawMessage) -> ProcessOutcome:
        key = message.idempotency_key()
        try:
            ledger_id = await self.client.submit(transaction, self.session, idempotency_key=key)
        except DeliveryError as e:
            logger.warning("Delivery failed sender={} err={}: {}", message.source_address, type(e).__name__, str(e))
            status: Status = "failed"
            if self.pending is not None:
                self.pending.add(transaction, idempotency_key=key)
                status = "queued"
            outcome = ProcessOutcome(status=status, transaction=transaction, error=type(e).__name__)
            self.outcomes.append(outcome)
            return outcome

        delivered = transaction.model_copy(update={"id": ledger_id})
        self.coordinator.maybe_prompt(delivered)
        outcome = ProcessOutcome(status="delivered", transaction=delivered)
        self.outcomes.append(outcome)
        return outcome

    async def process(self, message: RawMessage) -> ProcessOutcome:
        """Run one message end-to-end, bypassing the queue."""
        transaction = self.prepare(message)
        if transaction is None:
            return self.outcomes[-1]
        return await self.deliver(transaction, message)

    async def flush_pending(self) -> int:
        """Re-submit queued transactions. Returns how many the ledger accepted."""
        if self.pending is None:
            return 0
        synced = []
        for item in self.pending.items():
            transaction = Transaction.model_validate(item["transaction"])
            try:
                ledger_id = await self.client.submit(
                    transaction, self.session, idempotency_key=item.get("idempotency_key")
                )
            except DeliveryError as e:
                logger.warning("Pending sync failed err={}: {}", type(e).__name__, str(e))
                continue
            synced.append(item["queued_at"])
            self.coordinator.maybe_prompt(transaction.model_copy(update={"id": ledger_id}))
        self.pending.remove(synced)
        logger.info("Pending sync done synced={} remaining={}", len(synced), len(self.pending))
        return len(synced)

    async def _handle_action(self, action_id: Optional[str], transaction_id: str) -> None:
        try:
            await self.coordinator.handle_action(action_id, transaction_id, self.session)
        except DeliveryError as e:
            logger.warning("Notification action not saved txn={} err={}", transaction_id, str(e))

    def _track(self, task: asyncio.Task) -> None:
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
