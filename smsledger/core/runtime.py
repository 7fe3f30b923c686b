from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from smsledger.config import Settings, settings as default_settings
from smsledger.core.dedup import RecentBodyGuard
from smsledger.core.feedback_coordinator import FeedbackCoordinator
from smsledger.core.pending_queue import PendingQueue
from smsledger.core.pipeline import IngestionPipeline
from smsledger.pipelines.sender_filter import SenderFilter
from smsledger.services.event_source import InProcessEventSource
from smsledger.services.ledger_client import LedgerClient
from smsledger.services.session import SessionProvider, StaticSessionProvider
from smsledger.utils.notifications import LoggingNotifier


@dataclass
class Runtime:
    settings: Settings
    events: InProcessEventSource
    session: SessionProvider
    client: LedgerClient
    notifier: LoggingNotifier
    coordinator: FeedbackCoordinator
    pending: PendingQueue
    pipeline: IngestionPipeline


def build_runtime(
    cfg: Optional[Settings] = None,
    session: Optional[SessionProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    use_redis: bool = True,
) -> Runtime:
    cfg = cfg or default_settings
    session = session or StaticSessionProvider(cfg.LEDGER_TOKEN)
    client = LedgerClient(base_url=cfg.LEDGER_BASE_URL, timeout=cfg.LEDGER_TIMEOUT_S, transport=transport)
    notifier = LoggingNotifier()
    coordinator = FeedbackCoordinator(client, notifier=notifier, threshold=cfg.FORWARD_THRESHOLD)
    pending = PendingQueue(redis_url=cfg.REDIS_URL, use_redis=use_redis)
    dedup = RecentBodyGuard(window_s=cfg.DEDUP_WINDOW_S) if cfg.DEDUP_WINDOW_S > 0 else None
    pipeline = IngestionPipeline(
        SenderFilter(cfg.SENDER_PATTERNS),
        client,
        coordinator,
        session,
        pending=pending,
        dedup=dedup,
        queue_size=cfg.INGEST_QUEUE_SIZE,
    )
    return Runtime(
        settings=cfg,
        events=InProcessEventSource(),
        session=session,
        client=client,
        notifier=notifier,
        coordinator=coordinator,
        pending=pending,
        pipeline=pipeline,
    )
