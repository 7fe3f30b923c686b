"""
Pending-sync queue for transactions the ledger did not accept
(no token, network down, 5xx). Redis-backed with in-memory fallback.
"""
from __future__ import annotations

import json
import time
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from smsledger.config import settings
from smsledger.models.transaction import Transaction


_KEY = "smsledger:pending_sync"


class PendingQueue:
    def __init__(self, redis_url: Optional[str] = None, use_redis: bool = True) -> None:
        self._redis_url = redis_url or settings.REDIS_URL
        self._use_redis = use_redis
        self._redis_client = None
        self._mem: List[Dict[str, Any]] = []

    def _get_redis(self):
        """Lazy-init Redis client."""
        if not self._use_redis or self._redis_client is False:
            return None
        if self._redis_client is not None:
            return self._redis_client
        try:
            import redis
            client = redis.Redis.from_url(self._redis_url, decode_responses=True)
            client.ping()
            self._redis_client = client
            logger.info("Pending queue → Redis")
            return client
        except Exception:
            logger.info("Pending queue → in-memory (Redis unavailable)")
            self._redis_client = False          # sentinel: don't retry
            return None

    def _load(self) -> List[Dict[str, Any]]:
        r = self._get_redis()
        if r:
            raw = r.get(_KEY)
            return json.loads(raw) if raw else []
        return list(self._mem)

    def _save(self, queue: List[Dict[str, Any]]) -> None:
        r = self._get_redis()
        if r:
            r.set(_KEY, json.dumps(queue))
        else:
            self._mem = list(queue)

    def add(self, transaction: Transaction, idempotency_key: Optional[str] = None) -> bool:
        """Returns False when a transaction with the same reference id is already queued."""
        queue = self._load()
        ref = transaction.reference_id
        if ref and any(q["transaction"].get("reference_id") == ref for q in queue):
            logger.info("Skipping duplicate pending transaction ref={}", ref)
            return False
        queue.append(
            {
                "transaction": transaction.model_dump(mode="json"),
                "idempotency_key": idempotency_key,
                "queued_at": time.time_ns(),
            }
        )
        self._save(queue)
        logger.info("Added to pending queue total={}", len(queue))
        return True

    def items(self) -> List[Dict[str, Any]]:
        return self._load()

    def remove(self, queued_ats: Iterable[int]) -> None:
        done = set(queued_ats)
        self._save([q for q in self._load() if q["queued_at"] not in done])

    def clear(self) -> None:
        self._save([])

    def __len__(self) -> int:
        return len(self._load())
