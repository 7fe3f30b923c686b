"""
Category-ask notification content + a logging notifier for when no push
channel is wired up.
"""
from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Any, Deque, Dict, List

from loguru import logger

from smsledger.models.feedback import CATEGORY_ACTIONS
from smsledger.models.transaction import Transaction


CATEGORY_NOTIFICATION_ID = "CATEGORY_ASK_CATEGORY"
CHANNEL_ID = "transactions"

# one-tap buttons shown on the notification, in display order
_BUTTONS = [
    ("CAT_FOOD", "🍕 Food & Drinks"),
    ("CAT_SHOPPING", "🏷️ Shopping"),
    ("CAT_BILLS", "⚡ Bills & Utils"),
    ("CAT_TRAVEL", "🚕 Travel & Cab"),
    ("CAT_ENTERTAINMENT", "🎬 Entertainment"),
    ("CAT_OTHER", "📦 Others"),
]


def format_inr(amount: Decimal) -> str:
    """₹1,23,456.50 style (Indian digit grouping)."""
    q = Decimal(amount).quantize(Decimal("0.01"))
    sign = "-" if q < 0 else ""
    whole, frac = f"{abs(q):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: List[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    out = f"{sign}₹{whole}"
    return out if frac == "00" else f"{out}.{frac}"


def build_category_notification(transaction: Transaction) -> Dict[str, Any]:
    if transaction.id is None:
        raise ValueError("Transaction has no ledger id yet")
    emoji = "💸" if transaction.amount > 2000 else "✨"
    verb = "received from" if transaction.direction == "credit" else "spent at"
    return {
        "title": f"{emoji} New Transaction Detected",
        "body": f"{format_inr(transaction.amount)} {verb} {transaction.name}\nTap to categorize this payment.",
        "data": {
            "transactionId": transaction.id,
            "merchantName": transaction.name,
            "amount": float(transaction.amount),
            "type": "category_ask",
        },
        "categoryIdentifier": CATEGORY_NOTIFICATION_ID,
        "channelId": CHANNEL_ID,
        "actions": [
            {"identifier": action_id, "buttonTitle": title}
            for action_id, title in _BUTTONS
            if action_id in CATEGORY_ACTIONS
        ],
    }


class LoggingNotifier:
    """Mock push channel: logs what would have been shown, keeps the last few."""

    def __init__(self, keep: int = 100) -> None:
        self.sent: Deque[Dict[str, Any]] = deque(maxlen=keep)

    def __call__(self, notification: Dict[str, Any]) -> None:
        self.sent.append(notification)
        logger.info("[MOCK] Notification → {}: {}", notification["title"], notification["body"][:80])
