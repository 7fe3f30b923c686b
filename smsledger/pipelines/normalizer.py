from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from smsledger.config import settings
from smsledger.models.extraction import ExtractionResult, PaymentMethod
from smsledger.models.transaction import DEFAULT_CATEGORY, Transaction


UNKNOWN_NAME = "Unknown Purchase"


@dataclass(frozen=True)
class MessageContext:
    received_at: datetime
    source_address: str = ""


def normalize(
    result: ExtractionResult,
    context: MessageContext,
    raw_text: str = "",
    currency: Optional[str] = None,
) -> Optional[Transaction]:
    """
    Map a classification result onto the canonical Transaction.
    Returns None for noise. occurred_at is the receipt time: SMS bodies
    rarely carry a reliable absolute timestamp.
    """
    if not result.is_transaction:
        return None

    direction = result.direction if result.direction != "unknown" else "debit"
    sender = context.source_address or "unknown sender"
    return Transaction(
        name=result.vendor or UNKNOWN_NAME,
        amount=result.amount if result.amount is not None else Decimal("0"),
        currency=currency or settings.DEFAULT_CURRENCY,
        direction=direction,
        category=DEFAULT_CATEGORY,
        vendor=result.vendor,
        payment_method=result.payment_method,
        reference_id=result.reference_id,
        note=f"Auto-detected from SMS ({sender})",
        raw_text=raw_text,
        occurred_at=context.received_at,
        source="sms",
        is_auto=True,
        confidence=result.confidence,
    )


def manual_transaction(
    amount: Decimal,
    direction: str,
    occurred_at: datetime,
    name: str = UNKNOWN_NAME,
    category: str = DEFAULT_CATEGORY,
    payment_method: Optional[PaymentMethod] = None,
    reference_id: Optional[str] = None,
    note: str = "",
    currency: Optional[str] = None,
) -> Transaction:
    """Direct user entry: no confidence, never auto."""
    return Transaction(
        name=name,
        amount=amount,
        currency=currency or settings.DEFAULT_CURRENCY,
        direction=direction,
        category=category,
        vendor=name if name != UNKNOWN_NAME else None,
        payment_method=payment_method,
        reference_id=reference_id,
        note=note,
        occurred_at=occurred_at,
        source="manual",
        is_auto=False,
    )
