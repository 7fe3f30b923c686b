from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from smsledger.models.extraction import PaymentMethod


CATEGORIES: List[str] = [
    "Food",
    "Travel",
    "Shopping",
    "Bills",
    "Entertainment",
    "Health",
    "Transfer",
    "Income",
    "Other",
]

DEFAULT_CATEGORY = "Other"

TransactionSource = Literal["sms", "manual"]


class Transaction(BaseModel):
    id: Optional[str] = None  # assigned by the ledger
    name: str = "Unknown Purchase"
    amount: Decimal = Field(ge=0)
    currency: str = "INR"
    direction: Literal["credit", "debit"]
    category: str = DEFAULT_CATEGORY
    vendor: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference_id: Optional[str] = None
    note: str = ""
    raw_text: str = ""
    occurred_at: datetime
    source: TransactionSource = "sms"
    is_auto: bool = True
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    satisfaction_rating: Optional[int] = Field(default=None, ge=1, le=5)

    def to_ledger_payload(self) -> Dict[str, Any]:
        """Body for POST /transactions."""
        return {
            "name": self.name,
            "amount": float(self.amount),
            "category": self.category,
            "note": self.note,
            "payment_method": self.payment_method,
            "reference_id": self.reference_id,
            "is_auto": self.is_auto,
            "transaction_date": self.occurred_at.isoformat(),
            "source": self.source,
            "type": self.direction,
            "currency": self.currency,
        }
