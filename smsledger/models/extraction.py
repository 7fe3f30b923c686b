from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


Direction = Literal["credit", "debit", "unknown"]

PaymentMethod = Literal["UPI", "Card", "Cash", "NetBanking", "Wallet", "unknown"]


class ExtractionResult(BaseModel):
    amount: Optional[Decimal] = None
    direction: Direction = "unknown"
    vendor: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference_id: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0, le=1)
    is_transaction: bool = False
