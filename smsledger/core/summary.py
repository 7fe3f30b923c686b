from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional


def _amount(txn: Dict[str, Any]) -> Decimal:
    try:
        return Decimal(str(txn.get("amount") or 0))
    except ArithmeticError:
        return Decimal("0")


def _when(txn: Dict[str, Any]) -> Optional[datetime]:
    raw = txn.get("transaction_date") or txn.get("occurred_at")
    if isinstance(raw, datetime):
        return raw
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def summarize(transactions: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Debit/credit totals over ledger rows (dicts as returned by GET /transactions).
    Returns: {total_transactions, total_debits, total_credits, debit_amount,
              credit_amount, net_amount, senders, merchants, date_range}
    """
    total = 0
    debits = credits = 0
    debit_amount = credit_amount = Decimal("0")
    senders: List[str] = []
    merchants: List[str] = []
    first: Optional[datetime] = None
    last: Optional[datetime] = None

    for txn in transactions:
        total += 1
        kind = str(txn.get("type") or txn.get("direction") or "").lower()
        if kind == "debit":
            debits += 1
            debit_amount += _amount(txn)
        elif kind == "credit":
            credits += 1
            credit_amount += _amount(txn)

        sender = txn.get("sender") or txn.get("source_address")
        if sender and sender not in senders:
            senders.append(sender)
        merchant = txn.get("vendor") or txn.get("name")
        if merchant and merchant not in merchants:
            merchants.append(merchant)

        ts = _when(txn)
        if ts is not None:
            first = ts if first is None or ts < first else first
            last = ts if last is None or ts > last else last

    return {
        "total_transactions": total,
        "total_debits": debits,
        "total_credits": credits,
        "debit_amount": float(debit_amount),
        "credit_amount": float(credit_amount),
        "net_amount": float(credit_amount - debit_amount),
        "senders": senders,
        "merchants": merchants,
        "date_range": {
            "from": first.isoformat() if first else None,
            "to": last.isoformat() if last else None,
        },
    }
