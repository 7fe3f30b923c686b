"""
Deterministic field extraction for Indian bank / UPI SMS.

Every detector is a pure function of the message body and never raises:
a field that cannot be found (or parsed) is simply absent.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from smsledger.models.extraction import Direction, ExtractionResult, PaymentMethod


# "rs" / "inr" must not be the tail or head of a longer word ("hours", "Mrs")
_MARKER = r"(?:(?<![a-z])(?:rs|inr)(?![a-z])\.?|₹)"
_NUMBER = r"([0-9][0-9,]*(?:\.[0-9]+)?)"

_AMOUNT_RE = re.compile(_MARKER + r"\s*" + _NUMBER, re.IGNORECASE)
_AMOUNT_SUFFIX_RE = re.compile(_NUMBER + r"\s*" + _MARKER, re.IGNORECASE)

_CREDIT_WORDS = ["credited", "received", "deposited", "added"]
_DEBIT_WORDS = ["debited", "spent", "withdrawn", "deducted", "used", "paid"]

_CREDIT_RE = re.compile(r"\b(?:" + "|".join(_CREDIT_WORDS) + r")\b", re.IGNORECASE)
_DEBIT_RE = re.compile(r"\b(?:" + "|".join(_DEBIT_WORDS) + r")\b", re.IGNORECASE)

# preference order: "at" beats "to"; "from" only when neither is usable
_VENDOR_MARKERS = ["at", "to", "from"]
_VENDOR_MAX_WORDS = 5
_VENDOR_STOP_RE = re.compile(
    r"(?:^|\s+)(?:on|via|upi|using|for|from|to|at|a/c|acct|avl|bal|txn|by|dated|with|is|has|was|ref\w*|utr\w*)\b"
    r"|[.,;:()\n]",
    re.IGNORECASE,
)

_UPI_RE = re.compile(r"\bupi\b", re.IGNORECASE)

_REF_RE = re.compile(
    r"\bref(?:erence)?(?:\s*(?:no|number|id))?\s*[.:#\-]?\s*([A-Za-z0-9]*\d[A-Za-z0-9]*)",
    re.IGNORECASE,
)
_UTR_RE = re.compile(r"\butr(?:\s*no)?\s*[.:#\-]?\s*([A-Za-z0-9]*\d[A-Za-z0-9]*)", re.IGNORECASE)


def _parse_amount(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def extract_amount(body: str) -> Optional[Decimal]:
    m = _AMOUNT_RE.search(body) or _AMOUNT_SUFFIX_RE.search(body)
    if not m:
        return None
    return _parse_amount(m.group(1))


def extract_direction(body: str) -> Direction:
    # credit wins when both keyword sets appear
    if _CREDIT_RE.search(body):
        return "credit"
    if _DEBIT_RE.search(body):
        return "debit"
    return "unknown"


def extract_vendor(body: str) -> Optional[str]:
    for marker in _VENDOR_MARKERS:
        m = re.search(rf"\b{marker}\s+(?=[A-Za-z])", body, re.IGNORECASE)
        if not m:
            continue
        rest = body[m.end():]
        cut = _VENDOR_STOP_RE.search(rest)
        name = rest[: cut.start()] if cut else rest
        words = name.split()[:_VENDOR_MAX_WORDS]
        if words:
            return " ".join(words)
    return None


def extract_payment_method(body: str) -> Optional[PaymentMethod]:
    if _UPI_RE.search(body):
        return "UPI"
    return None


def extract_reference_id(body: str) -> Optional[str]:
    m = _REF_RE.search(body) or _UTR_RE.search(body)
    return m.group(1) if m else None


def extract(body: str) -> ExtractionResult:
    """
    Run every field detector once over the body.
    Confidence is left at 0.0 here; see classifier.classify.
    """
    text = body or ""
    amount = extract_amount(text)
    direction = extract_direction(text)
    return ExtractionResult(
        amount=amount,
        direction=direction,
        vendor=extract_vendor(text),
        payment_method=extract_payment_method(text),
        reference_id=extract_reference_id(text),
        is_transaction=amount is not None or direction != "unknown",
    )
