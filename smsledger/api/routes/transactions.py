from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from smsledger.api.deps import delivery_http_error, get_runtime
from smsledger.core.runtime import Runtime
from smsledger.core.summary import summarize
from smsledger.errors import DeliveryError
from smsledger.models.extraction import PaymentMethod
from smsledger.models.transaction import CATEGORIES, DEFAULT_CATEGORY
from smsledger.pipelines.normalizer import UNKNOWN_NAME, manual_transaction

router = APIRouter(prefix="/transactions", tags=["transactions"])


class ManualEntry(BaseModel):
    amount: Decimal = Field(ge=0)
    direction: Literal["credit", "debit"] = "debit"
    name: str = UNKNOWN_NAME
    category: str = DEFAULT_CATEGORY
    payment_method: Optional[PaymentMethod] = None
    reference_id: Optional[str] = None
    note: str = ""
    occurred_at: Optional[datetime] = None


@router.get("/summary")
async def transactions_summary(rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    try:
        rows = await rt.client.list_transactions(rt.session)
    except DeliveryError as e:
        raise delivery_http_error(e)
    return summarize(rows)


@router.post("/manual", status_code=201)
async def create_manual(entry: ManualEntry, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    if entry.category not in CATEGORIES:
        raise HTTPException(status_code=422, detail=f"Unknown category: {entry.category}")
    txn = manual_transaction(
        amount=entry.amount,
        direction=entry.direction,
        occurred_at=entry.occurred_at or datetime.now(timezone.utc),
        name=entry.name,
        category=entry.category,
        payment_method=entry.payment_method,
        reference_id=entry.reference_id,
        note=entry.note,
    )
    try:
        ledger_id = await rt.client.submit(txn, rt.session)
    except DeliveryError as e:
        raise delivery_http_error(e)
    return {"id": ledger_id, "transaction": txn.model_copy(update={"id": ledger_id}).model_dump(mode="json")}


@router.post("/sync")
async def sync_pending(rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    synced = await rt.pipeline.flush_pending()
    return {"synced": synced, "remaining": len(rt.pending)}
