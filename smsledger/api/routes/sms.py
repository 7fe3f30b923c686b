"""
SMS adapter endpoints. The device bridge posts every received SMS here.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from smsledger.api.deps import get_runtime
from smsledger.core.runtime import Runtime
from smsledger.models.raw_message import RawMessage
from smsledger.pipelines.classifier import classify

router = APIRouter(prefix="/sms", tags=["sms"])


class IncomingSms(BaseModel):
    source_address: str = ""
    body: str = ""
    received_at: Optional[datetime] = None

    def to_raw(self) -> RawMessage:
        if self.received_at is None:
            return RawMessage(source_address=self.source_address, body=self.body)
        return RawMessage(source_address=self.source_address, body=self.body, received_at=self.received_at)


class ParseRequest(BaseModel):
    body: str = ""


@router.post("/ingest", status_code=202)
async def ingest_sms(sms: IncomingSms, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    logger.info("SMS incoming from={} chars={}", sms.source_address, len(sms.body))
    listeners = rt.events.publish_message(sms.to_raw())
    return {"accepted": listeners > 0, "listeners": listeners}


@router.post("/process")
async def process_sms(sms: IncomingSms, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    """
    Run one SMS end-to-end and report what happened (for testing a sender
    without the device bridge).
    """
    outcome = await rt.pipeline.process(sms.to_raw())
    return {
        "status": outcome.status,
        "error": outcome.error,
        "transaction": outcome.transaction.model_dump(mode="json") if outcome.transaction else None,
    }


@router.post("/parse")
async def parse_sms(req: ParseRequest) -> Dict[str, Any]:
    return classify(req.body).model_dump(mode="json")
