from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from smsledger.api.deps import delivery_http_error, get_runtime
from smsledger.core.runtime import Runtime
from smsledger.errors import DeliveryError, InvalidCategory, UnknownPrompt
from smsledger.models.feedback import FeedbackPrompt, OpenAppAction, parse_action

router = APIRouter(prefix="", tags=["feedback"])


class CategoryChoice(BaseModel):
    category: str


class ActionResponse(BaseModel):
    action_id: Optional[str] = None
    transaction_id: str


def _prompt_view(prompt: FeedbackPrompt) -> Dict[str, Any]:
    data = prompt.model_dump(mode="json")
    data["outcome"] = prompt.outcome
    return data


@router.get("/feedback/prompts")
async def list_prompts(rt: Runtime = Depends(get_runtime)) -> List[Dict[str, Any]]:
    return [_prompt_view(p) for p in rt.coordinator.pending()]


@router.get("/feedback/{transaction_id}")
async def get_prompt(transaction_id: str, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    prompt = rt.coordinator.get(transaction_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="No prompt for this transaction")
    return _prompt_view(prompt)


@router.post("/feedback/{transaction_id}/category")
async def choose_category(
    transaction_id: str, choice: CategoryChoice, rt: Runtime = Depends(get_runtime)
) -> Dict[str, Any]:
    try:
        prompt = await rt.coordinator.select_category(transaction_id, choice.category, rt.session)
    except UnknownPrompt as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidCategory as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DeliveryError as e:
        raise delivery_http_error(e)
    return _prompt_view(prompt)


@router.post("/feedback/{transaction_id}/skip")
async def skip_prompt(transaction_id: str, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    try:
        prompt = rt.coordinator.skip(transaction_id)
    except UnknownPrompt as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _prompt_view(prompt)


@router.post("/notifications/action", status_code=202)
async def notification_action(resp: ActionResponse, rt: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    """
    Notification response from the device. Button taps are applied in the
    background; anything else tells the app to open the in-app prompt.
    """
    open_app = isinstance(parse_action(resp.action_id), OpenAppAction)
    rt.events.publish_action(resp.action_id, resp.transaction_id)
    return {"accepted": True, "open_app": open_app, "transaction_id": resp.transaction_id}
