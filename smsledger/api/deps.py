from fastapi import HTTPException, Request

from smsledger.core.runtime import Runtime
from smsledger.errors import DeliveryError, DeliveryFailed, Unauthenticated


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def delivery_http_error(e: DeliveryError) -> HTTPException:
    if isinstance(e, Unauthenticated):
        return HTTPException(status_code=401, detail=f"Ledger authentication failed: {e}")
    if isinstance(e, DeliveryFailed):
        return HTTPException(status_code=502, detail=f"Ledger unavailable: {e}")
    return HTTPException(status_code=502, detail=str(e))
