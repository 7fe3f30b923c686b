from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from loguru import logger

from smsledger.api.router import api_router
from smsledger.core.runtime import Runtime, build_runtime


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    app = FastAPI(
        title="SMS Ledger",
        version="1.0.0",
        description="Bank/UPI SMS → ledger transactions with user feedback",
    )
    app.state.runtime = runtime or build_runtime()
    app.include_router(api_router)

    @app.on_event("startup")
    async def _startup() -> None:
        rt: Runtime = app.state.runtime
        await rt.pipeline.start(rt.events)
        if rt.settings.demo_mode:
            logger.warning("Demo mode: no LEDGER_TOKEN set, deliveries are queued until a token is available")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.runtime.pipeline.stop()

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        rt: Runtime = request.app.state.runtime
        return {
            "ok": True,
            "service": "smsledger",
            "authenticated": rt.session.current_token() is not None,
            "pending_sync": len(rt.pending),
            "pending_prompts": len(rt.coordinator.pending()),
        }

    return app


app = create_app()
