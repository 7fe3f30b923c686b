from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from smsledger.config import settings
from smsledger.errors import AuthError, DeliveryFailed, Unauthenticated
from smsledger.models.transaction import Transaction
from smsledger.services.session import SessionProvider


PATCHABLE_FIELDS = {"category", "satisfaction_rating"}


def _extract_id(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    for obj in (data.get("transaction"), data):
        if isinstance(obj, dict):
            for key in ("id", "_id"):
                if obj.get(key) is not None:
                    return str(obj[key])
    return None


class LedgerClient:
    """
    Remote ledger over HTTP (httpx, async).

    - bearer token read from the session passed in on every call
    - exactly one refresh + retry on 401, then Unauthenticated
    - any other failure -> DeliveryFailed, never retried here
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.LEDGER_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.LEDGER_TIMEOUT_S
        self._transport = transport

    async def submit(
        self,
        transaction: Transaction,
        session: SessionProvider,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """POST /transactions. Returns the ledger id."""
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        resp = await self._request(
            "POST", "/transactions", session, json=transaction.to_ledger_payload(), headers=headers
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise DeliveryFailed("Ledger returned a non-JSON body", resp.status_code) from e
        ledger_id = _extract_id(data)
        if ledger_id is None:
            raise DeliveryFailed("Ledger response carried no transaction id", resp.status_code)
        logger.info("Transaction submitted id={} amount={} name={}", ledger_id, transaction.amount, transaction.name)
        return ledger_id

    async def patch(self, transaction_id: str, fields: Dict[str, Any], session: SessionProvider) -> Dict[str, Any]:
        """
        PATCH /transactions/{id} with a partial body.
        Only category / satisfaction_rating are patchable; re-sending the
        same body leaves the ledger in the same state.
        """
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not patchable: {sorted(unknown)}")
        if not fields:
            raise ValueError("Empty patch")
        resp = await self._request("PATCH", f"/transactions/{transaction_id}", session, json=dict(fields))
        logger.info("Transaction patched id={} fields={}", transaction_id, sorted(fields))
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def list_transactions(self, session: SessionProvider) -> List[Dict[str, Any]]:
        resp = await self._request("GET", "/transactions", session)
        try:
            data = resp.json()
        except ValueError as e:
            raise DeliveryFailed("Ledger returned a non-JSON body", resp.status_code) from e
        if isinstance(data, list):
            return data
        return list(data.get("transactions", [])) if isinstance(data, dict) else []

    async def _request(
        self,
        method: str,
        path: str,
        session: SessionProvider,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        token = session.current_token()
        if not token:
            # nothing to retry without a credential
            raise Unauthenticated("No bearer token available")

        resp = await self._send(method, path, token, json=json, headers=headers)
        if resp.status_code == 401:
            logger.info("Ledger rejected token method={} path={} -> refreshing once", method, path)
            try:
                token = await session.refresh()
            except AuthError as e:
                raise Unauthenticated(f"Token refresh failed: {e}") from e
            resp = await self._send(method, path, token, json=json, headers=headers)
            if resp.status_code == 401:
                raise Unauthenticated("Ledger rejected the refreshed token")

        if resp.status_code >= 400:
            raise DeliveryFailed(
                f"Ledger {method} {path} failed status={resp.status_code}", resp.status_code
            )
        return resp

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        all_headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            **(headers or {}),
        }
        t0 = time.time()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, path, json=json, headers=all_headers)
        except httpx.HTTPError as e:
            logger.warning("Ledger call failed method={} path={} err={}", method, path, str(e))
            raise DeliveryFailed(f"Ledger {method} {path} failed: {e}") from e
        logger.debug(
            "Ledger call method={} path={} status={} latency_s={:.2f}",
            method, path, resp.status_code, time.time() - t0,
        )
        return resp
