import json
from typing import Dict, List, Optional

import httpx
import pytest

from smsledger.errors import AuthError


BASE_URL = "https://ledger.test/api"


class FakeLedger:
    """In-memory ledger behind httpx.MockTransport."""

    def __init__(self, valid_tokens=("good-token",)) -> None:
        self.valid_tokens = set(valid_tokens)
        self.transactions: Dict[str, Dict] = {}
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self._next_id = 1

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"message": "token expired"})
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "ledger down"})

        path = request.url.path
        if request.method == "POST" and path.endswith("/transactions"):
            body = json.loads(request.content)
            tid = f"txn-{self._next_id}"
            self._next_id += 1
            self.transactions[tid] = body
            return httpx.Response(201, json={"message": "created", "transaction": {"id": tid, **body}})
        if request.method == "PATCH":
            tid = path.rsplit("/", 1)[-1]
            if tid not in self.transactions:
                return httpx.Response(404, json={"message": "not found"})
            self.transactions[tid].update(json.loads(request.content))
            return httpx.Response(200, json={"transaction": {"id": tid, **self.transactions[tid]}})
        if request.method == "GET" and path.endswith("/transactions"):
            rows = [{"id": k, **v} for k, v in self.transactions.items()]
            return httpx.Response(200, json={"transactions": rows})
        return httpx.Response(404, json={"message": "no route"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def seed(self, **fields) -> str:
        tid = f"txn-{self._next_id}"
        self._next_id += 1
        self.transactions[tid] = {"name": "Swiggy", "amount": 250.0, "category": "Other", **fields}
        return tid


class FakeSession:
    def __init__(self, token: Optional[str] = "good-token", refreshed: str = "good-token", fail_refresh: bool = False):
        self.token = token
        self.refreshed = refreshed
        self.fail_refresh = fail_refresh
        self.refresh_calls = 0

    def current_token(self) -> Optional[str]:
        return self.token

    async def refresh(self) -> str:
        self.refresh_calls += 1
        if self.fail_refresh:
            raise AuthError("refresh denied")
        self.token = self.refreshed
        return self.token


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(ledger):
    from smsledger.services.ledger_client import LedgerClient

    return LedgerClient(base_url=BASE_URL, timeout=5, transport=ledger.transport)
