#!/usr/bin/env python3
"""
Transactional Backend Client
============================
HTTP transport for the transaction lifecycle stress tester.

Endpoints used:
- POST /                           seed mutation and (tagged) operations
- POST /transaction/start          open an interactive transaction
- POST /transaction/{id}/commit    commit it
- POST /transaction/{id}/rollback  roll it back

Calls never raise on transport problems: they return a CallResult whose
status is OK, NETWORK_ERROR or TIMEOUT, so a caller can log the failure and
carry on. Nothing is retried.

Requirements:
    pip install aiohttp
"""

import asyncio
import aiohttp
import json
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from enum import Enum


DEFAULT_BASE_URL = "http://127.0.0.1:4466"
TRANSACTION_HEADER = "X-transaction-id"

SEED_EMAIL = "test@test.com"
SEED_BALANCE = 100


class CallStatus(Enum):
    OK = "ok"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class TransactionHandle:
    """Opaque identifier returned by a successful start call."""
    id: str


@dataclass
class CallResult:
    """Result of one backend call."""
    status: CallStatus
    latency_ms: float = 0
    http_status: int = 0
    response_data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CallStatus.OK

    @classmethod
    def timeout(cls, latency_ms: float = 0) -> "CallResult":
        return cls(status=CallStatus.TIMEOUT, latency_ms=latency_ms, error="Timeout")


# =============================================================================
# OPERATION PAYLOADS
# =============================================================================

def seed_payload(email: str = SEED_EMAIL, balance: int = SEED_BALANCE) -> Dict[str, Any]:
    """Upsert the account every operation mutates."""
    return {
        "variables": {},
        "query": (
            "mutation {\n"
            f'  upsertOneAccount(where: {{email: "{email}"}}, '
            f'create: {{email: "{email}", balance: {balance}}}, '
            f"update: {{balance: {balance}}}) {{\n"
            "    id\n    email\n    balance\n  }\n}"
        ),
    }


def decrement_balance_payload(amount: int, email: str = SEED_EMAIL) -> Dict[str, Any]:
    return {
        "variables": {},
        "query": (
            "mutation {\n"
            "  updateOneAccount(\n"
            f"    data: {{ balance: {{ decrement: {amount} }} }}\n"
            f'    where: {{ email: "{email}" }}\n'
            "  ) { id, email, balance }\n}"
        ),
    }


def batch_payload(queries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Several queries submitted together, run atomically against one transaction."""
    return {"batch": list(queries), "transaction": True}


def single_operation_payload(email: str = SEED_EMAIL) -> Dict[str, Any]:
    return decrement_balance_payload(100, email)


def batch_operation_payload(email: str = SEED_EMAIL) -> Dict[str, Any]:
    return batch_payload([
        decrement_balance_payload(100, email),
        decrement_balance_payload(200, email),
    ])


# =============================================================================
# CLIENT INTERFACE
# =============================================================================

class BackendClient:
    """
    Capability the lifecycle engine drives.

    Implementations must be safe to share between concurrently running
    lifecycles; the engine adds no locking of its own.
    """

    async def seed(self, email: str = SEED_EMAIL, balance: int = SEED_BALANCE) -> CallResult:
        raise NotImplementedError

    async def start_transaction(self, timeout_ms: int, max_wait_ms: int) -> Optional[TransactionHandle]:
        raise NotImplementedError

    async def run_operation(self, handle: TransactionHandle, payload: Dict[str, Any]) -> CallResult:
        raise NotImplementedError

    async def commit(self, handle: TransactionHandle) -> CallResult:
        raise NotImplementedError

    async def rollback(self, handle: TransactionHandle) -> CallResult:
        raise NotImplementedError


class AiohttpBackendClient(BackendClient):
    """
    BackendClient over a single pooled aiohttp session.

    Use as an async context manager so the session is closed when the run
    ends. No client-side total deadline is set here; per-call deadlines are
    applied by the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        pool_size: int = 100,
        connect_timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.pool_size = pool_size
        self.timeout = aiohttp.ClientTimeout(total=None, connect=connect_timeout)
        self.headers = headers or {"Content-Type": "application/json", "User-Agent": "TxStressTest/1.0"}
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AiohttpBackendClient":
        connector = aiohttp.TCPConnector(
            limit=self.pool_size,
            limit_per_host=self.pool_size,
            keepalive_timeout=30,
        )
        self._session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("AiohttpBackendClient used outside of 'async with'")
        return self._session

    async def _post(
        self,
        path: str,
        payload: Any,
        transaction_id: Optional[str] = None,
    ) -> CallResult:
        """POST a JSON body and parse the JSON reply."""
        headers = dict(self.headers)
        if transaction_id is not None:
            headers[TRANSACTION_HEADER] = transaction_id

        start = time.perf_counter()
        try:
            async with self.session.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=headers,
            ) as response:
                body = await response.read()
                latency = (time.perf_counter() - start) * 1000

                response_data = None
                try:
                    response_data = json.loads(body) if body else None
                except (json.JSONDecodeError, UnicodeDecodeError):
                    response_data = body.decode("utf-8", errors="replace")

                return CallResult(
                    status=CallStatus.OK,
                    latency_ms=latency,
                    http_status=response.status,
                    response_data=response_data,
                )

        except asyncio.TimeoutError:
            return CallResult.timeout((time.perf_counter() - start) * 1000)
        except aiohttp.ClientError as e:
            return CallResult(
                status=CallStatus.NETWORK_ERROR,
                latency_ms=(time.perf_counter() - start) * 1000,
                error=f"{type(e).__name__}: {e}"[:120],
            )

    async def seed(self, email: str = SEED_EMAIL, balance: int = SEED_BALANCE) -> CallResult:
        return await self._post("/", seed_payload(email, balance))

    async def start_transaction(self, timeout_ms: int, max_wait_ms: int) -> Optional[TransactionHandle]:
        """
        Open a transaction. timeout_ms/max_wait_ms are interpreted by the
        backend, not used as a client deadline.

        Returns None when the call fails or the reply carries no string "id".
        """
        result = await self._post(
            "/transaction/start",
            {"max_wait": max_wait_ms, "timeout": timeout_ms},
        )
        return parse_start_response(result)

    async def run_operation(self, handle: TransactionHandle, payload: Dict[str, Any]) -> CallResult:
        return await self._post("/", payload, transaction_id=handle.id)

    async def commit(self, handle: TransactionHandle) -> CallResult:
        return await self._post(f"/transaction/{handle.id}/commit", {})

    async def rollback(self, handle: TransactionHandle) -> CallResult:
        return await self._post(f"/transaction/{handle.id}/rollback", {})


def parse_start_response(result: CallResult) -> Optional[TransactionHandle]:
    """Extract the transaction handle from a start reply, if there is one."""
    if not result.ok or not isinstance(result.response_data, dict):
        return None
    tx_id = result.response_data.get("id")
    if not isinstance(tx_id, str) or not tx_id:
        return None
    return TransactionHandle(id=tx_id)
