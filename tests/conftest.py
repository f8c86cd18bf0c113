"""Shared fixtures and stub backends for the lifecycle tests."""

import asyncio
import io
from typing import Dict, Any, List, Optional, Tuple

import pytest
from rich.console import Console

from tx_backend import BackendClient, CallResult, CallStatus, TransactionHandle
from tx_stress_test import EventReporter


class StubBackend(BackendClient):
    """
    In-memory backend that records every call.

    log holds ("begin" | "end", kind, transaction_id) tuples in the order the
    calls started and finished; kind is one of seed, start, operation, batch,
    commit, rollback.
    """

    def __init__(
        self,
        delay: float = 0.001,
        fail_starts: bool = False,
        hang_on: Tuple[str, ...] = (),
        network_error_on: Tuple[str, ...] = (),
    ):
        self.delay = delay
        self.fail_starts = fail_starts
        self.hang_on = hang_on
        self.network_error_on = network_error_on
        self.log: List[Tuple[str, str, Optional[str]]] = []
        self.start_params: List[Tuple[int, int]] = []
        self.payloads: Dict[str, List[Dict[str, Any]]] = {}
        self.in_flight = 0
        self.peak_in_flight = 0
        self._starts = 0

    async def _request(self, kind: str, tx_id: Optional[str]) -> CallResult:
        self.log.append(("begin", kind, tx_id))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if kind in self.hang_on:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
            self.log.append(("end", kind, tx_id))

        if kind in self.network_error_on:
            return CallResult(status=CallStatus.NETWORK_ERROR, error="ClientConnectorError: refused")
        return CallResult(status=CallStatus.OK, http_status=200, response_data={"data": {"ok": True}})

    def calls_for(self, tx_id: str) -> List[str]:
        return [kind for phase, kind, tx in self.log if phase == "begin" and tx == tx_id]

    def kinds(self) -> List[str]:
        return [kind for phase, kind, _ in self.log if phase == "begin"]

    async def seed(self, email="test@test.com", balance=100) -> CallResult:
        return await self._request("seed", None)

    async def start_transaction(self, timeout_ms: int, max_wait_ms: int) -> Optional[TransactionHandle]:
        self._starts += 1
        tx_id = f"tx-{self._starts}"
        self.start_params.append((timeout_ms, max_wait_ms))
        result = await self._request("start", tx_id)
        if self.fail_starts or not result.ok:
            return None
        return TransactionHandle(id=tx_id)

    async def run_operation(self, handle: TransactionHandle, payload: Dict[str, Any]) -> CallResult:
        self.payloads.setdefault(handle.id, []).append(payload)
        kind = "batch" if "batch" in payload else "operation"
        return await self._request(kind, handle.id)

    async def commit(self, handle: TransactionHandle) -> CallResult:
        return await self._request("commit", handle.id)

    async def rollback(self, handle: TransactionHandle) -> CallResult:
        return await self._request("rollback", handle.id)


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def output():
    """A rich Console writing into a buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def reporter(output):
    return EventReporter(output=output, record=True)
