"""Pytest fixtures for regnet tests.

Every test runs against default configuration, an in-memory store and a
fake clock, so timestamps and state are deterministic.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator

import pytest

from regnet.config import reset_config, set_config
from regnet.registry import (
    ContractHost,
    InMemoryKeyValueStore,
    InvocationContext,
)

REGISTRAR = "x509::CN=registrar::O=regnet"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 1.0) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


@pytest.fixture(autouse=True)
def regnet_config() -> Iterator[None]:
    """Install default configuration for each test."""
    set_config({"store": {"backend": "memory"}})
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def make_ctx(kv: InMemoryKeyValueStore, clock: FakeClock) -> Callable[[str], InvocationContext]:
    """Build an InvocationContext writing straight to the in-memory store."""

    def _make(caller_id: str = "alice") -> InvocationContext:
        return InvocationContext(caller_id=caller_id, store=kv, clock=clock)

    return _make


@pytest.fixture
def host(kv: InMemoryKeyValueStore, clock: FakeClock) -> ContractHost:
    return ContractHost(kv, clock=clock)


@pytest.fixture
def users_contract() -> str:
    return "org.property-registration-network.regnet.users"


@pytest.fixture
def registrar_contract() -> str:
    return "org.property-registration-network.regnet.registrar"


@pytest.fixture
def onboard(
    host: ContractHost, users_contract: str, registrar_contract: str
) -> Callable[..., dict[str, Any]]:
    """Request, approve and optionally recharge an identity through the host."""

    def _onboard(name: str, national_id: str, *top_up_codes: str) -> dict[str, Any]:
        caller = name.lower()
        response = host.invoke(
            users_contract,
            "requestNewUser",
            [name, f"{caller}@example.com", "555-0100", national_id],
            caller,
        )
        assert response["success"], response
        response = host.invoke(registrar_contract, "approveNewUser", [name, national_id], REGISTRAR)
        assert response["success"], response
        for code in top_up_codes:
            response = host.invoke(users_contract, "rechargeAccount", [name, national_id, code], caller)
            assert response["success"], response
        return response["result"]

    return _onboard
