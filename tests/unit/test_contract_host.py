"""Tests for the contract surface and ContractHost dispatch."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from regnet.registry import (
    Contract,
    ContractHost,
    EventLogger,
    InMemoryKeyValueStore,
    InvalidStateError,
    InvocationContext,
    RegistrarContract,
    UsersContract,
)

REGISTRAR = "registrar"


class TestContracts:
    """Method tables of the two contracts."""

    def test_default_names_from_config(self, users_contract: str, registrar_contract: str) -> None:
        assert UsersContract().name == users_contract
        assert RegistrarContract().name == registrar_contract

    def test_users_methods(self) -> None:
        assert set(UsersContract().methods) == {
            "requestNewUser", "rechargeAccount", "viewUser",
            "propertyRegistrationRequest", "viewProperty", "updateProperty",
            "purchaseProperty",
        }

    def test_registrar_methods(self) -> None:
        assert set(RegistrarContract().methods) == {
            "approveNewUser", "viewUser", "approvePropertyRegistration", "viewProperty",
        }

    def test_interface_lists_ordered_params(self) -> None:
        interface = UsersContract().get_interface()
        by_name = {m["name"]: m for m in interface["methods"]}
        assert by_name["requestNewUser"]["params"] == ["name", "email", "phone", "nationalId"]
        assert by_name["purchaseProperty"]["params"] == ["assetId", "buyerName", "buyerNationalId"]

    def test_host_rejects_duplicate_names(self, kv: InMemoryKeyValueStore) -> None:
        with pytest.raises(ValueError):
            ContractHost(kv, contracts=[UsersContract(), UsersContract()])


class TestInvoke:
    """Responses produced by ContractHost.invoke."""

    def test_success_response(self, host: ContractHost, users_contract: str) -> None:
        response = host.invoke(users_contract, "requestNewUser", ["Alice", "a@x", "555", "A1"], "alice")
        assert response["success"] is True
        assert response["result"]["name"] == "Alice"
        assert response["result"]["status"] == "Requested"
        assert response["result"]["submitted_by"] == "alice"

    def test_error_response(self, host: ContractHost, registrar_contract: str) -> None:
        response = host.invoke(registrar_contract, "approveNewUser", ["Nobody", "X"], REGISTRAR)
        assert response["success"] is False
        assert response["code"] == "not_found"
        assert response["category"] == "resource"
        assert response["details"]["action"] == "approveNewUser"
        assert "result" not in response

    def test_unknown_contract(self, host: ContractHost) -> None:
        response = host.invoke("org.nowhere", "viewUser", ["A", "1"], "alice")
        assert response["code"] == "not_found"

    def test_unknown_method(self, host: ContractHost, registrar_contract: str) -> None:
        """Registrar contract does not expose purchaseProperty."""
        response = host.invoke(registrar_contract, "purchaseProperty", ["P1", "Bob", "B1"], REGISTRAR)
        assert response["code"] == "not_found"
        assert "approveNewUser" in response["details"]["available"]

    @pytest.mark.parametrize("args", [[], ["Alice"], ["Alice", "a@x", "555", "A1", "extra"]])
    def test_wrong_arity(self, host: ContractHost, users_contract: str, args: list[str]) -> None:
        response = host.invoke(users_contract, "requestNewUser", args, "alice")
        assert response["code"] == "invalid_argument"
        assert response["details"]["expected"] == 4

    def test_view_user_on_both_contracts(
        self, host: ContractHost, users_contract: str, registrar_contract: str
    ) -> None:
        host.invoke(users_contract, "requestNewUser", ["Alice", "a@x", "555", "A1"], "alice")
        a = host.invoke(users_contract, "viewUser", ["Alice", "A1"], "alice")
        b = host.invoke(registrar_contract, "viewUser", ["Alice", "A1"], REGISTRAR)
        assert a == b

    def test_purchase_result_shape(
        self, host: ContractHost, users_contract: str, registrar_contract: str,
        onboard: Callable[..., dict[str, Any]],
    ) -> None:
        onboard("Alice", "A1")
        onboard("Bob", "B1", "upg500")
        host.invoke(users_contract, "propertyRegistrationRequest", ["P1", "300", "Alice", "A1"], "alice")
        host.invoke(registrar_contract, "approvePropertyRegistration", ["P1"], REGISTRAR)
        host.invoke(users_contract, "updateProperty", ["P1", "Alice", "A1", "OnSale"], "alice")

        response = host.invoke(users_contract, "purchaseProperty", ["P1", "Bob", "B1"], "bob")
        assert response["success"] is True
        assert set(response["result"]) == {"asset", "buyer", "seller"}
        assert response["result"]["asset"]["status"] == "Registered"

    def test_listing_cannot_be_withdrawn(
        self, host: ContractHost, users_contract: str, registrar_contract: str,
        onboard: Callable[..., dict[str, Any]],
    ) -> None:
        onboard("Alice", "A1")
        host.invoke(users_contract, "propertyRegistrationRequest", ["P1", "300", "Alice", "A1"], "alice")
        host.invoke(registrar_contract, "approvePropertyRegistration", ["P1"], REGISTRAR)
        host.invoke(users_contract, "updateProperty", ["P1", "Alice", "A1", "OnSale"], "alice")

        response = host.invoke(users_contract, "updateProperty", ["P1", "Alice", "A1", "Registered"], "alice")
        assert response["code"] == "invalid_state"
        assert response["details"]["status"] == "OnSale"
        assert host.invoke(users_contract, "viewProperty", ["P1"], "alice")["result"]["status"] == "OnSale"

    def test_call_raises(self, host: ContractHost, registrar_contract: str) -> None:
        host.invoke(
            "org.property-registration-network.regnet.users",
            "requestNewUser", ["Alice", "a@x", "555", "A1"], "alice",
        )
        host.call(registrar_contract, "approveNewUser", ["Alice", "A1"], REGISTRAR)
        with pytest.raises(InvalidStateError):
            host.call(registrar_contract, "approveNewUser", ["Alice", "A1"], REGISTRAR)


class _FailingContract(Contract):
    """Writes a record and then fails, to exercise rollback."""

    def __init__(self) -> None:
        super().__init__("org.test.failing")
        self.register_method("writeThenFail", self.write_then_fail, ["name", "nationalId"])

    def write_then_fail(self, ctx: InvocationContext, name: str, national_id: str) -> None:
        self.identities.request(ctx, name=name, email="x@x", phone="1", national_id=national_id)
        assert ctx.users.exists(ctx.users.make_key(name, national_id))
        raise InvalidStateError("late failure", action="writeThenFail")


class TestAtomicity:
    """An invocation commits every write or none."""

    def test_failed_invocation_leaves_no_writes(self, kv: InMemoryKeyValueStore, clock) -> None:
        host = ContractHost(kv, contracts=[_FailingContract()], clock=clock)
        response = host.invoke("org.test.failing", "writeThenFail", ["Alice", "A1"], "alice")
        assert response["code"] == "invalid_state"
        assert len(kv) == 0

    def test_unexpected_errors_propagate_and_roll_back(self, kv: InMemoryKeyValueStore, clock) -> None:
        class Exploding(Contract):
            def __init__(self) -> None:
                super().__init__("org.test.exploding")
                self.register_method("boom", self.boom, [])

            def boom(self, ctx: InvocationContext) -> None:
                ctx.store.put_state("\x00org.test\x00\"x\"\x00", b"{}")
                raise RuntimeError("bug")

        host = ContractHost(kv, contracts=[Exploding()], clock=clock)
        with pytest.raises(RuntimeError):
            host.invoke("org.test.exploding", "boom", [], "alice")
        assert len(kv) == 0


class TestEventLog:
    """Committed and failed invocations are logged after the fact."""

    def test_events(self, kv: InMemoryKeyValueStore, clock, tmp_path: Path, users_contract: str) -> None:
        log_path = tmp_path / "logs" / "events.jsonl"
        host = ContractHost(kv, clock=clock, event_logger=EventLogger(log_path))

        host.invoke(users_contract, "requestNewUser", ["Alice", "a@x", "555", "A1"], "alice")
        host.invoke(users_contract, "requestNewUser", ["Alice", "a@x", "555", "A1"], "alice")
        host.invoke(users_contract, "viewUser", ["Alice", "A1"], "alice")

        events = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [e["event_type"] for e in events] == [
            "invocation_committed", "invocation_failed", "invocation_committed",
        ]
        assert [e["sequence"] for e in events] == [1, 2, 3]
        assert events[0]["written"] == [["Alice", "A1"]]
        assert events[1]["code"] == "already_exists"
        assert events[2]["written"] == []


class TestInstantiate:
    """Deployment hook."""

    def test_instantiate_writes_nothing(self, host: ContractHost, kv: InMemoryKeyValueStore) -> None:
        host.instantiate(REGISTRAR)
        assert len(kv) == 0

    def test_interfaces(self, host: ContractHost, users_contract: str, registrar_contract: str) -> None:
        names = [i["name"] for i in host.get_interfaces()]
        assert names == [users_contract, registrar_contract]
