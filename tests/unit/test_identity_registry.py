"""Tests for IdentityRegistry: request, approve, view, recharge."""

from __future__ import annotations

from typing import Callable

import pytest

from regnet.registry import (
    AlreadyExistsError,
    IdentityRegistry,
    IdentityStatus,
    InMemoryKeyValueStore,
    InvalidArgumentError,
    InvalidStateError,
    InvocationContext,
    NotFoundError,
)

REGISTRAR = "registrar"

ContextFactory = Callable[..., InvocationContext]


@pytest.fixture
def registry() -> IdentityRegistry:
    return IdentityRegistry()


def request_alice(registry: IdentityRegistry, ctx: InvocationContext) -> str:
    record = registry.request(ctx, name="Alice", email="alice@example.com", phone="555-0100", national_id="A1")
    return record.key


class TestRequest:
    """requestNewUser semantics."""

    def test_creates_requested_record(self, registry: IdentityRegistry, make_ctx: ContextFactory, clock) -> None:
        ctx = make_ctx("alice")
        record = registry.request(ctx, name="Alice", email="alice@example.com", phone="555-0100", national_id="A1")

        assert record.status is IdentityStatus.REQUESTED
        assert record.balance == 0
        assert record.submitted_by == "alice"
        assert record.created_at == clock.current
        assert record.updated_at == clock.current
        assert record.approved_by is None
        assert record.key == ctx.users.make_key("Alice", "A1")
        assert ctx.users.get(record.key) == record

    def test_duplicate_fails_and_keeps_original(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, clock
    ) -> None:
        key = request_alice(registry, make_ctx("alice"))
        original = make_ctx().users.get(key)
        clock.advance(60)

        with pytest.raises(AlreadyExistsError) as exc_info:
            registry.request(
                make_ctx("mallory"), name="Alice", email="evil@example.com", phone="000", national_id="A1"
            )
        assert exc_info.value.details["key"] == key
        assert make_ctx().users.get(key) == original

    def test_same_name_different_national_id_allowed(
        self, registry: IdentityRegistry, make_ctx: ContextFactory
    ) -> None:
        ctx = make_ctx("alice")
        first = registry.request(ctx, name="Alice", email="a@x", phone="1", national_id="A1")
        second = registry.request(ctx, name="Alice", email="a@x", phone="1", national_id="A2")
        assert first.key != second.key

    @pytest.mark.parametrize("name,national_id", [("", "A1"), ("Alice", "")])
    def test_empty_identifying_fields_rejected(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, kv: InMemoryKeyValueStore,
        name: str, national_id: str,
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            registry.request(make_ctx(), name=name, email="a@x", phone="1", national_id=national_id)
        assert len(kv) == 0


class TestApprove:
    """approveNewUser semantics."""

    def test_approve(self, registry: IdentityRegistry, make_ctx: ContextFactory, clock) -> None:
        key = request_alice(registry, make_ctx("alice"))
        created = clock.current
        clock.advance(30)

        record = registry.approve(make_ctx(REGISTRAR), key)
        assert record.status is IdentityStatus.APPROVED
        assert record.balance == 0
        assert record.approved_by == REGISTRAR
        assert record.updated_at == clock.current
        assert record.created_at == created
        assert make_ctx().users.get(key) == record

    def test_missing(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> None:
        ctx = make_ctx(REGISTRAR)
        with pytest.raises(NotFoundError):
            registry.approve(ctx, ctx.users.make_key("Nobody", "X"))

    def test_reapproval_fails_and_leaves_record(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, clock
    ) -> None:
        key = request_alice(registry, make_ctx("alice"))
        registry.approve(make_ctx(REGISTRAR), key)
        approved = make_ctx().users.get(key)
        clock.advance(30)

        with pytest.raises(InvalidStateError):
            registry.approve(make_ctx("other-registrar"), key)
        assert make_ctx().users.get(key) == approved


class TestView:
    """viewUser semantics."""

    def test_view(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> None:
        key = request_alice(registry, make_ctx("alice"))
        assert registry.view(make_ctx("anyone"), key).name == "Alice"

    def test_view_missing(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> None:
        ctx = make_ctx()
        with pytest.raises(NotFoundError):
            registry.view(ctx, ctx.users.make_key("Nobody", "X"))


class TestRecharge:
    """rechargeAccount / credit_balance semantics."""

    @pytest.fixture
    def approved_key(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> str:
        key = request_alice(registry, make_ctx("alice"))
        registry.approve(make_ctx(REGISTRAR), key)
        return key

    @pytest.mark.parametrize("code,amount", [("upg100", 100), ("upg500", 500), ("upg1000", 1000)])
    def test_known_codes(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, approved_key: str, code: str, amount: int
    ) -> None:
        record = registry.recharge(make_ctx("alice"), approved_key, code)
        assert record.balance == amount

    def test_accumulates(self, registry: IdentityRegistry, make_ctx: ContextFactory, approved_key: str) -> None:
        registry.recharge(make_ctx("alice"), approved_key, "upg500")
        record = registry.recharge(make_ctx("alice"), approved_key, "upg100")
        assert record.balance == 600
        assert make_ctx().users.get(approved_key).balance == 600

    def test_updates_timestamp(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, approved_key: str, clock
    ) -> None:
        clock.advance(5)
        record = registry.recharge(make_ctx("alice"), approved_key, "upg100")
        assert record.updated_at == clock.current

    def test_unknown_code(self, registry: IdentityRegistry, make_ctx: ContextFactory, approved_key: str) -> None:
        with pytest.raises(InvalidArgumentError):
            registry.recharge(make_ctx("alice"), approved_key, "upg999")
        assert make_ctx().users.get(approved_key).balance == 0

    def test_not_approved(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> None:
        key = request_alice(registry, make_ctx("alice"))
        with pytest.raises(InvalidStateError):
            registry.recharge(make_ctx("alice"), key, "upg100")
        assert make_ctx().users.get(key).balance == 0

    def test_missing(self, registry: IdentityRegistry, make_ctx: ContextFactory) -> None:
        ctx = make_ctx()
        with pytest.raises(NotFoundError):
            registry.recharge(ctx, ctx.users.make_key("Nobody", "X"), "upg100")

    def test_credit_balance_denominations(
        self, registry: IdentityRegistry, make_ctx: ContextFactory, approved_key: str
    ) -> None:
        assert registry.credit_balance(make_ctx(), approved_key, 500).balance == 500
        with pytest.raises(InvalidArgumentError):
            registry.credit_balance(make_ctx(), approved_key, 250)
        assert make_ctx().users.get(approved_key).balance == 500

    def test_custom_codes(self, make_ctx: ContextFactory) -> None:
        registry = IdentityRegistry(top_up_codes={"gift": 7})
        key = request_alice(registry, make_ctx("alice"))
        registry.approve(make_ctx(REGISTRAR), key)
        assert registry.recharge(make_ctx("alice"), key, "gift").balance == 7
        with pytest.raises(InvalidArgumentError):
            registry.recharge(make_ctx("alice"), key, "upg100")
