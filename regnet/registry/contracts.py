"""Externally invocable operations, grouped into two named contracts.

- UsersContract: what participants call (account requests, recharge,
  property requests, listing, purchase)
- RegistrarContract: what the registrar calls (approvals)

Each operation takes ordered string arguments and is a thin composition of
IdentityRegistry, AssetRegistry and TransferWorkflow. ContractHost plays the
platform's part: it resolves the contract and method, builds the
InvocationContext and runs the call inside one transaction, so the
invocation either commits every write or none.

Usage:
    host = ContractHost(InMemoryKeyValueStore())
    host.invoke(users_name, "requestNewUser", ["Alice", "a@x.io", "555", "A1"], "alice")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Sequence

from ..config import get_validated_config
from . import keys
from .assets import AssetRegistry
from .context import InvocationContext, utc_now
from .errors import InvalidArgumentError, NotFoundError, RegistryError
from .identity import IdentityRegistry
from .kv import KeyValueStore, transaction
from .logger import EventLogger
from .models import AssetRecord, IdentityRecord
from .transfer import PurchaseResult, TransferWorkflow

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


@dataclass
class ContractMethod:
    """An operation exposed by a contract."""

    name: str
    handler: Handler
    params: tuple[str, ...]
    description: str


class Contract:
    """Base class for a named set of operations."""

    name: str
    methods: dict[str, ContractMethod]

    def __init__(
        self,
        name: str,
        identities: IdentityRegistry | None = None,
        assets: AssetRegistry | None = None,
        transfers: TransferWorkflow | None = None,
    ) -> None:
        self.name = name
        self.identities = identities or IdentityRegistry()
        self.assets = assets or AssetRegistry()
        self.transfers = transfers or TransferWorkflow()
        self.methods = {}

    def register_method(
        self,
        name: str,
        handler: Handler,
        params: Sequence[str],
        description: str = "",
    ) -> None:
        """Register a callable operation on this contract"""
        self.methods[name] = ContractMethod(
            name=name,
            handler=handler,
            params=tuple(params),
            description=description,
        )

    def get_method(self, method_name: str) -> ContractMethod | None:
        return self.methods.get(method_name)

    def get_interface(self) -> dict[str, Any]:
        """Describe this contract's operations and their ordered arguments."""
        return {
            "name": self.name,
            "methods": [
                {"name": m.name, "params": list(m.params), "description": m.description}
                for m in self.methods.values()
            ],
        }

    def instantiate(self, ctx: InvocationContext) -> None:
        """Deployment hook; writes nothing."""
        logger.info("Contract %s instantiated by %s", self.name, ctx.caller_id)

    # Shared read-only operations

    def view_user(self, ctx: InvocationContext, name: str, national_id: str) -> IdentityRecord:
        return self.identities.view(ctx, ctx.users.make_key(name, national_id))

    def view_property(self, ctx: InvocationContext, asset_id: str) -> AssetRecord:
        return self.assets.view(ctx, asset_id)


class UsersContract(Contract):
    """Operations invoked by participants."""

    def __init__(self, name: str | None = None, **components: Any) -> None:
        super().__init__(name or get_validated_config().contracts.users, **components)
        self.register_method(
            "requestNewUser", self.request_new_user,
            ["name", "email", "phone", "nationalId"],
            "Request an account on the network",
        )
        self.register_method(
            "rechargeAccount", self.recharge_account,
            ["name", "nationalId", "topUpCode"],
            "Credit coins for a bank transaction code",
        )
        self.register_method(
            "viewUser", self.view_user, ["name", "nationalId"], "View an account",
        )
        self.register_method(
            "propertyRegistrationRequest", self.property_registration_request,
            ["assetId", "price", "name", "nationalId"],
            "Ask the registrar to register a property",
        )
        self.register_method(
            "viewProperty", self.view_property, ["assetId"], "View a property",
        )
        self.register_method(
            "updateProperty", self.update_property,
            ["assetId", "name", "nationalId", "newStatus"],
            "Owner changes a property's status (Registered or OnSale)",
        )
        self.register_method(
            "purchaseProperty", self.purchase_property,
            ["assetId", "buyerName", "buyerNationalId"],
            "Buy a property that is on sale",
        )

    def request_new_user(
        self, ctx: InvocationContext, name: str, email: str, phone: str, national_id: str
    ) -> IdentityRecord:
        return self.identities.request(ctx, name=name, email=email, phone=phone, national_id=national_id)

    def recharge_account(
        self, ctx: InvocationContext, name: str, national_id: str, top_up_code: str
    ) -> IdentityRecord:
        return self.identities.recharge(ctx, ctx.users.make_key(name, national_id), top_up_code)

    def property_registration_request(
        self, ctx: InvocationContext, asset_id: str, price: str, name: str, national_id: str
    ) -> AssetRecord:
        owner_key = ctx.users.make_key(name, national_id)
        return self.assets.request_registration(ctx, asset_id, price, owner_key)

    def update_property(
        self, ctx: InvocationContext, asset_id: str, name: str, national_id: str, new_status: str
    ) -> AssetRecord:
        owner_key = ctx.users.make_key(name, national_id)
        return self.assets.set_status(ctx, asset_id, owner_key, new_status)

    def purchase_property(
        self, ctx: InvocationContext, asset_id: str, buyer_name: str, buyer_national_id: str
    ) -> PurchaseResult:
        buyer_key = ctx.users.make_key(buyer_name, buyer_national_id)
        return self.transfers.purchase(ctx, asset_id, buyer_key)


class RegistrarContract(Contract):
    """Operations invoked by the registrar."""

    def __init__(self, name: str | None = None, **components: Any) -> None:
        super().__init__(name or get_validated_config().contracts.registrar, **components)
        self.register_method(
            "approveNewUser", self.approve_new_user,
            ["name", "nationalId"],
            "Approve a requested account",
        )
        self.register_method(
            "viewUser", self.view_user, ["name", "nationalId"], "View an account",
        )
        self.register_method(
            "approvePropertyRegistration", self.approve_property_registration,
            ["assetId"],
            "Register a requested property",
        )
        self.register_method(
            "viewProperty", self.view_property, ["assetId"], "View a property",
        )

    def approve_new_user(self, ctx: InvocationContext, name: str, national_id: str) -> IdentityRecord:
        return self.identities.approve(ctx, ctx.users.make_key(name, national_id))

    def approve_property_registration(self, ctx: InvocationContext, asset_id: str) -> AssetRecord:
        return self.assets.approve_registration(ctx, asset_id)


def _to_result(value: Any) -> Any:
    if isinstance(value, (IdentityRecord, AssetRecord, PurchaseResult)):
        return value.to_dict()
    return value


class ContractHost:
    """Dispatches invocations to contracts, one transaction per invocation."""

    backend: KeyValueStore
    contracts: dict[str, Contract]
    clock: Callable[[], datetime]
    event_logger: EventLogger | None

    def __init__(
        self,
        backend: KeyValueStore,
        contracts: Sequence[Contract] | None = None,
        clock: Callable[[], datetime] = utc_now,
        event_logger: EventLogger | None = None,
    ) -> None:
        self.backend = backend
        self.clock = clock
        self.event_logger = event_logger
        if contracts is None:
            identities = IdentityRegistry()
            assets = AssetRegistry()
            transfers = TransferWorkflow()
            contracts = [
                UsersContract(identities=identities, assets=assets, transfers=transfers),
                RegistrarContract(identities=identities, assets=assets, transfers=transfers),
            ]
        self.contracts = {}
        for contract in contracts:
            if contract.name in self.contracts:
                raise ValueError(f"Duplicate contract name: {contract.name}")
            self.contracts[contract.name] = contract

    def instantiate(self, caller_id: str) -> None:
        """Run every contract's deployment hook."""
        for contract in self.contracts.values():
            with transaction(self.backend) as tx:
                contract.instantiate(self._context(caller_id, tx))

    def get_interfaces(self) -> list[dict[str, Any]]:
        return [c.get_interface() for c in self.contracts.values()]

    def _context(self, caller_id: str, store: KeyValueStore) -> InvocationContext:
        return InvocationContext(caller_id=caller_id, store=store, clock=self.clock)

    def _resolve(self, contract_name: str, method_name: str, args: Sequence[str]) -> ContractMethod:
        contract = self.contracts.get(contract_name)
        if contract is None:
            raise NotFoundError("Unknown contract", contract=contract_name)
        method = contract.get_method(method_name)
        if method is None:
            raise NotFoundError(
                "Unknown method",
                contract=contract_name,
                action=method_name,
                available=sorted(contract.methods),
            )
        if len(args) != len(method.params):
            raise InvalidArgumentError(
                f"{method_name} requires {list(method.params)}",
                action=method_name,
                expected=len(method.params),
                received=len(args),
            )
        return method

    def call(
        self,
        contract_name: str,
        method_name: str,
        args: Sequence[str],
        caller_id: str,
    ) -> Any:
        """Run one invocation and return the handler's result.

        Raises:
            RegistryError: The invocation was rejected; nothing was written.
        """
        method = self._resolve(contract_name, method_name, args)
        with transaction(self.backend) as tx:
            result = method.handler(self._context(caller_id, tx), *args)
            written = [list(keys.decode(k).fields) for k in tx.pending_keys]

        if self.event_logger is not None:
            self.event_logger.log_invocation(contract_name, method_name, caller_id, written)
        return result

    def invoke(
        self,
        contract_name: str,
        method_name: str,
        args: Sequence[str],
        caller_id: str,
    ) -> dict[str, Any]:
        """Run one invocation and return a response dict.

        Returns ``{"success": True, "result": ...}`` or the standardized
        error response of the failure that aborted the invocation.
        """
        try:
            result = self.call(contract_name, method_name, args, caller_id)
        except RegistryError as e:
            logger.debug("%s.%s rejected: %s", contract_name, method_name, e)
            if self.event_logger is not None:
                self.event_logger.log_failure(
                    contract_name, method_name, caller_id, e.code.value, e.message
                )
            return e.to_response()
        return {"success": True, "result": _to_result(result)}
