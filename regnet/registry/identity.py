"""Identity lifecycle: request, approve, view and balance top-up.

Identities are keyed by (name, national_id). Approval is a one-way gate:
only Approved identities can hold coins, register assets or buy them.
"""

from __future__ import annotations

import logging

from ..config import get_validated_config
from .context import InvocationContext
from .errors import AlreadyExistsError, InvalidArgumentError, InvalidStateError
from .models import IdentityRecord, IdentityRequest, IdentityStatus, parse_request

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Sole writer of identity records (apart from TransferWorkflow).

    Top-up codes default to ``top_up_codes`` in config. A code stands in
    for an external payment confirmation and maps to a fixed coin amount.
    """

    top_up_codes: dict[str, int]

    def __init__(self, top_up_codes: dict[str, int] | None = None) -> None:
        codes = top_up_codes if top_up_codes is not None else get_validated_config().top_up_codes
        self.top_up_codes = dict(codes)

    def request(
        self,
        ctx: InvocationContext,
        name: str,
        email: str,
        phone: str,
        national_id: str,
    ) -> IdentityRecord:
        """Create a Requested identity with a zero balance.

        Raises:
            InvalidArgumentError: If a field is malformed
            AlreadyExistsError: If (name, national_id) is already taken
        """
        fields = parse_request(
            IdentityRequest,
            "requestNewUser",
            name=name,
            email=email,
            phone=phone,
            national_id=national_id,
        )
        key = ctx.users.make_key(fields.name, fields.national_id)
        if ctx.users.exists(key):
            raise AlreadyExistsError(
                f"A user with national ID {fields.national_id} already exists",
                key=key,
                action="requestNewUser",
            )

        now = ctx.now()
        record = IdentityRecord(
            key=key,
            name=fields.name,
            national_id=fields.national_id,
            email=fields.email,
            phone=fields.phone,
            submitted_by=ctx.caller_id,
            status=IdentityStatus.REQUESTED,
            balance=0,
            created_at=now,
            updated_at=now,
        )
        ctx.users.put(record)
        logger.info("User %s (%s) requested by %s", record.name, record.national_id, ctx.caller_id)
        return record

    def approve(self, ctx: InvocationContext, key: str) -> IdentityRecord:
        """Approve a Requested identity. Approval happens exactly once.

        Raises:
            NotFoundError: If no identity exists at ``key``
            InvalidStateError: If the identity is already Approved
        """
        record = ctx.users.get(key, action="approveNewUser")
        if record.is_approved:
            raise InvalidStateError(
                "User is already registered in the network",
                key=key,
                action="approveNewUser",
                status=record.status.value,
            )

        record.status = IdentityStatus.APPROVED
        record.approved_by = ctx.caller_id
        record.updated_at = ctx.now()
        ctx.users.put(record)
        logger.info("User %s (%s) approved by %s", record.name, record.national_id, ctx.caller_id)
        return record

    def view(self, ctx: InvocationContext, key: str) -> IdentityRecord:
        """Read-only lookup.

        Raises:
            NotFoundError: If no identity exists at ``key``
        """
        return ctx.users.get(key, action="viewUser")

    def credit_balance(self, ctx: InvocationContext, key: str, amount: int) -> IdentityRecord:
        """Add a recognized top-up amount to an Approved identity.

        Raises:
            NotFoundError: If no identity exists at ``key``
            InvalidStateError: If the identity is not Approved
            InvalidArgumentError: If ``amount`` is not a top-up denomination
        """
        record = self._approved(ctx, key, "rechargeAccount")
        if amount not in self.top_up_codes.values():
            raise InvalidArgumentError(
                f"{amount} is not a recognized top-up amount",
                key=key,
                action="rechargeAccount",
            )
        return self._credit(ctx, record, amount)

    def recharge(self, ctx: InvocationContext, key: str, code: str) -> IdentityRecord:
        """Credit the amount a top-up code stands for.

        Raises:
            NotFoundError: If no identity exists at ``key``
            InvalidStateError: If the identity is not Approved
            InvalidArgumentError: If ``code`` is not a recognized top-up code
        """
        record = self._approved(ctx, key, "rechargeAccount")
        amount = self.top_up_codes.get(code)
        if amount is None:
            raise InvalidArgumentError(
                f"Invalid transaction ID: {code}",
                key=key,
                action="rechargeAccount",
            )
        return self._credit(ctx, record, amount)

    def _approved(self, ctx: InvocationContext, key: str, action: str) -> IdentityRecord:
        record = ctx.users.get(key, action=action)
        if not record.is_approved:
            raise InvalidStateError(
                "User should be registered in the network to recharge account",
                key=key,
                action=action,
                status=record.status.value,
            )
        return record

    def _credit(self, ctx: InvocationContext, record: IdentityRecord, amount: int) -> IdentityRecord:
        record.balance += amount
        record.updated_at = ctx.now()
        ctx.users.put(record)
        logger.info("Credited %d coins to %s, balance now %d", amount, record.name, record.balance)
        return record
