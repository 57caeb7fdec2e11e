"""Asset lifecycle: registration request, registrar approval, view, status update."""

from __future__ import annotations

import logging

from .context import InvocationContext
from .errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    InvalidStateError,
    UnauthorizedError,
)
from .models import AssetRecord, AssetRequest, AssetStatus, IdentityRecord, parse_request

logger = logging.getLogger(__name__)

# Statuses an owner may set through updateProperty
OWNER_SETTABLE_STATUSES: frozenset[AssetStatus] = frozenset(
    {AssetStatus.REGISTERED, AssetStatus.ON_SALE}
)


def require_approved(ctx: InvocationContext, owner_key: str, action: str) -> IdentityRecord:
    """Load an identity and check it may act on assets.

    Raises:
        NotFoundError: If no identity exists at ``owner_key``
        InvalidStateError: If the identity is not Approved
    """
    owner = ctx.users.get(owner_key, action=action)
    if not owner.is_approved:
        raise InvalidStateError(
            "User is not registered in the network",
            key=owner_key,
            action=action,
            status=owner.status.value,
        )
    return owner


class AssetRegistry:
    """Sole writer of asset records (apart from TransferWorkflow)."""

    def request_registration(
        self,
        ctx: InvocationContext,
        asset_id: str,
        price: str | int,
        owner_key: str,
    ) -> AssetRecord:
        """Record a registration request owned by ``owner_key``.

        Raises:
            InvalidArgumentError: If the asset ID is empty or the price is not a positive integer
            NotFoundError: If the owner identity does not exist
            InvalidStateError: If the owner identity is not Approved
            AlreadyExistsError: If a record already exists for ``asset_id``
        """
        fields = parse_request(
            AssetRequest, "propertyRegistrationRequest", asset_id=asset_id, price=price
        )
        require_approved(ctx, owner_key, "propertyRegistrationRequest")

        key = ctx.properties.make_key(fields.asset_id)
        if ctx.properties.exists(key):
            raise AlreadyExistsError(
                f"Property {fields.asset_id} is already on the ledger",
                key=key,
                action="propertyRegistrationRequest",
            )

        now = ctx.now()
        record = AssetRecord(
            key=key,
            asset_id=fields.asset_id,
            owner=owner_key,
            price=fields.price,
            status=AssetStatus.REQUESTED,
            created_at=now,
            updated_at=now,
        )
        ctx.properties.put(record)
        logger.info("Property %s requested at price %d", record.asset_id, record.price)
        return record

    def approve_registration(self, ctx: InvocationContext, asset_id: str) -> AssetRecord:
        """Move a Requested asset to Registered.

        Raises:
            NotFoundError: If no record exists for ``asset_id``
            InvalidStateError: If the asset is not in Requested status
        """
        key = ctx.properties.make_key(asset_id)
        record = ctx.properties.get(key, action="approvePropertyRegistration")
        if record.status is not AssetStatus.REQUESTED:
            raise InvalidStateError(
                f"Property {asset_id} is already registered",
                key=key,
                action="approvePropertyRegistration",
                status=record.status.value,
            )

        record.status = AssetStatus.REGISTERED
        record.approved_by = ctx.caller_id
        record.updated_at = ctx.now()
        ctx.properties.put(record)
        logger.info("Property %s registered by %s", asset_id, ctx.caller_id)
        return record

    def view(self, ctx: InvocationContext, asset_id: str) -> AssetRecord:
        key = ctx.properties.make_key(asset_id)
        return ctx.properties.get(key, action="viewProperty")

    def set_status(
        self,
        ctx: InvocationContext,
        asset_id: str,
        owner_key: str,
        new_status: str | AssetStatus,
    ) -> AssetRecord:
        """Owner-initiated status change, i.e. listing a Registered asset OnSale.

        Status only moves forward. Setting the current status again is a no-op
        and writes nothing.

        Raises:
            InvalidArgumentError: If ``new_status`` is unknown or not owner-settable
            NotFoundError: If the owner identity or the asset does not exist
            InvalidStateError: If the owner is not Approved, the asset is still
                Requested, or the change would take an OnSale asset back to Registered
            UnauthorizedError: If ``owner_key`` is not the asset's current owner
        """
        try:
            status = new_status if isinstance(new_status, AssetStatus) else AssetStatus.parse(new_status)
        except ValueError as e:
            raise InvalidArgumentError(
                str(e), action="updateProperty", allowed=sorted(s.value for s in OWNER_SETTABLE_STATUSES)
            ) from e
        if status not in OWNER_SETTABLE_STATUSES:
            raise InvalidArgumentError(
                f"Owners cannot set status {status.value}",
                action="updateProperty",
                allowed=sorted(s.value for s in OWNER_SETTABLE_STATUSES),
            )

        require_approved(ctx, owner_key, "updateProperty")
        key = ctx.properties.make_key(asset_id)
        record = ctx.properties.get(key, action="updateProperty")
        if record.owner != owner_key:
            raise UnauthorizedError(
                "Not authorized to update property",
                key=key,
                action="updateProperty",
            )
        if record.status is AssetStatus.REQUESTED:
            raise InvalidStateError(
                f"Property {asset_id} has not been approved by the registrar",
                key=key,
                action="updateProperty",
                status=record.status.value,
            )
        if status is record.status:
            return record
        if status is AssetStatus.REGISTERED:
            raise InvalidStateError(
                f"Property {asset_id} is on sale and cannot return to Registered",
                key=key,
                action="updateProperty",
                status=record.status.value,
            )

        record.status = status
        record.updated_at = ctx.now()
        ctx.properties.put(record)
        logger.info("Property %s status set to %s", asset_id, status.value)
        return record
