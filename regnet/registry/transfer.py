"""Purchase of an OnSale asset by an approved buyer.

One invocation touches three records: the asset, the buyer and the seller.
Every read and check happens first; the three writes are issued only after
all of them pass, so a rejected purchase leaves no trace. The host commits
the writes together at the invocation boundary.

Flow:
1. Buyer exists and is Approved
2. Asset exists
3. Buyer is not the current owner
4. Asset is OnSale
5. Buyer balance covers the price
6. Seller (current owner) exists
7. Move ``price`` coins from buyer to seller
8. Reassign the asset to the buyer and reset it to Registered
9. Persist asset, buyer and seller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .context import InvocationContext
from .errors import (
    InsufficientBalanceError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from .models import AssetRecord, AssetStatus, IdentityRecord

logger = logging.getLogger(__name__)

ACTION = "purchaseProperty"


@dataclass
class PurchaseResult:
    """Records as they stand after a completed purchase."""

    asset: AssetRecord
    buyer: IdentityRecord
    seller: IdentityRecord

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "buyer": self.buyer.to_dict(),
            "seller": self.seller.to_dict(),
        }


class TransferWorkflow:
    """Moves value and ownership across three records in one invocation."""

    def purchase(self, ctx: InvocationContext, asset_id: str, buyer_key: str) -> PurchaseResult:
        """Buy ``asset_id`` for the identity at ``buyer_key``.

        Raises:
            NotFoundError: If the buyer, the asset or the seller record is missing
            InvalidStateError: If the buyer is not Approved or the asset is not OnSale
            InvalidArgumentError: If the buyer already owns the asset
            InsufficientBalanceError: If the buyer balance is below the price
        """
        buyer = ctx.users.get(buyer_key, action=ACTION)
        if not buyer.is_approved:
            raise InvalidStateError(
                "Buyer is not registered in the network",
                key=buyer_key,
                action=ACTION,
                status=buyer.status.value,
            )

        asset_key = ctx.properties.make_key(asset_id)
        asset = ctx.properties.get(asset_key, action=ACTION)

        if asset.owner == buyer_key:
            raise InvalidArgumentError(
                "Buyer is already the owner of this property",
                key=asset_key,
                action=ACTION,
            )
        if asset.status is not AssetStatus.ON_SALE:
            raise InvalidStateError(
                "Property is not for sale",
                key=asset_key,
                action=ACTION,
                status=asset.status.value,
            )
        if buyer.balance < asset.price:
            raise InsufficientBalanceError(
                f"Insufficient balance. Need {asset.price}, have {buyer.balance}",
                key=buyer_key,
                action=ACTION,
                price=asset.price,
                balance=buyer.balance,
            )

        seller = ctx.users.find(asset.owner)
        if seller is None:
            raise NotFoundError(
                "Owner of the property does not exist",
                key=asset.owner,
                action=ACTION,
            )

        now = ctx.now()
        price = asset.price
        buyer.balance -= price
        buyer.updated_at = now
        seller.balance += price
        seller.updated_at = now

        asset.owner = buyer_key
        asset.status = AssetStatus.REGISTERED
        asset.updated_at = now

        ctx.properties.put(asset)
        ctx.users.put(buyer)
        ctx.users.put(seller)

        logger.info(
            "Property %s sold for %d: %s -> %s",
            asset.asset_id,
            price,
            seller.name,
            buyer.name,
        )
        return PurchaseResult(asset=asset, buyer=buyer, seller=seller)
