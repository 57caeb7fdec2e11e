"""Invocation context passed explicitly into every registry operation.

The hosting platform supplies who is calling, what time it is and a
handle on the world state. Tests inject a fake clock and an in-memory
store the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from ..config import get_validated_config
from .kv import KeyValueStore
from .models import AssetRecord, IdentityRecord
from .store import EntityStore


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InvocationContext:
    """Caller identity, store handle and clock for one invocation.

    Attributes:
        caller_id: Identity string of the invoker, from the platform's identity provider
        store: World-state handle (usually a TransactionalStore)
        clock: Returns the timestamp recorded on created/updated records
        identity_namespace: Key namespace for identity records (config default)
        asset_namespace: Key namespace for asset records (config default)
    """

    caller_id: str
    store: KeyValueStore
    clock: Callable[[], datetime] = utc_now
    identity_namespace: str | None = None
    asset_namespace: str | None = None
    users: EntityStore[IdentityRecord] = field(init=False, repr=False)
    properties: EntityStore[AssetRecord] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.caller_id:
            raise ValueError("caller_id is required")
        namespaces = get_validated_config().namespaces
        self.users = EntityStore(
            self.store, IdentityRecord, self.identity_namespace or namespaces.identity
        )
        self.properties = EntityStore(
            self.store, AssetRecord, self.asset_namespace or namespaces.asset
        )

    def now(self) -> datetime:
        return self.clock()
