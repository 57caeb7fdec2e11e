# Property registration ledger
from .keys import CompositeKey, encode, decode
from .kv import (
    KeyValueStore, InMemoryKeyValueStore, SQLiteKeyValueStore,
    TransactionalStore, transaction, open_store,
)
from .models import (
    IdentityRecord, AssetRecord, IdentityStatus, AssetStatus,
    IdentityRequest, AssetRequest,
)
from .store import EntityStore, CorruptRecordError
from .context import InvocationContext
from .errors import (
    ErrorCategory, ErrorCode, ErrorResponse, RegistryError,
    NotFoundError, AlreadyExistsError, InvalidStateError,
    InsufficientBalanceError, UnauthorizedError, InvalidArgumentError,
)
from .identity import IdentityRegistry
from .assets import AssetRegistry
from .transfer import TransferWorkflow, PurchaseResult
from .contracts import Contract, UsersContract, RegistrarContract, ContractHost
from .logger import EventLogger

__all__ = [
    "CompositeKey", "encode", "decode",
    "KeyValueStore", "InMemoryKeyValueStore", "SQLiteKeyValueStore",
    "TransactionalStore", "transaction", "open_store",
    "IdentityRecord", "AssetRecord", "IdentityStatus", "AssetStatus",
    "IdentityRequest", "AssetRequest",
    "EntityStore", "CorruptRecordError",
    "InvocationContext",
    "ErrorCategory", "ErrorCode", "ErrorResponse", "RegistryError",
    "NotFoundError", "AlreadyExistsError", "InvalidStateError",
    "InsufficientBalanceError", "UnauthorizedError", "InvalidArgumentError",
    "IdentityRegistry", "AssetRegistry",
    "TransferWorkflow", "PurchaseResult",
    "Contract", "UsersContract", "RegistrarContract", "ContractHost",
    "EventLogger",
]
