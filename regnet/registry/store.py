"""Typed repository over the key-value store.

EntityStore[RecordT] binds one record model to one key namespace, so
reads never have to guess what shape the stored bytes are.

Usage:
    users = EntityStore(kv, IdentityRecord, "org.example.lists.user")
    key = users.make_key("Alice", "A1")
    record = users.find(key)        # None if absent
    record = users.get(key)         # raises NotFoundError if absent
    users.put(record)               # total overwrite
"""

from __future__ import annotations

import logging
from typing import Generic

from pydantic import ValidationError

from . import keys
from .errors import InvalidArgumentError, NotFoundError, RegistryError
from .kv import KeyValueStore
from .models import RecordT

logger = logging.getLogger(__name__)


class CorruptRecordError(RegistryError):
    """Stored bytes do not validate against the expected record model."""


class EntityStore(Generic[RecordT]):
    """Get/put of a single record shape under one namespace."""

    kv: KeyValueStore
    model: type[RecordT]
    namespace: str

    def __init__(self, kv: KeyValueStore, model: type[RecordT], namespace: str) -> None:
        self.kv = kv
        self.model = model
        self.namespace = namespace

    @property
    def entity(self) -> str:
        return self.model.__name__

    def make_key(self, *fields: keys.KeyField) -> str:
        """Encode ``fields`` under this store's namespace."""
        if len(fields) != len(self.model.key_fields):
            raise InvalidArgumentError(
                f"{self.entity} key takes {len(self.model.key_fields)} field(s)",
                fields=list(self.model.key_fields),
            )
        return keys.encode(self.namespace, fields)

    def owns(self, key: str) -> bool:
        """True if ``key`` is well-formed and lives in this store's namespace."""
        try:
            return keys.decode(key).namespace == self.namespace
        except InvalidArgumentError:
            return False

    def _check_namespace(self, key: str) -> None:
        if not self.owns(key):
            raise InvalidArgumentError(
                f"Key does not address a {self.entity}",
                key=key,
                namespace=self.namespace,
            )

    def find(self, key: str) -> RecordT | None:
        """Return the record at ``key`` or None if it was never written."""
        self._check_namespace(key)
        data = self.kv.get_state(key)
        if not data:
            return None
        try:
            return self.model.from_bytes(data)
        except ValidationError as e:
            raise CorruptRecordError(
                f"Stored {self.entity} failed validation",
                key=key,
                errors=e.error_count(),
            ) from e

    def get(self, key: str, action: str | None = None) -> RecordT:
        """Return the record at ``key``.

        Raises:
            NotFoundError: If no record exists at ``key``.
        """
        record = self.find(key)
        if record is None:
            details: dict[str, object] = {"key": key}
            if action:
                details["action"] = action
            raise NotFoundError(f"{self.entity} does not exist", **details)
        return record

    def exists(self, key: str) -> bool:
        return self.find(key) is not None

    def put(self, record: RecordT) -> None:
        """Overwrite the record stored at ``record.key``."""
        self._check_namespace(record.key)
        self.kv.put_state(record.key, record.to_bytes())
        logger.debug("put %s %r", self.entity, keys.decode(record.key).fields)
