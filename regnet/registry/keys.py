"""Composite keys addressing records in the key-value store.

A composite key frames a namespace and an ordered list of identifying
fields with U+0000:

    \\x00<namespace>\\x00<field_1>\\x00<field_2>\\x00

Each field is rendered as ASCII-escaped JSON, so a literal U+0000 can never
appear inside a rendered field and splitting on the delimiter is exact.
Identity keys and asset keys live under different namespaces and cannot
collide even when their field values coincide.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Sequence

from .errors import InvalidArgumentError

DELIMITER = "\x00"

KeyField = str | int


@dataclass(frozen=True)
class CompositeKey:
    """A namespace plus the ordered identifying fields of one record."""

    namespace: str
    fields: tuple[KeyField, ...]

    def encode(self) -> str:
        return encode(self.namespace, self.fields)

    def __str__(self) -> str:
        return self.encode()


def encode(namespace: str, fields: Sequence[KeyField]) -> str:
    """Derive the canonical key for ``fields`` under ``namespace``.

    Raises:
        InvalidArgumentError: If the namespace is empty or contains the
            delimiter, if no fields are given, or if a field is not a str/int.
    """
    if not namespace or DELIMITER in namespace:
        raise InvalidArgumentError("Invalid key namespace", namespace=namespace)
    if not fields:
        raise InvalidArgumentError("A composite key needs at least one field", namespace=namespace)

    parts = [namespace]
    for field in fields:
        # bool is an int subclass but is not a valid identifying field
        if isinstance(field, bool) or not isinstance(field, (str, int)):
            raise InvalidArgumentError(
                "Key fields must be strings or integers",
                namespace=namespace,
                field=repr(field),
            )
        parts.append(json.dumps(field, ensure_ascii=True))
    return DELIMITER + DELIMITER.join(parts) + DELIMITER


def decode(key: str) -> CompositeKey:
    """Inverse of :func:`encode`.

    Raises:
        InvalidArgumentError: If ``key`` is not a well-formed composite key.
    """
    if len(key) < 2 or not key.startswith(DELIMITER) or not key.endswith(DELIMITER):
        raise InvalidArgumentError("Malformed composite key", key=key)

    namespace, *raw_fields = key[1:-1].split(DELIMITER)
    if not namespace or not raw_fields:
        raise InvalidArgumentError("Malformed composite key", key=key)

    fields: list[KeyField] = []
    for raw in raw_fields:
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidArgumentError("Malformed composite key field", key=key, field=raw) from e
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise InvalidArgumentError("Malformed composite key field", key=key, field=raw)
        fields.append(value)
    return CompositeKey(namespace, tuple(fields))
