"""Pydantic models for the two record shapes kept on the ledger.

Records are validated when constructed and again on every field
assignment, so a negative balance or an empty identifying field is
rejected before a key is derived or a byte is written.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import keys
from .errors import InvalidArgumentError

RecordT = TypeVar("RecordT", bound="LedgerRecord")

_DIGITS = re.compile(r"[0-9]+")


class IdentityStatus(str, Enum):
    """Identity lifecycle: Requested -> Approved, never reversed."""

    REQUESTED = "Requested"
    APPROVED = "Approved"


class AssetStatus(str, Enum):
    """Asset lifecycle.

    Requested -> Registered on registrar approval. The owner may move a
    Registered asset to OnSale. Only a purchase resets it to Registered.
    """

    REQUESTED = "Requested"
    REGISTERED = "Registered"
    ON_SALE = "OnSale"

    @classmethod
    def parse(cls, value: str) -> "AssetStatus":
        """Case-insensitive lookup by value ("onSale", "registered", ...)."""
        for status in cls:
            if status.value.lower() == value.strip().lower():
                return status
        raise ValueError(f"Unknown asset status: {value!r}")


class LedgerRecord(BaseModel):
    """Common shape: flat JSON document that carries its own key."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # Names of the fields forming the composite key, in order
    key_fields: ClassVar[tuple[str, ...]] = ()

    key: str = Field(min_length=1)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def key_matches_fields(self) -> "LedgerRecord":
        """The stored key must decode to this record's identifying fields."""
        expected = tuple(getattr(self, name) for name in self.key_fields)
        try:
            decoded = keys.decode(self.key)
        except InvalidArgumentError as e:
            raise ValueError(f"malformed key: {e.message}") from e
        if decoded.fields != expected:
            raise ValueError(f"key does not match fields {self.key_fields}: {expected}")
        return self

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls: type[RecordT], data: bytes) -> RecordT:
        return cls.model_validate_json(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class IdentityRecord(LedgerRecord):
    """A registered participant and their coin balance."""

    key_fields: ClassVar[tuple[str, ...]] = ("name", "national_id")

    name: str = Field(min_length=1)
    national_id: str = Field(min_length=1)
    email: str
    phone: str
    submitted_by: str = Field(min_length=1, description="Caller identity that requested the account")
    status: IdentityStatus = IdentityStatus.REQUESTED
    balance: int = Field(default=0, ge=0)
    approved_by: str | None = Field(default=None, description="Registrar that approved the request")

    @property
    def is_approved(self) -> bool:
        return self.status is IdentityStatus.APPROVED


class AssetRecord(LedgerRecord):
    """A property owned by an identity."""

    key_fields: ClassVar[tuple[str, ...]] = ("asset_id",)

    asset_id: str = Field(min_length=1)
    owner: str = Field(min_length=1, description="Encoded key of the owning identity")
    price: int = Field(gt=0)
    status: AssetStatus = AssetStatus.REQUESTED
    approved_by: str | None = None


# Request payloads, validated before any key is derived


class IdentityRequest(BaseModel):
    """Fields a participant submits with requestNewUser."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    national_id: str = Field(min_length=1)
    email: str
    phone: str


class AssetRequest(BaseModel):
    """Fields an owner submits with propertyRegistrationRequest.

    ``price`` arrives as a string argument and must be plain decimal digits:
    "300" is accepted, while "300.0", "+5", " 300 " and "abc" are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    asset_id: str = Field(min_length=1)
    price: int = Field(gt=0)

    @field_validator("price", mode="before")
    @classmethod
    def digits_only(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("price must be an integer")
        if isinstance(v, str) and not _DIGITS.fullmatch(v):
            raise ValueError(f"price must be decimal digits, got {v!r}")
        return v


RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: type[RequestT], action: str, **fields: Any) -> RequestT:
    """Validate a request payload, raising InvalidArgumentError on bad input."""
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        invalid = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise InvalidArgumentError(
            f"Invalid {model.__name__} input",
            action=action,
            fields=invalid,
        ) from e
