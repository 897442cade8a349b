"""Pydantic models describing the resolution oracle wire format."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class OracleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, from_attributes=True)


class AddressPayload(OracleBaseModel):
    address_id: int | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_primary: bool = False


class PropertyPayload(OracleBaseModel):
    entity_property_id: int | None = None
    property_id: int
    property_value: str | None = None
    is_primary: bool = False


class EntityPayload(OracleBaseModel):
    entity_id: int
    name: str | None = None
    trade_name: str | None = None
    type: int = Field(validation_alias="kind")
    address: list[AddressPayload] = Field(default_factory=list, validation_alias="active_addresses")
    entity_property: list[PropertyPayload] = Field(
        default_factory=list, validation_alias="properties"
    )


class PersonPayload(OracleBaseModel):
    people_id: int
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    created_at: datetime | None = None
    entity: EntityPayload


class OracleRequestPayload(OracleBaseModel):
    primary: PersonPayload
    duplicates: list[PersonPayload]


class OracleDecisionPayload(OracleBaseModel):
    """Decision as returned by the oracle; ids may arrive as strings."""

    keep: int
    remove: list[int] = Field(default_factory=list)
    rationale: str | None = Field(default=None, alias="reason")

    @model_validator(mode="before")
    @classmethod
    def _unwrap_envelope(cls, value: object) -> object:
        if isinstance(value, Mapping):
            mapping_value = cast(Mapping[str, object], value)
            for wrapper in ("decision", "data", "result"):
                inner = mapping_value.get(wrapper)
                if isinstance(inner, Mapping) and "keep" in inner:
                    return inner
        return value

    @field_validator("remove", mode="before")
    @classmethod
    def _listify(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, (str, int)):
            return [value]
        return value

    _normalize_rationale = field_validator("rationale", mode="before")(_blank_to_none)
