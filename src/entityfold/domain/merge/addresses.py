"""Collapse near-duplicate addresses gathered from a duplicate group."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .plan import AddressPayload

if TYPE_CHECKING:
    from collections.abc import Sequence

    from entityfold.domain.model import Address

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

type AddressKey = tuple[str, str, str]


def _normalize(value: str | None) -> str:
    if not value:
        return ""
    cleaned = _PUNCTUATION.sub(" ", value.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def address_key(address: Address) -> AddressKey | None:
    """Normalized street/city/postal identity; ``None`` when all three are blank."""

    street = _normalize(" ".join(filter(None, (address.address_line1, address.address_line2))))
    key = (street, _normalize(address.city), _normalize(address.postal_code).replace(" ", ""))
    if not any(key):
        return None
    return key


def merge_similar_addresses(
    kept: Sequence[Address],
    incoming: Sequence[Address],
) -> list[AddressPayload]:
    """Deduplicate ``kept`` + ``incoming`` addresses.

    The kept entity's addresses come first, so they win every collision. If the kept
    entity already has a primary address no incoming address may be primary;
    otherwise the first primary seen in ``incoming`` keeps its flag. Addresses without
    any usable street/city/postal data are passed through untouched.
    """

    merged: list[AddressPayload] = []
    by_key: dict[AddressKey, AddressPayload] = {}
    primary_taken = any(a.is_primary for a in kept if not a.is_deleted)

    for address in kept:
        if address.is_deleted:
            continue
        payload = AddressPayload.from_address(address)
        key = address_key(address)
        if key is not None:
            if key in by_key:
                continue
            by_key[key] = payload
        merged.append(payload)

    for address in incoming:
        if address.is_deleted:
            continue
        wants_primary = address.is_primary and not primary_taken
        key = address_key(address)
        if key is not None and key in by_key:
            survivor = by_key[key]
            if wants_primary and not survivor.is_primary:
                survivor.is_primary = True
                primary_taken = True
            continue
        payload = AddressPayload.from_address(address, is_primary=wants_primary)
        # re-created under the kept entity, the old row is retired
        payload.address_id = None
        if wants_primary:
            primary_taken = True
        if key is not None:
            by_key[key] = payload
        merged.append(payload)

    return merged
