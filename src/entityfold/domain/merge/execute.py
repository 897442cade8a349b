"""Apply a merge proposal as one atomic unit of work."""

from __future__ import annotations

import time
from datetime import UTC, date, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from entityfold.domain.errors import MergeError, NotFoundError, TransactionError, ValidationError
from entityfold.domain.model import Address, EntityProperty, MergeStatus, Person

from .audit import merge_audit_record
from .locks import EntityLockRegistry
from .plan import MergeResult, collapse_properties
from .validate import ensure_entities_exist, validate_proposal

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from entityfold.domain.model import Entity
    from entityfold.domain.ports.unit_of_work import MergeRepositories, MergeUnitOfWork

    from .plan import AddressPayload, MergedFields, MergeProposal, PersonPayload, PropertyPayload

log = getLogger(__name__)

DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 100.0

type MergeUnitOfWorkFactory = Callable[[], MergeUnitOfWork]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def sanitize_date(value: object) -> date | None:
    """Best-effort date coercion; anything unusable becomes ``None``."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


class _Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float]) -> None:
        self.seconds = seconds
        self._clock = clock
        self._expires = clock() + seconds

    def check(self, step: str) -> None:
        if self._clock() > self._expires:
            raise TransactionError(
                f"transaction timeout of {self.seconds:g}s exceeded while {step}"
            )


class MergeExecutor:
    """Validates and applies proposals; the only writer allowed to soft-delete entities."""

    def __init__(
        self,
        unit_of_work_factory: MergeUnitOfWorkFactory,
        *,
        locks: EntityLockRegistry | None = None,
        timeout_seconds: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
        lock_wait_seconds: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.unit_of_work_factory = unit_of_work_factory
        self.locks = locks or EntityLockRegistry()
        self.timeout_seconds = timeout_seconds
        self.lock_wait_seconds = timeout_seconds if lock_wait_seconds is None else lock_wait_seconds
        self._clock = clock
        self._monotonic = monotonic

    def apply(self, proposal: MergeProposal) -> MergeResult:
        try:
            validate_proposal(proposal)
        except ValidationError:
            if not proposal.status.is_terminal:
                proposal.status = MergeStatus.REJECTED
            raise

        entity_ids = proposal.entity_ids()
        try:
            with self.locks.hold(entity_ids, timeout=self.lock_wait_seconds):
                result = self._apply_locked(proposal, entity_ids)
        except NotFoundError:
            proposal.status = MergeStatus.REJECTED
            raise
        except MergeError:
            proposal.status = MergeStatus.FAILED
            raise
        except Exception as exc:
            proposal.status = MergeStatus.FAILED
            log.exception("Merge into entity %s failed", proposal.keep_id)
            raise TransactionError(str(exc) or type(exc).__name__) from exc

        proposal.status = MergeStatus.APPLIED
        log.info(
            "Merged entities %s into %s (audit %s)",
            result.deleted_entity_ids,
            result.merged_entity_id,
            result.audit_id,
        )
        return result

    def _apply_locked(self, proposal: MergeProposal, entity_ids: list[int]) -> MergeResult:
        deadline = _Deadline(self.timeout_seconds, self._monotonic)
        keep_id = proposal.keep_id
        remove_ids = proposal.distinct_remove_ids()
        if keep_id is None:
            raise ValidationError("Field 'keep_entity_id' is required")

        with self.unit_of_work_factory() as uow:
            repositories = uow.repositories
            entities = repositories.entities.find_active(entity_ids, for_update=True)
            ensure_entities_exist(entity_ids, entities)
            proposal.status = MergeStatus.VALIDATED

            by_id = {entity.entity_id: entity for entity in entities}
            kept = by_id[keep_id]
            removed = [by_id[entity_id] for entity_id in remove_ids]
            now = self._clock()

            self._update_entity(kept, proposal.merged_fields, now)
            deadline.check("updating the kept entity")

            self._upsert_people(kept, proposal.merged_people or [], now)
            retired_people = self._retire_people(removed, now)
            deadline.check("merging people")

            self._upsert_addresses(kept, proposal.merged_addresses or [], now)
            retired_addresses = self._retire_addresses(removed, now)
            deadline.check("merging addresses")

            self._replace_properties(repositories, kept, proposal.merged_properties or [], now)
            dropped_properties = sum(
                repositories.properties.delete_owned_by(entity) for entity in removed
            )
            deadline.check("replacing properties")

            for entity in removed:
                entity.is_deleted = True
                entity.deleted_at = now
                entity.updated_at = now

            record = merge_audit_record(proposal, at=now)
            repositories.audits.add(record)
            deadline.check("writing the audit record")

            uow.commit()

        log.debug(
            "Retired %s people, %s addresses, %s properties from %s",
            retired_people,
            retired_addresses,
            dropped_properties,
            remove_ids,
        )
        return MergeResult(
            merged_entity_id=keep_id,
            deleted_entity_ids=remove_ids,
            audit_id=record.audit_id,
        )

    @staticmethod
    def _update_entity(kept: Entity, fields: MergedFields, now: datetime) -> None:
        if fields.name is not None:
            kept.name = fields.name
        if fields.trade_name_supplied:
            kept.trade_name = fields.trade_name
        kept.updated_at = now

    @staticmethod
    def _upsert_people(kept: Entity, people: Sequence[PersonPayload], now: datetime) -> None:
        for payload in people:
            changes = payload.changes()
            if "date_of_birth" in changes:
                changes["date_of_birth"] = sanitize_date(changes["date_of_birth"])
            existing = kept.find_person(payload.people_id)
            if existing is not None:
                for name, value in changes.items():
                    setattr(existing, name, value)
                existing.updated_at = now
                continue
            person = Person(entity_id=kept.entity_id, created_at=now, updated_at=now)
            for name, value in changes.items():
                setattr(person, name, value)
            kept.people.append(person)

    @staticmethod
    def _retire_people(removed: Sequence[Entity], now: datetime) -> int:
        retired = 0
        for entity in removed:
            for person in entity.active_people:
                person.deleted_at = now
                person.updated_at = now
                retired += 1
        return retired

    @staticmethod
    def _upsert_addresses(kept: Entity, addresses: Sequence[AddressPayload], now: datetime) -> None:
        for payload in addresses:
            changes = payload.changes()
            existing = kept.find_address(payload.address_id)
            if existing is not None:
                for name, value in changes.items():
                    setattr(existing, name, value)
                existing.updated_at = now
                continue
            address = Address(entity_id=kept.entity_id, created_at=now, updated_at=now)
            for name, value in changes.items():
                setattr(address, name, value)
            kept.addresses.append(address)

    @staticmethod
    def _retire_addresses(removed: Sequence[Entity], now: datetime) -> int:
        retired = 0
        for entity in removed:
            for address in entity.active_addresses:
                address.deleted_at = now
                address.updated_at = now
                retired += 1
        return retired

    @staticmethod
    def _replace_properties(
        repositories: MergeRepositories,
        kept: Entity,
        properties: Sequence[PropertyPayload],
        now: datetime,
    ) -> None:
        # full replace: anything not in the proposal is gone afterwards
        repositories.properties.delete_owned_by(kept)
        for payload in collapse_properties(properties):
            kept.properties.append(
                EntityProperty(
                    entity_id=kept.entity_id,
                    property_id=payload.property_id,
                    property_value=payload.property_value,
                    is_primary=payload.is_primary,
                    created_at=now,
                    updated_at=now,
                )
            )
