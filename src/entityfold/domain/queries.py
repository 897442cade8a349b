"""Read-side duplicate listings over the directory."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from entityfold.domain.errors import ValidationError
from entityfold.domain.merge.grouping import entity_name_key, group_candidates, person_name_key
from entityfold.domain.model import EntityKind, PersonCandidate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from entityfold.domain.model import Entity, Person
    from entityfold.domain.ports.unit_of_work import MergeUnitOfWork

log = getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20

type UnitOfWorkFactory = Callable[[], MergeUnitOfWork]


@dataclass(slots=True, frozen=True)
class DuplicateNameGroup:
    name: str
    duplicate_count: int


@dataclass(slots=True, frozen=True)
class Pagination:
    limit: int
    page: int
    offset: int
    total: int


@dataclass(slots=True, frozen=True)
class DuplicateNamePage:
    groups: list[DuplicateNameGroup]
    pagination: Pagination


def parse_entity_kind(value: object) -> EntityKind:
    try:
        return EntityKind(int(str(value).strip()))
    except ValueError:
        raise ValidationError(f"Invalid entity type provided. ({value})") from None


def duplicate_entity_names(entities: Iterable[Entity]) -> list[DuplicateNameGroup]:
    """Names shared by two or more entities, shown as first seen."""

    groups = group_candidates(entities, entity_name_key)
    return [
        DuplicateNameGroup(name=(members[0].name or "").strip(), duplicate_count=len(members))
        for _, members in groups.items()
    ]


def duplicate_person_names(people: Iterable[Person]) -> list[str]:
    return [key for key, _ in group_candidates(people, person_name_key).items()]


def paginate(
    groups: list[DuplicateNameGroup],
    *,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_PAGE_SIZE,
) -> DuplicateNamePage:
    if page < 1:
        raise ValidationError("'page' must be greater than or equal to 1")
    if limit < 1:
        raise ValidationError("'limit' must be greater than or equal to 1")
    offset = (page - 1) * limit
    return DuplicateNamePage(
        groups=groups[offset : offset + limit],
        pagination=Pagination(limit=limit, page=page, offset=offset, total=len(groups)),
    )


def split_full_name(raw_name: str) -> tuple[str, str | None]:
    """``"John  Ronald Doe"`` -> ``("john", "ronald doe")``."""

    parts = raw_name.strip().split()
    if not parts:
        raise ValidationError("Query parameter 'name' is required")
    last = " ".join(parts[1:]).lower() or None
    return parts[0].lower(), last


class DuplicateQueries:
    """Read-only queries; each call runs in its own short unit of work."""

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self.unit_of_work_factory = unit_of_work_factory

    def similar_entity_names(self, kind: int = EntityKind.ORGANIZATION) -> list[str]:
        with self.unit_of_work_factory() as uow:
            entities = uow.repositories.entities.list_active(kind=kind)
        return [group.name for group in duplicate_entity_names(entities)]

    def similar_entity_names_page(
        self,
        kind: object,
        *,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> DuplicateNamePage:
        entity_kind = parse_entity_kind(kind)
        with self.unit_of_work_factory() as uow:
            entities = uow.repositories.entities.list_active(kind=entity_kind)
        return paginate(duplicate_entity_names(entities), page=page, limit=limit)

    def similar_people_names(self) -> list[str]:
        with self.unit_of_work_factory() as uow:
            people = uow.repositories.people.list_named()
        return duplicate_person_names(people)

    def entities_named(self, name: str) -> list[Entity]:
        if not name.strip():
            raise ValidationError("Entity name is required")
        with self.unit_of_work_factory() as uow:
            return uow.repositories.entities.find_by_name(name)

    def analysis_candidates(self, raw_name: str) -> list[PersonCandidate]:
        """People matching ``raw_name`` paired with their (non-deleted) entities."""

        first, last = split_full_name(raw_name)
        with self.unit_of_work_factory() as uow:
            people = uow.repositories.people.find_by_name(first, last)
            entity_ids = {p.entity_id for p in people if p.entity_id is not None}
            entities = {
                entity.entity_id: entity
                for entity in uow.repositories.entities.find_active(entity_ids)
            }
        candidates = [
            PersonCandidate(person=person, entity=entities[person.entity_id])
            for person in people
            if person.entity_id in entities
        ]
        log.info("Found %s candidate people for %r", len(candidates), raw_name)
        return candidates
