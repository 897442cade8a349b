"""Partition records into candidate duplicate groups by normalized name."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from entityfold.domain.model import Entity, Person, PersonCandidate


def normalize_name(value: str | None) -> str:
    return (value or "").strip().lower()


def entity_name_key(entity: Entity) -> str:
    return normalize_name(entity.name)


def person_name_key(person: Person) -> str:
    parts = (normalize_name(person.first_name), normalize_name(person.last_name))
    return " ".join(part for part in parts if part)


def candidate_name_key(candidate: PersonCandidate) -> str:
    return person_name_key(candidate.person)


@dataclass(slots=True)
class CandidateGroups[T]:
    """Groups of two or more records sharing a non-empty key, in first-seen order."""

    groups: dict[str, list[T]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.groups)

    def items(self) -> list[tuple[str, list[T]]]:
        return list(self.groups.items())

    def __len__(self) -> int:
        return len(self.groups)


def group_candidates[T](records: Iterable[T], key: Callable[[T], str]) -> CandidateGroups[T]:
    buckets: dict[str, list[T]] = {}
    for record in records:
        record_key = key(record)
        if not record_key:
            continue
        buckets.setdefault(record_key, []).append(record)
    return CandidateGroups(
        groups={k: members for k, members in buckets.items() if len(members) >= 2}
    )
