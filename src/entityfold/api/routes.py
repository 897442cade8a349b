"""Cleanup routes: duplicate listings, oracle-assisted analysis and merge application."""

from __future__ import annotations

from logging import getLogger
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Request

from entityfold.app import MergeService

from .envelope import Envelope, ok
from .schemas import (
    AnalysisOut,
    DuplicateNamePageOut,
    EntityOut,
    MergeResultOut,
    ResolveDuplicatesRequest,
    analysis_out,
)

log = getLogger(__name__)

router = APIRouter(tags=["cleanup"])

MERGE_APPLIED_MESSAGE = "Duplicate merge applied successfully"


def get_service(request: Request) -> MergeService:
    return request.app.state.service


Service = Annotated[MergeService, Depends(get_service)]
ResolveBody = Annotated[ResolveDuplicatesRequest | None, Body()]


@router.get("/entities/similar/by-name")
def similar_entity_names(service: Service) -> Envelope[list[str]]:
    names = service.similar_entity_names()
    return ok(names, "Duplicate entities grouped by name retrieved successfully")


@router.get("/entities/similar/by-name/{entity_type}")
def similar_entity_names_by_type(
    entity_type: str,
    service: Service,
    page: Annotated[int, Query()] = 1,
    limit: Annotated[int, Query()] = 20,
) -> Envelope[DuplicateNamePageOut]:
    result = service.similar_entity_names_page(entity_type, page=page, limit=limit)
    return ok(
        DuplicateNamePageOut.from_page(result),
        "Duplicate entities grouped by name retrieved successfully",
    )


@router.get("/people/similar/by-name")
def similar_people_names(service: Service) -> Envelope[list[str]]:
    names = service.similar_people_names()
    return ok(names, "Duplicate people grouped by full name retrieved successfully")


@router.get("/entities/by-name/{name}")
def entities_by_name(name: str, service: Service) -> Envelope[list[EntityOut]]:
    entities = service.entities_named(name)
    return ok(
        [EntityOut.from_entity(entity) for entity in entities],
        "Entities with the given name retrieved successfully",
    )


@router.post("/entities/duplicates/analyze")
async def analyze_duplicates(
    service: Service,
    name: Annotated[str, Query()] = "",
) -> Envelope[AnalysisOut]:
    result = await service.analyze(name)
    if not result.total_found:
        return ok(analysis_out(result), "No people found matching the given name")
    return ok(analysis_out(result), "Potential duplicate groups analyzed successfully")


def _apply(service: MergeService, payload: ResolveDuplicatesRequest | None) -> Envelope[MergeResultOut]:
    proposal = (payload or ResolveDuplicatesRequest()).to_proposal()
    result = service.apply(proposal)
    return ok(MergeResultOut.from_result(result), MERGE_APPLIED_MESSAGE)


@router.post("/entities/resolve-duplicates")
def resolve_duplicates(service: Service, payload: ResolveBody = None) -> Envelope[MergeResultOut]:
    return _apply(service, payload)


@router.post("/entities/resolve-duplicates/manual")
def resolve_duplicates_manually(
    service: Service,
    payload: ResolveBody = None,
) -> Envelope[MergeResultOut]:
    log.info("Applying manually reviewed merge plan")
    return _apply(service, payload)
