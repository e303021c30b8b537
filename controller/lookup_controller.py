from fastapi import APIRouter, Depends, Query
from controller.controller_dependencies import get_lookup_service, rate_limit
from model.api import LookupRequest
from model.lookup import LookupResult, RegisteredCltPage
from service.lookup_service import LookupService
from util.constants import InternalURIs

lookup_router = APIRouter(tags=["lookup"], dependencies=[Depends(rate_limit)])


@lookup_router.post(InternalURIs.LOOKUP, response_model=LookupResult)
async def lookup_key(
    payload: LookupRequest,
    service: LookupService = Depends(get_lookup_service),
) -> LookupResult:
    return await service.lookup(payload.key)


@lookup_router.get(InternalURIs.REGISTRATIONS, response_model=RegisteredCltPage)
async def registered_clts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    service: LookupService = Depends(get_lookup_service),
) -> RegisteredCltPage:
    return await service.registered(page=page, limit=limit)
