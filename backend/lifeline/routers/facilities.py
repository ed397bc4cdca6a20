from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from lifeline.models.facility import AttentionLevel
from lifeline.schemas.facility import (
    ConditionListResponse,
    FacilityListResponse,
    FacilityMatchResponse,
    FacilityResponse,
)
from lifeline.services.container import ServiceContainer, get_services
from lifeline.services.geomatch import (
    CapabilityFilters,
    FacilityMatch,
    directions_url,
    is_valid_coordinates,
    known_conditions,
    maps_url,
    required_specialties,
)

router = APIRouter()


def _to_response(lat: float, lon: float, match: FacilityMatch) -> FacilityMatchResponse:
    f = match.facility
    return FacilityMatchResponse(
        facility=FacilityResponse.model_validate(f),
        distance=round(match.distance, 2),
        match_score=match.match_score,
        matched_specialties=match.matched_specialties,
        maps_url=maps_url(f.latitude, f.longitude),
        directions_url=directions_url(lat, lon, f.latitude, f.longitude),
    )


def _check_coordinates(lat: float, lon: float) -> None:
    if not is_valid_coordinates(lat, lon):
        raise HTTPException(status_code=400, detail="Invalid coordinates")


@router.get("/nearby", response_model=FacilityListResponse)
async def nearby_facilities(
    lat: float = Query(...),
    lon: float = Query(...),
    radius_km: float = Query(10, gt=0, le=200),
    limit: int = Query(5, ge=1, le=50),
    emergency: bool = Query(False, description="Only facilities with an emergency room"),
    open_24h: bool = Query(False),
    icu: bool = Query(False),
    trauma: bool = Query(False),
    attention_level: Optional[AttentionLevel] = Query(None),
    facility_type: Optional[str] = Query(None, alias="type"),
    services: ServiceContainer = Depends(get_services),
):
    _check_coordinates(lat, lon)
    filters = CapabilityFilters(
        require_emergency=emergency,
        require_24_hours=open_24h,
        require_icu=icu,
        require_trauma=trauma,
        attention_level=attention_level,
        facility_type=facility_type,
    )
    matches = await services.geomatch.nearby_by_distance(lat, lon, radius_km=radius_km, limit=limit, filters=filters)
    return FacilityListResponse(facilities=[_to_response(lat, lon, m) for m in matches], total=len(matches))


@router.get("/for-conditions", response_model=FacilityListResponse)
async def facilities_for_conditions(
    lat: float = Query(...),
    lon: float = Query(...),
    conditions: list[str] = Query(default=[]),
    radius_km: float = Query(15, gt=0, le=200),
    limit: int = Query(10, ge=1, le=50),
    prioritize: bool = Query(True),
    services: ServiceContainer = Depends(get_services),
):
    _check_coordinates(lat, lon)
    matches = await services.geomatch.nearby_by_condition(
        lat, lon, conditions, radius_km=radius_km, limit=limit, prioritize=prioritize
    )
    return FacilityListResponse(
        facilities=[_to_response(lat, lon, m) for m in matches],
        total=len(matches),
        required_specialties=required_specialties(conditions),
    )


@router.get("/conditions", response_model=ConditionListResponse)
async def list_conditions():
    return ConditionListResponse(conditions=known_conditions())
