"""
Geomatch engine: great-circle distance and condition-aware facility ranking.

The ranking constants below are fixed clinical routing policy:

- each known condition maps to the specialties a facility should offer;
- "Emergency Medicine" is always required;
- tier bonus: +15 third level, +5 second level;
- criticality bonus (any critical condition): +20 ICU, +10 trauma unit;
- scores are clamped to [0, 100];
- when prioritizing, scores within SCORE_TIE_BAND points are ordered by
  distance instead, so a marginal score edge never beats a closer facility.
"""

import math
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.models.facility import AttentionLevel, Facility

EARTH_RADIUS_KM = 6371.0

BASELINE_SPECIALTY = "Emergency Medicine"

CONDITION_SPECIALTIES: dict[str, list[str]] = {
    "Diabetes": ["Endocrinology", "Internal Medicine", "Nephrology", "Ophthalmology"],
    "Hypertension": ["Cardiology", "Internal Medicine", "Nephrology"],
    "Heart Disease": ["Cardiology", "Cardiovascular Surgery", "Emergency Medicine"],
    "Heart Attack": ["Cardiology", "Cardiovascular Surgery", "Emergency Medicine", "Intensive Care"],
    "Heart Failure": ["Cardiology", "Internal Medicine", "Intensive Care"],
    "COPD": ["Pulmonology", "Internal Medicine", "Emergency Medicine"],
    "Asthma": ["Pulmonology", "Allergology", "Emergency Medicine"],
    "Cancer": ["Oncology", "Surgical Oncology", "Radiotherapy", "Chemotherapy"],
    "Kidney Failure": ["Nephrology", "Dialysis", "Internal Medicine"],
    "Epilepsy": ["Neurology", "Emergency Medicine"],
    "Stroke": ["Neurology", "Neurosurgery", "Emergency Medicine", "Intensive Care"],
    "Alzheimer": ["Neurology", "Geriatrics", "Psychiatry"],
    "Parkinson": ["Neurology", "Geriatrics"],
    "Fracture": ["Traumatology", "Orthopedics", "Emergency Medicine"],
    "Major Trauma": ["Traumatology", "General Surgery", "Emergency Medicine", "Intensive Care"],
    "Burns": ["Plastic Surgery", "Emergency Medicine", "Intensive Care"],
    "Pregnancy": ["Gynecology", "Obstetrics", "Neonatology"],
    "High-Risk Pregnancy": ["Gynecology", "Obstetrics", "Maternal-Fetal Medicine", "Neonatology", "Intensive Care"],
    "Pediatric": ["Pediatrics", "Pediatric Emergency"],
    "Severe Allergies": ["Allergology", "Emergency Medicine", "Intensive Care"],
}

CRITICAL_CONDITIONS = frozenset({"heart attack", "stroke", "major trauma", "burns"})

TIER_BONUS = {AttentionLevel.THIRD: 15, AttentionLevel.SECOND: 5}
ICU_BONUS = 20
TRAUMA_BONUS = 10
SCORE_TIE_BAND = 10

_CONDITIONS_BY_KEY = {name.lower(): name for name in CONDITION_SPECIALTIES}


def _to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = _to_radians(lat2 - lat1)
    d_lon = _to_radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(_to_radians(lat1)) * math.cos(_to_radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


def is_valid_coordinates(lat, lon) -> bool:
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def maps_url(lat: float, lon: float) -> str:
    return f"https://www.google.com/maps?q={lat},{lon}"


def directions_url(from_lat: float, from_lon: float, to_lat: float, to_lon: float) -> str:
    return f"https://www.google.com/maps/dir/{from_lat},{from_lon}/{to_lat},{to_lon}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def canonical_condition(condition: str) -> Optional[str]:
    return _CONDITIONS_BY_KEY.get(condition.strip().lower())


def required_specialties(conditions: Iterable[str]) -> list[str]:
    """Specialties needed for the given conditions, in first-seen order."""
    specialties: list[str] = []
    for condition in conditions:
        name = canonical_condition(condition)
        for spec in CONDITION_SPECIALTIES.get(name, []):
            if spec not in specialties:
                specialties.append(spec)
    return specialties


def known_conditions() -> list[str]:
    return list(CONDITION_SPECIALTIES)


def _specialty_matches(required: str, offered: str) -> bool:
    r, o = required.lower(), offered.lower()
    return r in o or o in r


def matched_specialties(required: list[str], offered: Iterable[str]) -> list[str]:
    offered = [o for o in (offered or []) if o]
    return [spec for spec in required if any(_specialty_matches(spec, o) for o in offered)]


def score_facility(facility, required: list[str], has_critical: bool) -> tuple[int, list[str]]:
    """Return (match score in [0, 100], matched specialties)."""
    matched = matched_specialties(required, facility.specialties)
    score = _round_half_up(100 * len(matched) / len(required)) if required else 0

    score += TIER_BONUS.get(facility.attention_level, 0)
    if has_critical and facility.has_icu:
        score += ICU_BONUS
    if has_critical and facility.has_trauma:
        score += TRAUMA_BONUS

    return max(0, min(score, 100)), matched


def _prioritized_order(a: "FacilityMatch", b: "FacilityMatch") -> int:
    score_diff = (b.match_score or 0) - (a.match_score or 0)
    if abs(score_diff) > SCORE_TIE_BAND:
        return score_diff
    return (a.distance > b.distance) - (a.distance < b.distance)


@dataclass
class CapabilityFilters:
    require_emergency: bool = False
    require_24_hours: bool = False
    require_icu: bool = False
    require_trauma: bool = False
    attention_level: Optional[AttentionLevel] = None
    facility_type: Optional[str] = None

    def accepts(self, facility) -> bool:
        if self.require_emergency and not facility.has_emergency:
            return False
        if self.require_24_hours and not facility.has_24_hours:
            return False
        if self.require_icu and not facility.has_icu:
            return False
        if self.require_trauma and not facility.has_trauma:
            return False
        if self.attention_level and facility.attention_level != self.attention_level:
            return False
        if self.facility_type and facility.type != self.facility_type:
            return False
        return True


@dataclass
class FacilityMatch:
    facility: Facility
    distance: float
    match_score: Optional[int] = None
    matched_specialties: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.facility.name

    @property
    def contact_phone(self) -> Optional[str]:
        return self.facility.emergency_phone or self.facility.phone

    def snapshot(self) -> dict:
        """Persisted shape: {id, name, distance[, match_score]}."""
        data = {"id": self.facility.id, "name": self.facility.name, "distance": round(self.distance, 3)}
        if self.match_score is not None:
            data["match_score"] = self.match_score
        return data


class FacilityCatalog(Protocol):
    async def active_facilities(self) -> list[Facility]:
        """Active facilities that have coordinates."""
        ...


class SqlFacilityCatalog:
    """Read-only view over the externally maintained facility table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def active_facilities(self) -> list[Facility]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Facility).where(
                    Facility.is_active.is_(True),
                    Facility.latitude.isnot(None),
                    Facility.longitude.isnot(None),
                )
            )
            return list(result.scalars().all())


def rank_by_distance(
    facilities: Iterable[Facility],
    latitude: float,
    longitude: float,
    radius_km: float,
    limit: int,
    filters: Optional[CapabilityFilters] = None,
) -> list[FacilityMatch]:
    filters = filters or CapabilityFilters()
    matches = []
    for facility in facilities:
        if facility.latitude is None or facility.longitude is None:
            continue
        if not filters.accepts(facility):
            continue
        distance = haversine_distance(latitude, longitude, facility.latitude, facility.longitude)
        if distance <= radius_km:
            matches.append(FacilityMatch(facility=facility, distance=distance))

    matches.sort(key=lambda m: m.distance)
    return matches[:limit]


def rank_by_condition(
    facilities: Iterable[Facility],
    latitude: float,
    longitude: float,
    conditions: list[str],
    radius_km: float,
    limit: int,
    prioritize: bool = True,
) -> list[FacilityMatch]:
    required = required_specialties(conditions)
    if BASELINE_SPECIALTY not in required:
        required.append(BASELINE_SPECIALTY)

    has_critical = any(c.strip().lower() in CRITICAL_CONDITIONS for c in conditions)

    matches = []
    for facility in facilities:
        if not facility.has_emergency:
            continue
        if facility.latitude is None or facility.longitude is None:
            continue
        distance = haversine_distance(latitude, longitude, facility.latitude, facility.longitude)
        if distance > radius_km:
            continue
        score, matched = score_facility(facility, required, has_critical)
        matches.append(
            FacilityMatch(facility=facility, distance=distance, match_score=score, matched_specialties=matched)
        )

    if prioritize:
        matches.sort(key=cmp_to_key(_prioritized_order))
    else:
        matches.sort(key=lambda m: m.distance)
    return matches[:limit]


class GeomatchEngine:
    def __init__(self, catalog: FacilityCatalog):
        self.catalog = catalog

    async def nearby_by_distance(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 10,
        limit: int = 5,
        filters: Optional[CapabilityFilters] = None,
    ) -> list[FacilityMatch]:
        facilities = await self.catalog.active_facilities()
        return rank_by_distance(facilities, latitude, longitude, radius_km, limit, filters)

    async def nearby_by_condition(
        self,
        latitude: float,
        longitude: float,
        conditions: list[str],
        radius_km: float = 15,
        limit: int = 10,
        prioritize: bool = True,
    ) -> list[FacilityMatch]:
        facilities = await self.catalog.active_facilities()
        return rank_by_condition(facilities, latitude, longitude, conditions, radius_km, limit, prioritize)

    async def nearest(self, latitude: float, longitude: float) -> Optional[FacilityMatch]:
        matches = await self.nearby_by_distance(latitude, longitude, radius_km=50, limit=1)
        return matches[0] if matches else None

    async def for_patient(self, latitude: float, longitude: float, conditions: list[str]) -> list[FacilityMatch]:
        """Emergency routing: condition-aware when conditions are known."""
        if conditions:
            return await self.nearby_by_condition(
                latitude, longitude, conditions, radius_km=20, limit=5, prioritize=True
            )
        return await self.nearby_by_distance(latitude, longitude, radius_km=20, limit=5)
