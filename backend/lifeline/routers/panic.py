from fastapi import APIRouter, Depends, Query
from lifeline.auth import PatientPrincipal, get_current_patient, require_admin
from lifeline.schemas.panic import (
    ContactNotification,
    FacilitySnapshot,
    PanicActivateRequest,
    PanicActivateResponse,
    PanicAlertListResponse,
    PanicAlertResponse,
    PanicExpireResponse,
)
from lifeline.services.container import ServiceContainer, get_services

router = APIRouter()


@router.post("", response_model=PanicActivateResponse, status_code=201)
async def activate_panic(
    data: PanicActivateRequest,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    result = await services.panic.activate(
        current_patient.patient_id,
        data.latitude,
        data.longitude,
        accuracy=data.accuracy,
        message=data.message,
    )
    return PanicActivateResponse(
        alert_id=result.alert_id,
        status=result.status,
        facilities=[FacilitySnapshot(**m.snapshot()) for m in result.facilities],
        contacts_notified=[ContactNotification(**vars(r)) for r in result.contact_results],
        created_at=result.created_at,
    )


@router.get("/active", response_model=PanicAlertListResponse)
async def active_alerts(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    alerts = await services.panic.active_alerts(current_patient.patient_id)
    return PanicAlertListResponse(alerts=[PanicAlertResponse.model_validate(a) for a in alerts], total=len(alerts))


@router.get("/history", response_model=PanicAlertListResponse)
async def alert_history(
    limit: int = Query(10, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    alerts = await services.panic.alert_history(current_patient.patient_id, limit=limit)
    return PanicAlertListResponse(alerts=[PanicAlertResponse.model_validate(a) for a in alerts], total=len(alerts))


@router.post("/expire", response_model=PanicExpireResponse)
async def expire_stale_alerts(
    services: ServiceContainer = Depends(get_services),
    admin: PatientPrincipal = Depends(require_admin),
):
    expired = await services.panic.expire_stale()
    return PanicExpireResponse(expired=expired, total=len(expired))


@router.get("/{alert_id}", response_model=PanicAlertResponse)
async def get_alert(
    alert_id: str,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    alert = await services.panic.get_alert(alert_id, current_patient.patient_id)
    return PanicAlertResponse.model_validate(alert)


@router.delete("/{alert_id}")
async def cancel_panic(
    alert_id: str,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    await services.panic.cancel(alert_id, current_patient.patient_id)
    return {"cancelled": True, "alert_id": alert_id}


@router.post("/{alert_id}/resolve", response_model=PanicAlertResponse)
async def resolve_alert(
    alert_id: str,
    services: ServiceContainer = Depends(get_services),
    admin: PatientPrincipal = Depends(require_admin),
):
    alert = await services.panic.resolve(alert_id, resolved_by=admin.actor_name)
    return PanicAlertResponse.model_validate(alert)
