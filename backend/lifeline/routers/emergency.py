from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from lifeline.auth import PatientPrincipal, get_current_patient
from lifeline.exceptions import ValidationError
from lifeline.schemas.emergency import (
    AccessHistoryItem,
    AccessHistoryResponse,
    AccessVerificationResponse,
    EmergencyAccessRequest,
    EmergencyAccessResponse,
)
from lifeline.services.alert_dispatcher import Location
from lifeline.services.container import ServiceContainer, get_services
from lifeline.services.qr_broker import AccessorInfo

router = APIRouter()


@router.post("/access", response_model=EmergencyAccessResponse, status_code=201)
async def initiate_access(
    data: EmergencyAccessRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
):
    """Public endpoint hit by medical staff after scanning a patient's QR code."""
    location = None
    if (data.latitude is None) != (data.longitude is None):
        raise ValidationError("latitude and longitude must be provided together")
    if data.latitude is not None:
        location = Location(latitude=data.latitude, longitude=data.longitude, name=data.location_name)

    result = await services.broker.initiate(
        data.qr_token,
        AccessorInfo(
            name=data.accessor_name,
            role=data.accessor_role,
            license=data.accessor_license,
            institution_id=data.institution_id,
            institution_name=data.institution_name,
        ),
        location,
    )
    # Runs after the response is sent; the grant is already committed
    background_tasks.add_task(result.dispatch.run)

    return EmergencyAccessResponse(
        access_token=result.access_token,
        expires_at=result.expires_at,
        patient=result.patient,
        medical_info=result.medical_info,
        directive=result.directive,
        donation=result.donation,
        representatives=result.representatives,
    )


@router.get("/verify/{access_token}", response_model=AccessVerificationResponse)
async def verify_access(access_token: str, services: ServiceContainer = Depends(get_services)):
    verification = await services.broker.verify(access_token)
    if not verification.valid:
        raise HTTPException(status_code=401, detail="Access token expired")
    return AccessVerificationResponse(
        valid=verification.valid,
        expires_at=verification.expires_at,
        accessed_at=verification.accessed_at,
        reason=verification.reason,
    )


@router.get("/history", response_model=AccessHistoryResponse)
async def access_history(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    grants = await services.broker.access_history(current_patient.patient_id)
    return AccessHistoryResponse(
        accesses=[AccessHistoryItem.model_validate(g) for g in grants],
        total=len(grants),
    )
