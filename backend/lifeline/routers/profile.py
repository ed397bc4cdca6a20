from fastapi import APIRouter, Depends
from lifeline.auth import PatientPrincipal, get_current_patient
from lifeline.schemas.profile import MedicalInfoResponse, MedicalInfoUpdate, QRCodeResponse, QRRegenerateResponse
from lifeline.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("/qr", response_model=QRCodeResponse)
async def get_qr(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    info = await services.broker.get_qr(current_patient.patient_id)
    return QRCodeResponse(
        qr_token=info.qr_token,
        generated_at=info.generated_at,
        emergency_url=info.emergency_url,
        qr_data_url=info.qr_data_url,
    )


@router.post("/qr/regenerate", response_model=QRRegenerateResponse)
async def regenerate_qr(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    token = await services.broker.regenerate(current_patient.patient_id)
    return QRRegenerateResponse(qr_token=token, emergency_url=services.broker.emergency_url(token))


@router.get("/medical", response_model=MedicalInfoResponse)
async def get_medical_info(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    info = await services.profiles.get_medical_info(current_patient.patient_id)
    return MedicalInfoResponse(**vars(info))


@router.put("/medical", response_model=MedicalInfoResponse)
async def update_medical_info(
    data: MedicalInfoUpdate,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    info = await services.profiles.update_medical_info(
        current_patient.patient_id, **data.model_dump(exclude_unset=True)
    )
    return MedicalInfoResponse(**vars(info))
