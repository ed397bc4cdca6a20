from fastapi import APIRouter, Depends
from lifeline.auth import PatientPrincipal, get_current_patient
from lifeline.schemas.contact import (
    ContactCreate,
    ContactListResponse,
    ContactReorderRequest,
    ContactResponse,
    ContactUpdate,
)
from lifeline.services.container import ServiceContainer, get_services

router = APIRouter()


def _list_response(contacts) -> ContactListResponse:
    return ContactListResponse(
        contacts=[ContactResponse.model_validate(c) for c in contacts],
        total=len(contacts),
    )


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    return _list_response(await services.contacts.list_contacts(current_patient.patient_id))


@router.post("", response_model=ContactResponse, status_code=201)
async def create_contact(
    data: ContactCreate,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    fields = data.model_dump()
    priority = fields.pop("priority")
    contact = await services.contacts.create_contact(current_patient.patient_id, priority=priority, **fields)
    return ContactResponse.model_validate(contact)


# Declared before "/{contact_id}" so "reorder" is not taken as an id
@router.put("/reorder", response_model=ContactListResponse)
async def reorder_contacts(
    data: ContactReorderRequest,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    contacts = await services.contacts.reorder(current_patient.patient_id, data.ordered_ids)
    return _list_response(contacts)


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    contact = await services.contacts.get_contact(current_patient.patient_id, contact_id)
    return ContactResponse.model_validate(contact)


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: str,
    data: ContactUpdate,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    fields = data.model_dump(exclude_unset=True)
    priority = fields.pop("priority", None)
    contact = await services.contacts.update_contact(
        current_patient.patient_id, contact_id, priority=priority, **fields
    )
    return ContactResponse.model_validate(contact)


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    await services.contacts.delete_contact(current_patient.patient_id, contact_id)
    return {"deleted": True, "contact_id": contact_id}


@router.post("/{contact_id}/donor-spokesperson", response_model=ContactResponse)
async def set_donor_spokesperson(
    contact_id: str,
    services: ServiceContainer = Depends(get_services),
    current_patient: PatientPrincipal = Depends(get_current_patient),
):
    contact = await services.contacts.set_donor_spokesperson(current_patient.patient_id, contact_id)
    return ContactResponse.model_validate(contact)
