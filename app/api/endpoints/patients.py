"""
Patient Roster API
"""
from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_patient_service
from app.schemas.billing import Patient, PatientCreate, PatientUpdate, PatientUpdateResponse
from app.services.patient_service import PatientService

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.get("", response_model=List[Patient])
async def list_patients(service: PatientService = Depends(get_patient_service)):
    return await service.list()


@router.post("", response_model=Patient, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient: PatientCreate,
    service: PatientService = Depends(get_patient_service),
):
    """
    Add a patient to the roster
    Institutions cannot have a parent; a parent must be an institution
    """
    return await service.create(patient)


@router.put("/{patient_id}", response_model=PatientUpdateResponse)
async def update_patient(
    patient_id: str,
    patient: PatientUpdate,
    service: PatientService = Depends(get_patient_service),
):
    """
    Update a patient
    A rename is propagated to the calendar when a calendar token is sent
    """
    return await service.update(patient_id, patient)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: str,
    service: PatientService = Depends(get_patient_service),
):
    await service.delete(patient_id)
