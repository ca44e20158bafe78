"""
Patient Service
Roster writes with institution / name validation and calendar rename propagation
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.error_handling import ConflictException, NotFoundException, ValidationException
from app.models import BillingType
from app.schemas.billing import (
    Patient,
    PatientCreate,
    PatientUpdate,
    PatientUpdateResponse,
    RenameResult,
)
from app.services.billing.normalizer import normalize_name
from app.services.calendar import CalendarProvider
from app.services.stores import AliasStore, PatientStore

logger = logging.getLogger(__name__)

_PATIENT_FIELDS = (
    "name", "phone", "session_price", "billing_type", "parent_patient_id",
    "commission_enabled", "commission_type", "commission_value",
)


class PatientService:
    """Patient roster operations for one therapist"""

    def __init__(self, db: AsyncSession, therapist_id: str, calendar: Optional[CalendarProvider] = None):
        self.db = db
        self.therapist_id = therapist_id
        self.calendar = calendar
        self.patients = PatientStore(db, therapist_id)
        self.aliases = AliasStore(db, therapist_id)

    async def list(self) -> List[Patient]:
        return await self.patients.list()

    async def _validate(self, data: Dict[str, Any], patient_id: Optional[str] = None):
        """
        Reject nested institutions, non-institution parents and names that
        normalize to another patient's name
        """
        name = data["name"]
        if not normalize_name(name):
            raise ValidationException("Patient name is empty", details={"name": name})

        parent_id = data.get("parent_patient_id")
        if parent_id:
            if data.get("billing_type") == BillingType.INSTITUTION:
                raise ValidationException(
                    "An institution cannot belong to another institution",
                    details={"parent_patient_id": parent_id},
                )
            if parent_id == patient_id:
                raise ValidationException("A patient cannot be its own parent", details={"parent_patient_id": parent_id})
            parent = await self.patients.get(parent_id)
            if parent is None:
                raise ValidationException("Parent patient not found", details={"parent_patient_id": parent_id})
            if parent.billing_type != BillingType.INSTITUTION:
                raise ValidationException(
                    "Parent patient must be an institution",
                    details={"parent_patient_id": parent_id},
                )

        roster = await self.patients.list()
        if patient_id and data.get("billing_type") != BillingType.INSTITUTION:
            children = [other.id for other in roster if other.parent_patient_id == patient_id]
            if children:
                raise ValidationException(
                    "An institution with child patients must stay an institution",
                    details={"patient_id": patient_id, "child_patient_ids": children},
                )

        key = normalize_name(name)
        for other in roster:
            if other.id != patient_id and normalize_name(other.name) == key:
                raise ConflictException(
                    "Another patient already has this name",
                    details={"name": name, "patient_id": other.id},
                )

    async def create(self, data: PatientCreate) -> Patient:
        values = data.model_dump()
        values["name"] = values["name"].strip()
        await self._validate(values)

        record = await self.patients.create(values)
        logger.info(f"Created patient {record.id} for therapist {self.therapist_id}")
        return Patient.model_validate(record)

    async def update(self, patient_id: str, data: PatientUpdate) -> PatientUpdateResponse:
        record = await self.patients.get(patient_id)
        if record is None:
            raise NotFoundException("Patient not found", details={"patient_id": patient_id})

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            changes["name"] = changes["name"].strip()
        for field in ("name", "session_price", "billing_type", "commission_enabled", "commission_type"):
            # These columns are not nullable
            if field in changes and changes[field] is None:
                del changes[field]

        merged = {field: getattr(record, field) for field in _PATIENT_FIELDS}
        merged.update(changes)
        await self._validate(merged, patient_id)

        old_name = record.name
        record = await self.patients.update(record, changes)
        patient = Patient.model_validate(record)

        calendar_rename = None
        if old_name != patient.name:
            calendar_rename = await self.propagate_rename(patient_id, old_name, patient.name)
        return PatientUpdateResponse(patient=patient, calendar_rename=calendar_rename)

    async def propagate_rename(self, patient_id: str, old_name: str, new_name: str) -> Optional[RenameResult]:
        """
        Retitle calendar events after a patient rename

        Covers the old name plus every alias label of the patient that
        differs from it. Failures are only counted; the rename itself stands.
        """
        if self.calendar is None:
            logger.info(f"Patient {patient_id} renamed without a connected calendar; events keep '{old_name}'")
            return None

        labels = [old_name]
        for alias in await self.aliases.for_patient(patient_id):
            if alias.event_name != old_name and alias.event_name not in labels:
                labels.append(alias.event_name)

        total = RenameResult()
        for label in labels:
            result = await self.calendar.rename_events(label, new_name)
            total.updated += result.updated
            total.failed += result.failed

        logger.info(
            f"Patient {patient_id} renamed '{old_name}' -> '{new_name}': "
            f"{total.updated} calendar events updated, {total.failed} failed"
        )
        return total

    async def delete(self, patient_id: str):
        record = await self.patients.get(patient_id)
        if record is None:
            raise NotFoundException("Patient not found", details={"patient_id": patient_id})
        await self.patients.delete(record)
        logger.info(f"Deleted patient {patient_id} for therapist {self.therapist_id}")
