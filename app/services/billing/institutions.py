"""
Institution Aggregator
Folds the sessions of child patients into their institution's billing line
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from app.schemas.billing import Patient


class InstitutionAggregator:
    """Partitions a roster into billing owners and their children"""

    def __init__(self, patients: Iterable[Patient]):
        self.patients = list(patients)
        self.by_id: Dict[str, Patient] = {patient.id: patient for patient in self.patients}

        self.children_of: Dict[str, List[Patient]] = defaultdict(list)
        for patient in self.patients:
            if patient.parent_patient_id:
                self.children_of[patient.parent_patient_id].append(patient)

        # Institutions are always billed on their own line; other patients
        # only when they do not belong to a parent
        self.standalone: List[Patient] = [
            patient for patient in self.patients
            if patient.is_institution or not patient.parent_patient_id
        ]

    def children(self, patient: Patient) -> List[Patient]:
        if not patient.is_institution:
            return []
        return list(self.children_of.get(patient.id, []))

    def match_set(self, patient: Patient) -> List[Patient]:
        """Patients whose calendar labels bill under this patient"""
        return [patient] + self.children(patient)

    def billing_owner(self, patient: Patient) -> Optional[Patient]:
        """
        The standalone patient a session of `patient` is billed under

        None for a child whose parent is missing or is not an institution.
        """
        if patient.is_institution or not patient.parent_patient_id:
            return patient
        parent = self.by_id.get(patient.parent_patient_id)
        if parent is not None and parent.is_institution:
            return parent
        return None
