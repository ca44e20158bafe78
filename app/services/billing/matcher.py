"""
Patient Matcher
Resolves a calendar event label to a patient of the roster
"""
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional

from app.schemas.billing import EventAlias, Patient
from app.services.billing.normalizer import normalize_name

logger = logging.getLogger(__name__)

MIN_SUGGESTION_LENGTH = 2


class MatchResult(NamedTuple):
    patient: Patient
    via_alias: bool


def build_alias_map(aliases: Iterable[EventAlias]) -> Dict[str, str]:
    """normalized event label -> patient id"""
    return {normalize_name(alias.event_name): alias.patient_id for alias in aliases}


class PatientMatcher:
    """
    Exact-then-alias matcher over a fixed candidate list

    An exact normalized name match always beats an alias, so an alias left
    over from before a rename can never steal a label that now names a
    patient directly. Duplicate normalized names resolve to the first
    candidate in roster order.
    """

    def __init__(self, candidates: Iterable[Patient], alias_map: Dict[str, str]):
        self.candidates = list(candidates)
        self.alias_map = alias_map
        self._by_key: Dict[str, Patient] = {}
        for patient in self.candidates:
            self._by_key.setdefault(normalize_name(patient.name), patient)
        self._by_id = {patient.id: patient for patient in self.candidates}

    def match(self, label: str) -> Optional[MatchResult]:
        key = normalize_name(label)
        if not key:
            return None

        patient = self._by_key.get(key)
        if patient is not None:
            return MatchResult(patient, False)

        alias_patient_id = self.alias_map.get(key)
        if alias_patient_id:
            patient = self._by_id.get(alias_patient_id)
            if patient is not None:
                return MatchResult(patient, True)
            logger.debug(f"Alias for '{label}' points outside the candidate set ({alias_patient_id})")

        return None


def match_patient(
    label: str,
    candidates: Iterable[Patient],
    alias_map: Dict[str, str],
) -> Optional[MatchResult]:
    return PatientMatcher(candidates, alias_map).match(label)


def _tokens(key: str) -> set:
    return {token for token in key.split(" ") if len(token) >= MIN_SUGGESTION_LENGTH}


def suggest_partial_matches(label: str, patients: Iterable[Patient]) -> List[Patient]:
    """
    Loose "did you mean" candidates for an unmatched label

    Containment either way, or one shared word of two letters or more.
    Only ever shown to the user for confirmation.
    """
    key = normalize_name(label)
    if len(key) < MIN_SUGGESTION_LENGTH:
        return []

    label_tokens = _tokens(key)
    suggestions = []
    for patient in patients:
        name_key = normalize_name(patient.name)
        if not name_key:
            continue
        if key in name_key or name_key in key or label_tokens & _tokens(name_key):
            suggestions.append(patient)
    return suggestions
