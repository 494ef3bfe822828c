"""
Multi-domain LMIC priority enforcement.

Runs last in the case pipeline, after the domain-specific adapters, so that
nothing added earlier reintroduces high-resource care into an LMIC case:
advanced imaging is replaced with clinical assessment, expensive drugs with WHO
Essential Medicine alternatives, and WHO guidelines are put first.
"""
import copy
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

LMIC_CLINICAL_PATHWAY = (
    "Clinical diagnosis and management based on history, physical examination, "
    "and basic laboratory tests. Advanced imaging replaced with clinical scoring "
    "systems and serial monitoring."
)
IMAGING_LMIC_NOTE = " (LMIC adaptation: advanced imaging unavailable, using clinical pathways)"
PHARMACOLOGY_LMIC_NOTE = (
    "All medications selected from WHO Essential Medicines List. Expensive or "
    "unavailable drugs replaced with accessible alternatives."
)
WHO_PRIMARY_GUIDELINE = "WHO Evidence-Based Guidelines (Primary for LMIC)"
LMIC_ENFORCEMENT_NOTE = (
    "LMIC priority enforced: advanced imaging removed, medications replaced with "
    "WHO Essential Medicines, WHO guidelines prioritized."
)

BIOLOGIC_ALTERNATIVE = "WHO Essential Medicine alternative (see LMIC adaptations)"
RESERVE_ANTIBIOTIC_ALTERNATIVE = "WHO Essential Medicine alternative: clindamycin or metronidazole if indicated"

GUIDELINE_ORDER = (
    "international", "local", "country", "regional", "continental", "usa", "specialty_specific",
)

_IMAGING_REWRITES = [
    re.compile(r"\bCT\s+scan\b", re.IGNORECASE),
    # Leaves "(MRI unavailable in LMIC)" from the stroke correction alone
    re.compile(r"\bMRI\b(?!\s+unavailable in LMIC)", re.IGNORECASE),
    re.compile(r"\bcomputed\s+tomography\b", re.IGNORECASE),
    re.compile(r"\bmagnetic\s+resonance\s+imaging\b", re.IGNORECASE),
]
_STABILIZATION_REWRITES = [
    re.compile(r"\bCT\b(?!\s+unavailable in LMIC)", re.IGNORECASE),
    re.compile(r"\bMRI\b(?!\s+unavailable in LMIC)", re.IGNORECASE),
]


def _to_clinical_assessment(text: str, patterns) -> str:
    for pattern in patterns:
        text = pattern.sub("clinical assessment", text)
    return text


def _replace_drug(drug: Any) -> Any:
    if not isinstance(drug, str):
        return drug
    lowered = drug.lower()
    if "biologic" in lowered or "monoclonal" in lowered:
        return BIOLOGIC_ALTERNATIVE
    if "linezolid" in lowered or "daptomycin" in lowered:
        return RESERVE_ANTIBIOTIC_ALTERNATIVE
    return drug


def _is_who(entry: Any) -> bool:
    lowered = str(entry).lower()
    return "who" in lowered or "world health organization" in lowered


def enforce_lmic_priority(case: Any) -> Any:
    """Strip high-resource recommendations from an LMIC-mode case.

    Only cases whose ``meta.lmic_mode`` is exactly True are changed. Applying
    the enforcement twice gives the same result as applying it once.

    Args:
        case: Assembled case dict (not modified)

    Returns:
        A deep copy of the case with imaging, drugs and guideline order adapted
    """
    enforced = copy.deepcopy(case)
    if not isinstance(enforced, dict):
        return enforced
    meta = enforced.get("meta")
    if not isinstance(meta, dict) or meta.get("lmic_mode") is not True:
        return enforced

    management = enforced.get("management")
    if isinstance(management, dict):
        for field in ("initial", "definitive"):
            if isinstance(management.get(field), str):
                management[field] = _to_clinical_assessment(management[field], _IMAGING_REWRITES)
        if not management.get("lmic_clinical_pathway"):
            management["lmic_clinical_pathway"] = LMIC_CLINICAL_PATHWAY

        pharmacology = management.get("pharmacology")
        if isinstance(pharmacology, dict):
            if isinstance(pharmacology.get("key_drugs"), list):
                pharmacology["key_drugs"] = [_replace_drug(d) for d in pharmacology["key_drugs"]]
            if not pharmacology.get("lmic_alternatives"):
                pharmacology["lmic_alternatives"] = PHARMACOLOGY_LMIC_NOTE

    paraclinical = enforced.get("paraclinical")
    if isinstance(paraclinical, dict) and isinstance(paraclinical.get("imaging"), str):
        imaging = _to_clinical_assessment(paraclinical["imaging"], _IMAGING_REWRITES)
        if "clinical assessment" in imaging and IMAGING_LMIC_NOTE not in imaging:
            imaging += IMAGING_LMIC_NOTE
        paraclinical["imaging"] = imaging

    guidelines = enforced.get("guidelines")
    if isinstance(guidelines, dict):
        enforced["guidelines"] = _prioritize_who(guidelines)

    high_acuity = meta.get("high_acuity")
    if isinstance(high_acuity, dict) and isinstance(high_acuity.get("stabilization_pathway"), list):
        high_acuity["stabilization_pathway"] = [
            _to_clinical_assessment(step, _STABILIZATION_REWRITES) if isinstance(step, str) else step
            for step in high_acuity["stabilization_pathway"]
        ]

    if not meta.get("lmic_enforcement_applied"):
        logger.info("Enforced LMIC priority on generated case")
        meta["lmic_enforcement_applied"] = True
        meta["lmic_enforcement_note"] = LMIC_ENFORCEMENT_NOTE

    return enforced


def _prioritize_who(guidelines: dict) -> dict:
    """WHO first in ``international``, international first overall, primary locked."""
    international = guidelines.get("international")
    if not isinstance(international, list):
        international = []
    if not any(_is_who(g) for g in international):
        international.insert(0, WHO_PRIMARY_GUIDELINE)

    ordered = {"international": international}
    for key in GUIDELINE_ORDER[1:]:
        value = guidelines.get(key)
        ordered[key] = value if isinstance(value, list) else []
    # Keep anything else earlier steps attached (lmic_alternatives, ...)
    for key, value in guidelines.items():
        if key not in ordered:
            ordered[key] = value
    ordered["primary_locked"] = "international"
    return ordered
