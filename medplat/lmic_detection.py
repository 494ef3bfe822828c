"""
LMIC (low/middle income country) mode detection and generic adaptations.

A request is treated as LMIC when any of these hold:
  - the region label mentions LMIC or LOW
  - the case language is a typical LMIC teaching language
  - the caller declares low resources
  - the region is not one of the known high-resource regions
"""
import copy
import logging
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

LMIC_LANGUAGES = frozenset({"sw", "ha", "ps", "ur", "bn", "ne", "hi", "fa"})

HIGH_RESOURCE_REGIONS = (
    "US", "USA", "EU", "UK", "DK", "Denmark", "Sweden", "Norway",
    "Germany", "France", "Canada", "Australia", "United States", "United Kingdom",
)

DIAGNOSTIC_EVIDENCE_LMIC_NOTE = (
    "In resource-limited settings, prioritize clinical scoring systems and "
    "point-of-care tests over advanced diagnostics."
)


def _declares_low_resources(resources: Any) -> bool:
    if isinstance(resources, str):
        return resources.strip().lower() == "low"
    if isinstance(resources, dict):
        return str(resources.get("resources", "")).strip().lower() == "low"
    return False


def detect_lmic_mode(region: Optional[str], language: Optional[str] = "en", resources: Any = None) -> bool:
    """Decide whether a case should be adapted for a low-resource setting.

    Args:
        region: Region name or label; codes should be translated first
        language: Case language code
        resources: "low", or a dict with a "resources" key

    Returns:
        True unless the region is a known high-resource one and nothing
        else marks the request as LMIC
    """
    region_upper = (region or "").upper()
    language_lower = (language or "en").strip().lower()

    if "LMIC" in region_upper or "LOW" in region_upper:
        return True
    if language_lower in LMIC_LANGUAGES:
        return True
    if _declares_low_resources(resources):
        return True
    # Substring match, so "EU/DK" and "United States (USA)" both count as high-resource
    return not any(r.upper() in region_upper for r in HIGH_RESOURCE_REGIONS)


def build_lmic_adaptations(
    domains: Iterable[str],
    region: Optional[str],
    resources: Any = None,
    language: Optional[str] = "en",
) -> dict:
    """Generic resource-limited alternatives for a case's detected domains."""
    if not detect_lmic_mode(region, language, resources):
        return {"lmic_mode": False, "adaptations": {}}

    domains = {str(d).strip().lower() for d in domains}

    management = []
    if "infectious" in domains:
        management += [
            "Use WHO Essential Medicines List antibiotics",
            "Consider local resistance patterns and formulary availability",
            "Empiric therapy based on clinical presentation when cultures unavailable",
        ]
    if "cardiology" in domains:
        management += [
            "Use clinical risk scores (TIMI, GRACE) when troponin unavailable",
            "Aspirin and basic antiplatelet therapy when advanced agents unavailable",
        ]
    if "respiratory" in domains:
        management += [
            "Oxygen therapy and basic bronchodilators when advanced respiratory support unavailable",
            "Clinical assessment and scoring when ABG unavailable",
        ]

    return {
        "lmic_mode": True,
        "imaging_alternatives": [
            "Prioritize clinical examination and scoring systems over advanced imaging",
            "Use point-of-care ultrasound when available instead of CT/MRI",
            "Consider X-ray and clinical correlation when CT unavailable",
        ],
        "lab_alternatives": [
            "Use clinical scoring systems (e.g., Alvarado for appendicitis, Wells for PE) when labs limited",
            "Prioritize essential labs: glucose, electrolytes, basic CBC when available",
            "Use point-of-care tests (urine dipstick, rapid tests) when available",
        ],
        "management_alternatives": management,
        "antibiotic_alternatives": [
            "First-line: WHO Essential Medicines (amoxicillin, doxycycline, metronidazole)",
            "Second-line: Based on local availability and resistance patterns",
            "Avoid expensive broad-spectrum agents unless critically indicated",
        ],
        "clinical_pathways": [
            "Use clinical scoring systems for diagnosis",
            "Empiric treatment based on high clinical probability",
            "Monitor response clinically rather than with repeat imaging/labs",
        ],
        "warnings": [
            "Resource-limited setting: Adaptations applied for low-resource environment",
            "When advanced imaging unavailable, rely on clinical examination and scoring",
            "Antibiotic selection based on WHO Essential Medicines and local availability",
        ],
    }


def apply_lmic_adaptations(case: Any, adaptations: Optional[dict]) -> Any:
    """Merge LMIC clinical pathways and notes into a copy of the case."""
    adapted = copy.deepcopy(case)
    if not isinstance(adapted, dict) or not adaptations or not adaptations.get("lmic_mode"):
        return adapted

    guidelines = adapted.get("guidelines")
    if not isinstance(guidelines, dict):
        guidelines = {}
        adapted["guidelines"] = guidelines

    alternatives = guidelines.get("lmic_alternatives")
    if not isinstance(alternatives, list):
        alternatives = []
        guidelines["lmic_alternatives"] = alternatives

    pathways = adaptations.get("clinical_pathways")
    if isinstance(pathways, list):
        for pathway in pathways:
            if pathway not in alternatives:
                alternatives.append(pathway)

    paraclinical = adapted.get("paraclinical")
    if isinstance(paraclinical, dict) and isinstance(paraclinical.get("diagnostic_evidence"), dict):
        paraclinical["diagnostic_evidence"]["lmic_note"] = DIAGNOSTIC_EVIDENCE_LMIC_NOTE

    return adapted
