"""
Stroke guideline correction for low-resource (LMIC) settings.

When a generated neurology case is about stroke and the request runs in LMIC
mode, US-centric stroke pathways are demoted, WHO and an LMIC neurology
pathway become the primary references, ESO is kept as a secondary reference,
and imaging that is usually unavailable (CT/MRI) is rewritten to clinical
assessment in the management plan.

The adapter works on a deep copy; the caller's case is never modified.
Missing or oddly-typed fields are treated as "condition not met".
"""
import copy
import logging
import re
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

NEUROLOGY_TAGS = frozenset({"neurology", "neuro"})

WHO_STROKE_GUIDELINE = "WHO Package of Essential Noncommunicable Disease Interventions (PEN) - Stroke Management"
LMIC_NEURO_PATHWAY = (
    "LMIC Neurology Pathway: Clinical diagnosis, basic labs, clinical scoring "
    "(NIHSS adapted for resource-limited settings)"
)
ESO_SECONDARY_GUIDELINE = "ESO (European Stroke Organisation) Guidelines - Secondary reference for LMIC settings"

STROKE_LMIC_ADAPTATION_NOTE = {
    "guideline_order": "WHO → LMIC Neurology Pathway → ESO (secondary)",
    "imaging_removed": "CT/MRI unavailable, using clinical diagnosis and NIHSS adapted for resource-limited settings",
    "management_adapted": "Focus on clinical assessment, basic labs, and WHO Essential Medicines",
}

_US_STROKE_MARKERS = ("nih", "aha", "american heart association")

# Both management fields
_IMAGING_REWRITES = [
    (re.compile(r"\bCT\s+scan\b", re.IGNORECASE), "clinical assessment (CT unavailable in LMIC)"),
    # Lookahead keeps a second pass from rewriting our own marker
    (re.compile(r"\bMRI\b(?!\s+unavailable in LMIC)", re.IGNORECASE), "clinical assessment (MRI unavailable in LMIC)"),
]
# management.initial only
_INITIAL_ONLY_REWRITES = [
    (re.compile(r"\bcomputed\s+tomography\b", re.IGNORECASE), "clinical assessment"),
    (re.compile(r"\bmagnetic\s+resonance\s+imaging\b", re.IGNORECASE), "clinical assessment"),
]

StrokePredicate = Callable[..., bool]


def is_stroke_related(domains: Iterable[str], *texts: Any) -> bool:
    """Keyword check: any domain tag or free-text field mentions "stroke"."""
    if any("stroke" in str(d).lower() for d in domains):
        return True
    return any(isinstance(t, str) and "stroke" in t.lower() for t in texts)


def _has_neurology(domains: Iterable[str]) -> bool:
    return any(str(d).strip().lower() in NEUROLOGY_TAGS for d in domains)


def _lower(entry: Any) -> str:
    return str(entry).lower()


def _rewrite(text: str, rules) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


class LMICAdapter:
    """Applies the stroke/LMIC guideline and imaging correction to a case."""

    def __init__(self, stroke_predicate: Optional[StrokePredicate] = None):
        self.stroke_predicate = stroke_predicate or is_stroke_related

    def applies_to(self, case: Any, domains: list[str]) -> bool:
        if not isinstance(case, dict):
            return False
        meta = case.get("meta")
        if not isinstance(meta, dict) or meta.get("lmic_mode") is not True:
            return False
        if not _has_neurology(domains):
            return False
        return self.stroke_predicate(
            domains,
            case.get("final_diagnosis"),
            case.get("diagnosis"),
            case.get("history"),
            case.get("physical_exam"),
        )

    def adapt(self, case: Any, domains: Optional[Iterable[str]] = None, region: Optional[str] = None) -> Any:
        """Apply the stroke LMIC correction when the case qualifies.

        Args:
            case: Generated case dict (not modified)
            domains: Detected domain tags; one must be a neurology tag
            region: Caller region, used for logging only

        Returns:
            A deep copy of the case, corrected if it is an LMIC stroke case
        """
        adapted = copy.deepcopy(case)
        domains = list(domains or [])

        if not self.applies_to(adapted, domains):
            return adapted

        logger.info(f"Applying stroke LMIC guideline correction (region={region or 'unknown'})")

        guidelines = adapted.get("guidelines")
        if isinstance(guidelines, dict):
            self._correct_guidelines(guidelines)

        management = adapted.get("management")
        if isinstance(management, dict):
            self._remove_imaging(management)

        meta = adapted["meta"]
        if not meta.get("stroke_lmic_adaptation"):
            meta["stroke_lmic_adaptation"] = dict(STROKE_LMIC_ADAPTATION_NOTE)

        return adapted

    def _correct_guidelines(self, guidelines: dict) -> None:
        usa = guidelines.get("usa")
        if isinstance(usa, list):
            guidelines["usa"] = [
                g for g in usa
                if not any(marker in _lower(g) for marker in _US_STROKE_MARKERS)
            ]

        international = guidelines.get("international")
        if not isinstance(international, list):
            international = []
            guidelines["international"] = international

        if not any("who" in _lower(g) and "stroke" in _lower(g) for g in international):
            international.insert(0, WHO_STROKE_GUIDELINE)

        if not any("lmic" in _lower(g) or "low resource" in _lower(g) for g in international):
            international.append(LMIC_NEURO_PATHWAY)

        continental = guidelines.get("continental")
        if not isinstance(continental, list):
            continental = []
            guidelines["continental"] = continental

        if not any("eso" in _lower(g) or "european stroke" in _lower(g) for g in continental):
            continental.append(ESO_SECONDARY_GUIDELINE)

        guidelines["primary_locked"] = "international"

    def _remove_imaging(self, management: dict) -> None:
        initial = management.get("initial")
        if isinstance(initial, str) and initial:
            management["initial"] = _rewrite(initial, _IMAGING_REWRITES + _INITIAL_ONLY_REWRITES)

        definitive = management.get("definitive")
        if isinstance(definitive, str) and definitive:
            management["definitive"] = _rewrite(definitive, _IMAGING_REWRITES)


_default_adapter = LMICAdapter()


def correct_stroke_lmic_guidelines(case: Any, domains: Optional[Iterable[str]] = None, region: Optional[str] = None) -> Any:
    """Module-level shortcut using the keyword stroke predicate."""
    return _default_adapter.adapt(case, domains, region)
