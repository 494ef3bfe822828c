"""
Region-aware clinical guideline registry.

Maps a region name to an ordered list of guideline citations. Regions that
are missing (or have no entries) get a fixed international fallback chain:
WHO first, then NICE, ESC and AHA.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

AUTO_REGION = "auto"
FALLBACK_REGION_LABEL = "Global (Fallback)"

GUIDELINE_NOTE = (
    "Guidelines are listed in priority order for the requested region. "
    "Regions without a curated list receive WHO guidance followed by "
    "NICE, ESC and AHA references. Always verify against current local protocols."
)


@dataclass(frozen=True)
class GuidelineEntry:
    society: str
    title: str
    url: str

    def to_dict(self) -> dict:
        return {"society": self.society, "title": self.title, "url": self.url}


@dataclass
class GuidelineSet:
    region: str
    topic: str
    guidelines: list[GuidelineEntry] = field(default_factory=list)
    note: str = GUIDELINE_NOTE

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "topic": self.topic,
            "guidelines": [g.to_dict() for g in self.guidelines],
            "note": self.note,
        }


ESC_FALLBACK = GuidelineEntry(
    society="ESC",
    title="European Society of Cardiology Clinical Practice Guidelines",
    url="https://www.escardio.org/Guidelines/Clinical-Practice-Guidelines",
)

AHA_FALLBACK = GuidelineEntry(
    society="AHA",
    title="American Heart Association Guidelines and Statements",
    url="https://professional.heart.org/en/guidelines-and-statements",
)

_DEFAULT_TABLE: dict[str, tuple[GuidelineEntry, ...]] = {
    "Denmark": (
        GuidelineEntry("Sundhedsstyrelsen", "Nationale kliniske retningslinjer", "https://www.sst.dk/da/udgivelser"),
        GuidelineEntry("Dansk Cardiologisk Selskab", "National Behandlingsvejledning (NBV)", "https://nbv.cardio.dk/"),
        GuidelineEntry("ESC", "European Society of Cardiology Clinical Practice Guidelines",
                       "https://www.escardio.org/Guidelines/Clinical-Practice-Guidelines"),
    ),
    "United States": (
        GuidelineEntry("AHA/ACC", "ACC/AHA Clinical Practice Guidelines",
                       "https://professional.heart.org/en/guidelines-and-statements"),
        GuidelineEntry("CDC", "CDC Clinical Guidance", "https://www.cdc.gov/"),
        GuidelineEntry("USPSTF", "USPSTF Recommendation Topics",
                       "https://www.uspreventiveservicestaskforce.org/uspstf/recommendation-topics"),
    ),
    "United Kingdom": (
        GuidelineEntry("NICE", "NICE Guidance", "https://www.nice.org.uk/guidance"),
        GuidelineEntry("SIGN", "Scottish Intercollegiate Guidelines Network", "https://www.sign.ac.uk/our-guidelines/"),
    ),
    "Germany": (
        GuidelineEntry("AWMF", "AWMF Leitlinienregister", "https://register.awmf.org/de/leitlinien"),
        GuidelineEntry("DGK", "Deutsche Gesellschaft für Kardiologie Leitlinien", "https://leitlinien.dgk.org/"),
    ),
    "Canada": (
        GuidelineEntry("CMA", "CMA Joule Clinical Practice Guidelines", "https://joulecma.ca/cpg/homepage"),
        GuidelineEntry("CCS", "Canadian Cardiovascular Society Guidelines", "https://ccs.ca/guidelines-and-clinical-practice-updates/"),
    ),
    "Australia": (
        GuidelineEntry("NHMRC", "NHMRC Clinical Practice Guidelines", "https://www.nhmrc.gov.au/guidelinesforguidelines"),
        GuidelineEntry("Therapeutic Guidelines", "eTG complete", "https://www.tg.org.au/"),
    ),
    "WHO": (
        GuidelineEntry("WHO", "WHO Guidelines", "https://www.who.int/publications/who-guidelines"),
        GuidelineEntry("WHO", "WHO Package of Essential Noncommunicable Disease Interventions (PEN)",
                       "https://www.who.int/publications/i/item/9789240009226"),
    ),
}

DEFAULT_GUIDELINE_TABLE: Mapping[str, tuple[GuidelineEntry, ...]] = MappingProxyType(_DEFAULT_TABLE)


class GuidelineRegistry:
    """Read-only lookup over a region -> guideline table."""

    def __init__(self, table: Mapping[str, Sequence[GuidelineEntry]] = DEFAULT_GUIDELINE_TABLE):
        self._table: Mapping[str, tuple[GuidelineEntry, ...]] = MappingProxyType(
            {region: tuple(entries) for region, entries in table.items()}
        )

    @property
    def regions(self) -> list[str]:
        return list(self._table.keys())

    def fallback_chain(self) -> list[GuidelineEntry]:
        """WHO entries, first UK entry (NICE), then the fixed ESC and AHA entries."""
        chain = list(self._table.get("WHO", ()))
        uk = self._table.get("United Kingdom", ())
        if uk:
            chain.append(uk[0])
        chain.append(ESC_FALLBACK)
        chain.append(AHA_FALLBACK)
        return chain

    def lookup(self, region: Optional[str], topic: str = "") -> GuidelineSet:
        """Guidelines for a region, or the fallback chain when it has none.

        Args:
            region: Registry key (e.g. "Denmark") or "auto"
            topic: Echoed back unchanged

        Returns:
            GuidelineSet; "auto" is reported as "Global (Fallback)"
        """
        entries = list(self._table.get(region, ())) if region else []
        if not entries:
            logger.info(f"No curated guidelines for region {region!r}; using fallback chain")
            entries = self.fallback_chain()

        return GuidelineSet(
            region=FALLBACK_REGION_LABEL if region == AUTO_REGION else (region or ""),
            topic=topic or "",
            guidelines=entries,
        )


_registry_instance: Optional[GuidelineRegistry] = None


def get_registry() -> GuidelineRegistry:
    """Get or create the registry singleton backed by the default table."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = GuidelineRegistry()
    return _registry_instance
