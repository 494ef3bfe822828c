"""
Region detection from inbound request headers.

The app platform and the CDN both stamp a country header on each request.
The first source that carries a usable value wins; anything else degrades to
the "global" region. Resolution never raises.
"""
import logging
from collections.abc import Mapping
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

GLOBAL_REGION = "global"

# (header name, value the source uses when it cannot geolocate), highest priority first
DEFAULT_HEADER_SOURCES: tuple[tuple[str, str], ...] = (
    ("x-appengine-country", "ZZ"),
    ("cf-ipcountry", "T1"),
)


def _read_header(headers: Any, name: str) -> Optional[str]:
    """Case-insensitive header read for Starlette Headers and plain mappings."""
    value = headers.get(name)
    if value is None and isinstance(headers, Mapping):
        wanted = name.lower()
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == wanted:
                value = candidate
                break
    return value


class RegionResolver:
    """Derives a lower-case region code from proxy/CDN country headers."""

    def __init__(self, header_sources: Sequence[tuple[str, str]] = DEFAULT_HEADER_SOURCES):
        self.header_sources = tuple(header_sources)

    def resolve(self, headers: Any) -> str:
        try:
            for header_name, unknown_value in self.header_sources:
                value = _read_header(headers, header_name)
                if not isinstance(value, str):
                    continue
                value = value.strip()
                if not value or value.upper() == unknown_value.upper():
                    continue
                return value.lower()
        except Exception as e:
            logger.warning(f"Region detection failed, using {GLOBAL_REGION}: {e}")
        return GLOBAL_REGION


class RegionNameTranslator:
    """Maps resolved region codes ("dk") to registry region names ("Denmark").

    The mapping is supplied by whoever deploys the service. There are no
    built-in entries: an unmapped code means the guideline fallback applies.
    """

    def __init__(self, names: Optional[Mapping[str, str]] = None):
        self._names = {code.lower(): name for code, name in (names or {}).items()}

    def to_display_name(self, code: Optional[str]) -> Optional[str]:
        if not code:
            return None
        return self._names.get(code.strip().lower())

    def __len__(self) -> int:
        return len(self._names)


_default_resolver = RegionResolver()


def resolve_region(headers: Any) -> str:
    """Resolve a region code using the default header sources."""
    return _default_resolver.resolve(headers)
