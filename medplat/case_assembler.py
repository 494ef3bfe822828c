"""
Case Assembler - generates a clinical teaching case with Gemini and runs it
through the LMIC post-processing pipeline.

Pipeline:
  1. Gemini writes the raw case as JSON
  2. extract_json repairs fenced/truncated output
  3. meta is stamped with topic/language/region and the LMIC decision
  4. generic LMIC adaptations are merged in
  5. LMICAdapter applies the stroke-specific guideline/imaging correction
  6. enforce_lmic_priority strips remaining high-resource care (LMIC only)
"""
import logging
from typing import Any, Iterable, Optional

from google import genai
from google.genai import types

from .config import get_settings
from .json_utils import extract_json
from .lmic_adapter import LMICAdapter
from .lmic_detection import apply_lmic_adaptations, build_lmic_adaptations, detect_lmic_mode
from .lmic_priority import enforce_lmic_priority
from .prompts import CASE_GENERATION_PROMPT, CASE_SYSTEM_PROMPT, LMIC_INSTRUCTION

logger = logging.getLogger(__name__)


def _resolve_lmic_mode(meta: dict, explicit: Optional[bool], region: str, language: str, resources: Any) -> bool:
    if explicit is not None:
        return explicit
    if isinstance(meta.get("lmic_mode"), bool):
        return meta["lmic_mode"]
    return detect_lmic_mode(region, language, resources)


class CaseAssembler:
    """Generates cases with Gemini and post-processes them for the caller's region."""

    def __init__(self, client=None, model_name: Optional[str] = None, adapter: Optional[LMICAdapter] = None):
        settings = get_settings()
        self.client = client
        self._model_name = model_name or settings.gemini_model
        self._timeout_seconds = settings.llm_timeout_seconds
        self.adapter = adapter or LMICAdapter()

    @property
    def available(self) -> bool:
        return self.client is not None

    def initialize(self, api_key: Optional[str] = None) -> None:
        """Create the Gemini client. Raises RuntimeError when no key is configured."""
        key = api_key or get_settings().gemini_api_key
        if not key:
            raise RuntimeError(
                "No Gemini API key found. Set GEMINI_API_KEY or GOOGLE_API_KEY "
                "environment variable, or pass api_key to initialize()."
            )
        self.client = genai.Client(
            api_key=key,
            http_options=types.HttpOptions(timeout=int(self._timeout_seconds * 1000)),
        )
        logger.info(f"Case assembler initialized with model: {self._model_name} (timeout: {self._timeout_seconds}s)")

    def build_prompt(self, topic: str, language: str, region: str, domains: list[str], lmic_mode: bool) -> str:
        return CASE_GENERATION_PROMPT.format(
            topic=topic,
            language=language,
            region=region,
            domains=", ".join(domains) if domains else "not classified",
            resource_setting="low-resource (LMIC)" if lmic_mode else "standard",
            lmic_instruction=LMIC_INSTRUCTION if lmic_mode else "",
        )

    def generate(
        self,
        topic: str,
        language: str = "en",
        region: str = "global",
        domains: Optional[Iterable[str]] = None,
        lmic_mode: Optional[bool] = None,
        resources: Any = None,
    ) -> dict:
        if self.client is None:
            raise RuntimeError("Case assembler is not initialized")

        domains = list(domains or [])
        prompt_lmic = lmic_mode if lmic_mode is not None else detect_lmic_mode(region, language, resources)
        prompt = self.build_prompt(topic, language, region, domains, prompt_lmic)

        logger.info(f"Generating case: topic={topic[:80]!r} region={region} lmic={prompt_lmic}")
        response = self.client.models.generate_content(
            model=self._model_name,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=CASE_SYSTEM_PROMPT,
                temperature=0.7,
                max_output_tokens=8192,
                response_mime_type="application/json",
            ),
        )

        raw_case = extract_json(response.text or "")
        return self.finalize_case(
            raw_case,
            topic=topic,
            language=language,
            region=region,
            domains=domains,
            lmic_mode=lmic_mode,
            resources=resources,
        )

    def finalize_case(
        self,
        raw_case: dict,
        *,
        topic: str,
        language: str,
        region: str,
        domains: Iterable[str],
        lmic_mode: Optional[bool] = None,
        resources: Any = None,
    ) -> dict:
        """Stamp meta and apply LMIC post-processing. Returns a new dict."""
        domains = list(domains)
        case = dict(raw_case) if isinstance(raw_case, dict) else {}

        meta = dict(case["meta"]) if isinstance(case.get("meta"), dict) else {}
        meta.setdefault("topic", topic)
        meta.setdefault("language", language)
        meta["region"] = meta.get("region") or region
        meta["lmic_mode"] = _resolve_lmic_mode(meta, lmic_mode, region, language, resources)
        meta["domains"] = domains
        case["meta"] = meta

        if meta["lmic_mode"]:
            # lmic_mode is already decided; declare low resources so the hints are built
            adaptations = build_lmic_adaptations(domains, region, resources="low", language=language)
            case = apply_lmic_adaptations(case, adaptations)

        case = self.adapter.adapt(case, domains, region)
        # Must follow adapter.adapt: it rewrites any CT/MRI the stroke step left bare
        return enforce_lmic_priority(case)


_assembler_instance: Optional[CaseAssembler] = None


def get_case_assembler() -> CaseAssembler:
    """Get or create the case assembler singleton."""
    global _assembler_instance
    if _assembler_instance is None:
        _assembler_instance = CaseAssembler()
    return _assembler_instance
