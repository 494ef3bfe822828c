"""
Pydantic request/response models for the MedPlat guideline service API.
"""
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .input_sanitization import normalize_domains, sanitize_language, sanitize_topic


# --- Guidelines ---

class GuidelineEntryModel(BaseModel):
    society: str
    title: str
    url: str


class GuidelinesResponse(BaseModel):
    ok: bool = True
    region: str
    topic: str
    guidelines: list[GuidelineEntryModel]
    note: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


# --- Region ---

class RegionResponse(BaseModel):
    ok: bool = True
    region: str
    display_name: Optional[str] = None


# --- Case Generation ---

class GenerateCaseRequest(BaseModel):
    topic: str
    language: str = "en"
    region: Optional[str] = None  # Resolved from request headers when omitted
    domains: list[str] = Field(default_factory=list)
    lmic_mode: Optional[bool] = None  # Detected from region/language when omitted
    resources: Optional[str] = None  # "low" forces LMIC mode

    @field_validator("topic")
    @classmethod
    def topic_not_empty(cls, v: str) -> str:
        v = sanitize_topic(v)
        if not v:
            raise ValueError("Topic cannot be empty")
        return v

    @field_validator("language")
    @classmethod
    def clean_language(cls, v: str) -> str:
        return sanitize_language(v)

    @field_validator("domains")
    @classmethod
    def clean_domains(cls, v: list[str]) -> list[str]:
        return normalize_domains(v)


class GenerateCaseResponse(BaseModel):
    ok: bool = True
    region: str
    lmic_mode: bool
    case: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    llm_available: bool
    guideline_regions: list[str]
