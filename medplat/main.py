"""
MedPlat Guideline Service - FastAPI Backend
Region-aware clinical guidelines and LMIC-adapted case generation

Architecture:
  - RegionResolver = country from app-platform / CDN headers
  - GuidelineRegistry = region -> ordered guideline citations with fallback
  - CaseAssembler = Gemini-generated cases, post-processed for LMIC settings
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .case_assembler import get_case_assembler
from .config import get_settings
from .guideline_registry import AUTO_REGION, get_registry
from .models import (
    ErrorResponse,
    GenerateCaseRequest,
    GenerateCaseResponse,
    GuidelinesResponse,
    HealthResponse,
    RegionResponse,
)
from .rate_limiter import check_rate_limit, client_ip
from .region_resolver import RegionNameTranslator, resolve_region
from .structured_logging import log_request, set_request_id, setup_logging

logger = logging.getLogger(__name__)

_translator: Optional[RegionNameTranslator] = None


def get_translator() -> RegionNameTranslator:
    """Region code -> registry name mapping from MEDPLAT_REGION_NAMES."""
    global _translator
    if _translator is None:
        _translator = RegionNameTranslator(get_settings().region_names)
    return _translator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and the Gemini client on startup."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    logger.info("Starting MedPlat guideline service...")

    if len(get_translator()) == 0:
        logger.warning("No region name mapping configured; auto-detected regions will use the fallback guidelines.")

    if settings.disable_llm:
        logger.info("Case generation disabled via environment variable.")
    else:
        try:
            get_case_assembler().initialize()
        except RuntimeError as e:
            logger.warning(f"Case generation not available: {e}")

    logger.info("Ready to serve requests.")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="MedPlat Guideline Service",
    description="Region-aware clinical guidelines and LMIC-adapted teaching cases",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"ok": False, "error": "Internal server error"})


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Request ID tracking and access logging."""
    start_time = time.time()
    request_id = set_request_id(request.headers.get("X-Request-ID"))

    try:
        response = await call_next(request)
    except Exception as exc:
        response = await unhandled_exception_handler(request, exc)

    if request.url.path not in ("/health", "/docs", "/openapi.json"):
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            client_ip=client_ip(request),
            region=resolve_region(request.headers),
        )

    response.headers["X-Request-ID"] = request_id
    return response


def _registry_region(region: str, headers) -> str:
    """Turn the query region (or "auto") into a registry key.

    Codes are only translated when the deployment supplied a mapping for them;
    otherwise the value passes through and the registry decides.
    """
    translator = get_translator()
    if region == AUTO_REGION:
        return translator.to_display_name(resolve_region(headers)) or AUTO_REGION
    return translator.to_display_name(region) or region


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(
        status="healthy",
        llm_available=get_case_assembler().available,
        guideline_regions=get_registry().regions,
    )


@app.get("/api/region", response_model=RegionResponse)
async def detect_region(request: Request, response: Response):
    """Region code for the caller, plus the configured display name if any."""
    response.headers.update(check_rate_limit("region", request))
    code = resolve_region(request.headers)
    return RegionResponse(region=code, display_name=get_translator().to_display_name(code))


@app.get(
    "/api/guidelines",
    response_model=GuidelinesResponse,
    responses={500: {"model": ErrorResponse}},
)
async def get_guidelines(request: Request, response: Response, region: str = AUTO_REGION, topic: str = ""):
    response.headers.update(check_rate_limit("guidelines", request))
    try:
        registry_region = _registry_region(region, request.headers)
        result = get_registry().lookup(registry_region, topic)
        return GuidelinesResponse(ok=True, **result.to_dict())
    except Exception as e:
        logger.exception(f"Guideline lookup failed for region={region!r} topic={topic!r}")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})


@app.post("/api/cases/generate", response_model=GenerateCaseResponse)
async def generate_case(body: GenerateCaseRequest, request: Request, response: Response):
    """Generate a teaching case and adapt it to the caller's resource setting."""
    response.headers.update(check_rate_limit("cases-generate", request))

    assembler = get_case_assembler()
    if get_settings().disable_llm or not assembler.available:
        raise HTTPException(status_code=503, detail="Case generation is not configured")

    region = (body.region or "").strip() or resolve_region(request.headers)
    # Country codes only match the high-resource list once mapped to a name
    region = get_translator().to_display_name(region) or region

    try:
        case = await run_in_threadpool(
            assembler.generate,
            body.topic,
            body.language,
            region,
            body.domains,
            body.lmic_mode,
            body.resources,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Case generation failed: {e}")
        raise HTTPException(status_code=502, detail="Case generation failed")

    return GenerateCaseResponse(region=region, lmic_mode=case["meta"]["lmic_mode"], case=case)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
